from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

# -----------------------------
# 결제 통지 / 카드 발급 스키마
# -----------------------------

class PaymentNotifyRequest(BaseModel):
    """
    결제 완료 통지 (결제 게이트웨이 → 상점)

    Attributes:
        order_id: 상점 주문 ID
        paid_amount: 실제 결제된 금액
        trade_no: 게이트웨이 거래번호
    """
    order_id: str = Field(..., max_length=64)
    paid_amount: Decimal
    trade_no: str = Field(..., min_length=1, max_length=128)

class FulfillmentResponse(BaseModel):
    """
    카드 발급 처리 결과

    Note:
        - status=already_processed 이면 중복 통지로 아무 변경도 하지 않음
        - order_status는 처리 후 주문 상태 (delivered | paid | 기존 상태)
    """
    success: bool = True
    status: Literal["processed", "already_processed"]
    order_id: str
    order_status: str
    card_claimed: bool = False

class ErrorResponse(BaseModel):
    kind: str
    detail: Optional[str] = None
