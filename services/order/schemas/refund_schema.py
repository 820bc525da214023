from typing import Dict, Optional

from pydantic import BaseModel

# -----------------------------
# 환불 관련 스키마
# -----------------------------

class RefundParamsResponse(BaseModel):
    """클라이언트 측 환불 폼 제출용 파라미터 (게이트웨이 필드명 그대로)"""
    pid: str
    key: str
    trade_no: str
    out_trade_no: str
    money: str

class PhaseOutcome(BaseModel):
    """
    환불 보상 트랜잭션의 선택 단계 결과

    Attributes:
        applied: 실제로 행이 갱신되었는지
        reason: 미적용 사유 (not_found 등)
        error: 실패 시 에러 메시지 (트랜잭션은 계속 커밋됨)
    """
    applied: bool = False
    reason: Optional[str] = None
    error: Optional[str] = None

class CompensationResponse(BaseModel):
    """already_refunded=True 이면 이미 환불된 주문으로 아무 변경도 하지 않음"""
    success: bool = True
    order_id: str
    points_refunded: int = 0
    already_refunded: bool = False
    phases: Dict[str, PhaseOutcome] = {}

class RefundInitiateResponse(BaseModel):
    """
    게이트웨이 환불 요청 결과

    Note:
        - processed=False 는 게이트웨이가 성공을 반환하지 않은 경우 (에러 아님)
        - message는 게이트웨이 응답 본문 앞 500자
    """
    ok: bool = True
    processed: bool
    message: str
