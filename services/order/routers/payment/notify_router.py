"""Order payment notification API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from common.database.postgres_shop import get_postgres_shop_db
from common.logger import get_logger
from services.order.crud.payment_notify_crud import apply_payment_notification
from services.order.schemas.fulfillment_schema import ErrorResponse, FulfillmentResponse

logger = get_logger("payment_router")
router = APIRouter()

@router.post(
    "/notify",
    response_model=FulfillmentResponse,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"model": ErrorResponse, "description": "금액 불일치 / 통지 형식 오류"},
        401: {"model": ErrorResponse, "description": "서명 검증 실패"},
        404: {"model": ErrorResponse, "description": "주문 없음"},
    },
)
async def payment_notify(
    request: Request,
    x_signature: Optional[str] = Header(None, alias="X-Signature"),
    db: AsyncSession = Depends(get_postgres_shop_db),
):
    """
    결제 완료 통지 (게이트웨이 웹훅)
    
    Note:
        - Router 계층: 원본 바디/서명 헤더 전달, 비즈니스 로직은 CRUD 계층에 위임
        - 같은 통지가 여러 번 와도 카드는 한 번만 발급 (already_processed)
        - 주문 없음 404, 금액 불일치 400, 서명 오류 401
    """
    raw_body = await request.body()
    result = await apply_payment_notification(db, raw_body=raw_body, signature_b64=x_signature)
    logger.info(f"결제 통지 처리 결과: order_id={result['order_id']}, status={result['status']}")
    return result
