"""Admin refund API routes."""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from common.database.postgres_shop import get_postgres_shop_db
from common.dependencies import get_current_admin
from common.logger import get_logger
from services.order.crud.refund_compensation_crud import compensate_refunded_order
from services.order.crud.refund_gateway_crud import get_refund_params, initiate_refund
from services.order.schemas.fulfillment_schema import ErrorResponse
from services.order.schemas.refund_schema import (
    CompensationResponse,
    RefundInitiateResponse,
    RefundParamsResponse,
)
from services.order.utils.view_cache_manager import refund_affected_views, view_cache_manager

logger = get_logger("refund_router")
router = APIRouter()

# 관리자 환불 API 공통 에러 응답 (kind, detail)
ADMIN_ERROR_RESPONSES = {
    401: {"model": ErrorResponse, "description": "토큰 없음 / 유효하지 않은 토큰"},
    403: {"model": ErrorResponse, "description": "관리자 권한 없음"},
    404: {"model": ErrorResponse, "description": "주문 없음"},
}

def _schedule_view_invalidation(background_tasks: BackgroundTasks, order_id: str) -> None:
    # 커밋 이후 응답 전송 뒤 실행 (실패해도 응답에 영향 없음)
    background_tasks.add_task(view_cache_manager.invalidate_views, refund_affected_views(order_id))

@router.get("/{order_id}/params", response_model=RefundParamsResponse, responses=ADMIN_ERROR_RESPONSES)
async def read_refund_params(
    order_id: str,
    db: AsyncSession = Depends(get_postgres_shop_db),
    admin: str = Depends(get_current_admin),
):
    """클라이언트 측 환불 폼 제출용 게이트웨이 파라미터 조회"""
    logger.info(f"환불 파라미터 조회: admin={admin}, order_id={order_id}")
    return await get_refund_params(db, order_id)

@router.post("/{order_id}/initiate", response_model=RefundInitiateResponse, responses=ADMIN_ERROR_RESPONSES)
async def initiate_order_refund(
    order_id: str,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_postgres_shop_db),
    admin: str = Depends(get_current_admin),
):
    """
    게이트웨이 환불 요청 → 성공 시 환불 보상 처리
    
    Note:
        - 게이트웨이가 성공을 반환하지 않으면 processed=False (200 응답)
        - 게이트웨이 통신 실패/non-2xx 는 502
    """
    logger.info(f"게이트웨이 환불 요청: admin={admin}, order_id={order_id}")
    result = await initiate_refund(db, order_id)
    if result["processed"]:
        _schedule_view_invalidation(background_tasks, order_id)
    return result

@router.post("/{order_id}/mark-refunded", response_model=CompensationResponse, responses=ADMIN_ERROR_RESPONSES)
async def mark_order_refunded(
    order_id: str,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_postgres_shop_db),
    admin: str = Depends(get_current_admin),
):
    """게이트웨이 외부에서 환불된 주문을 환불 처리 (포인트 환급, 카드 재고 복구)"""
    logger.info(f"주문 환불 처리 요청: admin={admin}, order_id={order_id}")
    result = await compensate_refunded_order(db, order_id)
    _schedule_view_invalidation(background_tasks, order_id)
    return result
