"""Refund compensation (reverse a card claim) CRUD functions."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict

from sqlalchemy import exists, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from common.errors import OrderNotFoundException
from common.logger import get_logger, log_with_context
from common.utils import now as current_time
from services.order.models.card_model import Card
from services.order.models.login_user_model import LoginUser
from services.order.models.order_model import ORDER_STATUS_DELIVERED, ORDER_STATUS_REFUNDED, Order
from services.order.models.refund_request_model import REFUND_REQUEST_PROCESSED, RefundRequest

logger = get_logger("refund_compensation_crud")

PHASE_CARD_RESTOCK = "card_restock"
PHASE_REFUND_REQUEST = "refund_request"


async def _run_optional_phase(
    db: AsyncSession,
    name: str,
    order_id: str,
    action: Callable[[], Awaitable[int]],
) -> Dict[str, Any]:
    """
    선택 단계를 SAVEPOINT 안에서 실행하고 결과를 기록

    Args:
        db: 데이터베이스 세션 (바깥 트랜잭션 진행 중)
        name: 단계 이름 (로그/결과 키)
        order_id: 주문 ID
        action: 갱신된 행 수를 반환하는 코루틴 함수

    Returns:
        dict: applied, reason, error

    Note:
        - 실패 시 SAVEPOINT까지만 롤백되고 바깥 트랜잭션(포인트/상태 변경)은 유지
        - 갱신 대상 행이 없으면 applied=False, reason=not_found
    """
    try:
        async with db.begin_nested():
            affected = await action()
    except SQLAlchemyError as e:
        logger.warning(f"환불 선택 단계 실패(무시): phase={name}, order_id={order_id}, error={str(e)}")
        return {"applied": False, "reason": "failed", "error": str(getattr(e, "orig", e))}

    if not affected:
        logger.info(f"환불 선택 단계 대상 없음: phase={name}, order_id={order_id}")
        return {"applied": False, "reason": "not_found", "error": None}
    return {"applied": True, "reason": None, "error": None}


async def compensate_refunded_order(db: AsyncSession, order_id: str) -> Dict[str, Any]:
    """
    환불된 주문의 카드 할당을 되돌리고 포인트를 환급

    Args:
        db: 데이터베이스 세션
        order_id: 환불 처리할 주문 ID

    Returns:
        dict: success, order_id, points_refunded, phases(card_restock, refund_request)

    Raises:
        OrderNotFoundException: 주문 없음

    Note:
        - 필수 단계: 사용 포인트 환급(가산) + 주문 상태 refunded
        - 선택 단계: 카드 재고 복구, 환불 요청 처리완료 표시 (실패해도 커밋)
        - 한 트랜잭션에서 처리, 필수 단계 실패 시 전체 롤백
        - 이미 refunded 상태면 아무것도 변경하지 않음 (already_refunded=True)
        - 다른 delivered 주문이 보유한 카드는 재고로 되돌리지 않음
    """
    try:
        result = await db.execute(
            select(Order).where(Order.order_id == order_id).with_for_update()
        )
        order = result.scalar_one_or_none()
        if order is None:
            logger.warning(f"환불할 주문을 찾을 수 없음: order_id={order_id}")
            raise OrderNotFoundException(order_id)

        if order.status == ORDER_STATUS_REFUNDED:
            # 잠금만 해제 (변경 사항 없음)
            await db.rollback()
            logger.info(f"이미 환불 처리된 주문: order_id={order_id}")
            skipped = {"applied": False, "reason": "already_refunded", "error": None}
            return {
                "success": True,
                "order_id": order_id,
                "points_refunded": 0,
                "already_refunded": True,
                "phases": {PHASE_CARD_RESTOCK: dict(skipped), PHASE_REFUND_REQUEST: dict(skipped)},
            }

        product_id = order.product_id
        card_key = order.card_key
        points_used = int(order.points_used or 0)
        points_refunded = 0

        # (1) 포인트 환급
        if order.user_id and points_used > 0:
            await db.execute(
                update(LoginUser)
                .where(LoginUser.user_id == order.user_id)
                .values(points=LoginUser.points + points_used)
                .execution_options(synchronize_session=False)
            )
            points_refunded = points_used

        # (2) 주문 상태 변경
        order.status = ORDER_STATUS_REFUNDED
        await db.flush()

        phases: Dict[str, Dict[str, Any]] = {}

        # (3) 카드 재고 복구
        if card_key:
            held_by_other_order = exists().where(
                Order.product_id == product_id,
                Order.card_key == card_key,
                Order.order_id != order_id,
                Order.status == ORDER_STATUS_DELIVERED,
            )

            async def _restock_card() -> int:
                restock = await db.execute(
                    update(Card)
                    .where(Card.product_id == product_id, Card.card_key == card_key, ~held_by_other_order)
                    .values(is_used=False, used_at=None)
                    .execution_options(synchronize_session=False)
                )
                return restock.rowcount

            phases[PHASE_CARD_RESTOCK] = await _run_optional_phase(db, PHASE_CARD_RESTOCK, order_id, _restock_card)
        else:
            phases[PHASE_CARD_RESTOCK] = {"applied": False, "reason": "no_card", "error": None}

        # (4) 환불 요청 처리완료 표시
        async def _mark_refund_request() -> int:
            processed_at = current_time()
            marked = await db.execute(
                update(RefundRequest)
                .where(RefundRequest.order_id == order_id)
                .values(status=REFUND_REQUEST_PROCESSED, processed_at=processed_at, updated_at=processed_at)
                .execution_options(synchronize_session=False)
            )
            return marked.rowcount

        phases[PHASE_REFUND_REQUEST] = await _run_optional_phase(db, PHASE_REFUND_REQUEST, order_id, _mark_refund_request)

        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"환불 보상 처리 실패: order_id={order_id}, error={str(e)}")
        raise

    log_with_context(
        logger,
        "INFO",
        f"환불 보상 처리 완료: order_id={order_id}, points_refunded={points_refunded}, "
        f"card_restocked={phases[PHASE_CARD_RESTOCK]['applied']}",
        order_id=order_id,
        points_refunded=points_refunded,
        phases=phases,
    )
    return {
        "success": True,
        "order_id": order_id,
        "points_refunded": points_refunded,
        "already_refunded": False,
        "phases": phases,
    }
