"""Order fulfillment (payment confirmed → card delivery) CRUD functions."""

from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from common.config import get_settings
from common.errors import AmountMismatchException, OrderNotFoundException
from common.logger import get_logger, log_with_context
from common.utils import now as current_time, to_decimal
from services.order.crud.card_claim_crud import claim_card_for_order
from services.order.models.order_model import (
    FULFILLABLE_STATUSES,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_PAID,
    Order,
)

logger = get_logger("fulfillment_crud")


async def _get_order_for_update(db: AsyncSession, order_id: str) -> Order:
    result = await db.execute(
        select(Order).where(Order.order_id == order_id).with_for_update()
    )
    order = result.scalar_one_or_none()
    if order is None:
        logger.warning(f"발급할 주문을 찾을 수 없음: order_id={order_id}")
        raise OrderNotFoundException(order_id)
    return order


def _verify_paid_amount(order: Order, paid_amount) -> None:
    """
    결제 금액이 주문 금액과 일치하는지 확인 (금액 조작/부분 결제 방지)

    Note:
        - 차이가 AMOUNT_EPSILON(기본 0.01) 이상이면 불일치로 판단
        - 통화 단위가 0.01이므로 1센트라도 다르면 거절, 부동소수 오차만 허용
    """
    epsilon = to_decimal(get_settings().amount_epsilon)
    order_amount = to_decimal(order.amount)
    paid = to_decimal(paid_amount)
    if abs(paid - order_amount) >= epsilon:
        logger.warning(
            f"결제 금액 불일치: order_id={order.order_id}, order_amount={order_amount}, paid_amount={paid}"
        )
        raise AmountMismatchException(order_amount, paid)


async def fulfill_order(
    db: AsyncSession,
    order_id: str,
    paid_amount,
    trade_no: str,
) -> Dict[str, Any]:
    """
    결제 완료된 주문에 카드 1장을 할당하고 주문 상태를 갱신

    Args:
        db: 데이터베이스 세션
        order_id: 주문 ID
        paid_amount: 결제된 금액 (Decimal/str/float)
        trade_no: 게이트웨이 거래번호

    Returns:
        dict: success, status(processed|already_processed), order_id, order_status, card_claimed

    Raises:
        OrderNotFoundException: 주문 없음
        AmountMismatchException: 결제 금액 불일치

    Note:
        - 주문 행을 FOR UPDATE로 잠근 뒤 상태 확인 → 갱신까지 한 트랜잭션에서 처리
          (같은 주문에 대한 중복 통지가 동시에 들어와도 한 번만 처리됨)
        - pending/cancelled 이외 상태는 이미 처리된 것으로 보고 아무것도 변경하지 않음
        - 카드가 있으면 delivered, 재고가 없으면 paid (card_key 없음)
        - 어떤 단계에서든 에러 시 전체 롤백 (카드/주문 모두 변경 전 상태 유지)
    """
    try:
        order = await _get_order_for_update(db, order_id)
        _verify_paid_amount(order, paid_amount)

        if order.status not in FULFILLABLE_STATUSES:
            result = {
                "success": True,
                "status": "already_processed",
                "order_id": order_id,
                "order_status": order.status,
                "card_claimed": order.card_key is not None,
            }
            # 잠금만 해제 (변경 사항 없음)
            await db.rollback()
            logger.info(f"이미 처리된 주문: order_id={order_id}, status={result['order_status']}")
            return result

        card_key = await claim_card_for_order(db, order.order_id, order.product_id)
        now = current_time()

        order.paid_at = now
        order.trade_no = trade_no
        if card_key:
            order.status = ORDER_STATUS_DELIVERED
            order.delivered_at = now
            order.card_key = card_key
        else:
            order.status = ORDER_STATUS_PAID
        final_status = order.status

        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"주문 발급 처리 실패: order_id={order_id}, error={str(e)}")
        raise

    log_with_context(
        logger,
        "INFO",
        f"주문 발급 처리 완료: order_id={order_id}, status={final_status}, card_claimed={bool(card_key)}",
        order_id=order_id,
        order_status=final_status,
        card_claimed=bool(card_key),
    )
    return {
        "success": True,
        "status": "processed",
        "order_id": order_id,
        "order_status": final_status,
        "card_claimed": bool(card_key),
    }
