"""Card claim (inventory allocation) CRUD functions."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Select, false, func, or_, select, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from common.config import get_settings
from common.database.sql_functions import db_local_timestamp
from common.errors import SchemaIncompatibleError
from common.logger import get_logger
from services.order.crud.card_schema_crud import (
    is_undefined_column_error,
    mark_reservation_unsupported,
    resolve_reservation_support,
)
from services.order.models.card_model import Card

logger = get_logger("card_claim_crud")


def _is_available():
    """is_used가 NULL인 레거시 행도 미사용으로 취급"""
    return func.coalesce(Card.is_used, false()) == false()


def build_reserved_card_query(order_id: str) -> Select:
    """
    해당 주문에 미리 예약된 미사용 카드 1건을 잠금 조회하는 쿼리
    """
    return (
        select(Card.id, Card.card_key)
        .where(Card.reserved_order_id == order_id, _is_available())
        .order_by(Card.id)
        .limit(1)
        .with_for_update(skip_locked=True)
    )


def build_available_card_query(
    product_id: str,
    *,
    reservation_aware: bool,
    freshness_seconds: Optional[int] = None,
) -> Select:
    """
    상품의 발급 가능 카드 1건을 잠금 조회하는 쿼리

    Args:
        product_id: 상품 ID
        reservation_aware: 예약 컬럼을 고려할지 여부 (False면 레거시 스키마용 쿼리)
        freshness_seconds: 예약 유효 시간(초), 이보다 오래된 예약은 만료로 간주
            (reservation_aware일 때 필수)

    Note:
        - FOR UPDATE SKIP LOCKED: 다른 트랜잭션이 잠근 행은 기다리지 않고 건너뜀
        - 만료 기준 시각은 DB 시계로 계산 (reserved_at도 DB NOW()로 기록됨)
        - 레거시 쿼리는 예약 컬럼을 전혀 참조하지 않음
    """
    stmt = select(Card.id, Card.card_key).where(
        Card.product_id == product_id,
        _is_available(),
    )
    if reservation_aware:
        if freshness_seconds is None:
            raise ValueError("reservation_aware 쿼리에는 freshness_seconds가 필요합니다.")
        stale_before = db_local_timestamp(freshness_seconds)
        stmt = stmt.where(or_(Card.reserved_at.is_(None), Card.reserved_at < stale_before))
    return stmt.order_by(Card.id).limit(1).with_for_update(skip_locked=True)


async def _mark_card_used(
    db: AsyncSession,
    card_id: int,
    *,
    clear_reservation: bool,
) -> None:
    values = {"is_used": True, "used_at": db_local_timestamp()}
    if clear_reservation:
        values.update(reserved_order_id=None, reserved_at=None)
    await db.execute(
        update(Card)
        .where(Card.id == card_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )


async def claim_reserved_card(db: AsyncSession, order_id: str) -> Optional[str]:
    """
    주문에 예약된 카드를 사용 처리하고 카드키 반환 (없으면 None)

    Note:
        - 호출자의 트랜잭션 안에서 실행 (commit 하지 않음)
        - 예약 필드는 함께 초기화
    """
    row = (await db.execute(build_reserved_card_query(order_id))).first()
    if row is None:
        return None
    await _mark_card_used(db, row.id, clear_reservation=True)
    logger.debug(f"예약 카드 사용 처리: order_id={order_id}, card_id={row.id}")
    return row.card_key


async def claim_available_card(
    db: AsyncSession,
    product_id: str,
    *,
    reservation_aware: bool,
) -> Optional[str]:
    """
    상품의 발급 가능 카드 1건을 사용 처리하고 카드키 반환 (재고 없으면 None)

    Note:
        - reservation_aware=True: 예약되지 않았거나 예약이 만료된 카드만 대상, 만료 예약은 초기화
        - reservation_aware=False: is_used만 기준으로 선택 (레거시 스키마)
    """
    freshness_seconds = None
    if reservation_aware:
        freshness_seconds = get_settings().reservation_freshness_seconds

    stmt = build_available_card_query(
        product_id,
        reservation_aware=reservation_aware,
        freshness_seconds=freshness_seconds,
    )
    row = (await db.execute(stmt)).first()
    if row is None:
        return None
    await _mark_card_used(db, row.id, clear_reservation=reservation_aware)
    logger.debug(
        f"재고 카드 사용 처리: product_id={product_id}, card_id={row.id}, reservation_aware={reservation_aware}"
    )
    return row.card_key


async def _claim_with_reservation(db: AsyncSession, order_id: str, product_id: str) -> Optional[str]:
    try:
        card_key = await claim_reserved_card(db, order_id)
        if card_key is None:
            card_key = await claim_available_card(db, product_id, reservation_aware=True)
        return card_key
    except DBAPIError as e:
        if is_undefined_column_error(e):
            raise SchemaIncompatibleError(str(e.orig)) from e
        raise


async def claim_card_for_order(
    db: AsyncSession,
    order_id: str,
    product_id: str,
) -> Optional[str]:
    """
    주문에 카드 1장을 할당 (예약 카드 → 발급 가능 카드 → 레거시 순)

    Args:
        db: 데이터베이스 세션 (호출자가 트랜잭션 소유)
        order_id: 잠금 조회된 주문 ID
        product_id: 주문 상품 ID

    Returns:
        Optional[str]: 할당된 카드키, 재고가 없으면 None

    Note:
        - 예약 지원 여부는 프로세스당 1회 판별된 플래그를 사용
        - 예약 쿼리는 SAVEPOINT 안에서 실행하여, 컬럼 없음 에러 시
          같은 트랜잭션에서 레거시 쿼리로 재시도 가능
        - used_at은 DB 시계 기준으로 기록
    """
    if await resolve_reservation_support(db):
        try:
            async with db.begin_nested():
                return await _claim_with_reservation(db, order_id, product_id)
        except SchemaIncompatibleError as e:
            mark_reservation_unsupported(str(e))

    return await claim_available_card(db, product_id, reservation_aware=False)
