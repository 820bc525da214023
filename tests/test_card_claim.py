from datetime import datetime, timedelta

import pytest
from sqlalchemy import insert, select
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from services.order.crud import card_schema_crud, fulfillment_crud
from services.order.crud.card_claim_crud import (
    build_available_card_query,
    build_reserved_card_query,
    claim_card_for_order,
)
from services.order.crud.card_schema_crud import (
    is_undefined_column_error,
    resolve_reservation_support,
)
from services.order.crud.fulfillment_crud import fulfill_order
from services.order.models.order_model import ORDER_STATUS_DELIVERED, ORDER_STATUS_PAID, Order


def _compile_pg(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


def test_available_card_query_skips_locked_rows():
    sql = _compile_pg(build_available_card_query("prod-1", reservation_aware=True, freshness_seconds=60))

    assert "FOR UPDATE SKIP LOCKED" in sql
    assert "LIMIT" in sql
    assert "reserved_at" in sql


def test_stale_cutoff_uses_database_clock():
    stmt = build_available_card_query("prod-1", reservation_aware=True, freshness_seconds=90)
    compiled = stmt.compile(dialect=postgresql.dialect())

    assert "LOCALTIMESTAMP - INTERVAL '1 second'" in str(compiled)
    assert 90 in compiled.params.values()
    assert not any(isinstance(value, datetime) for value in compiled.params.values())


def test_legacy_card_query_never_references_reservation_columns():
    sql = _compile_pg(build_available_card_query("prod-1", reservation_aware=False))

    assert "FOR UPDATE SKIP LOCKED" in sql
    assert "reserved_order_id" not in sql
    assert "reserved_at" not in sql


def test_reservation_query_requires_staleness_cutoff():
    with pytest.raises(ValueError):
        build_available_card_query("prod-1", reservation_aware=True)


def test_reserved_card_query_filters_by_order():
    sql = _compile_pg(build_reserved_card_query("order-1"))

    assert "reserved_order_id" in sql
    assert "FOR UPDATE SKIP LOCKED" in sql


class _FakeDriverError(Exception):
    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


def test_undefined_column_error_classification():
    assert is_undefined_column_error(_FakeDriverError("boom", sqlstate="42703"))
    assert is_undefined_column_error(_FakeDriverError('column "reserved_at" does not exist'))
    assert not is_undefined_column_error(_FakeDriverError("deadlock detected", sqlstate="40P01"))

    wrapped = OperationalError("SELECT cards.reserved_order_id FROM cards", {}, _FakeDriverError("database is locked"))
    assert not is_undefined_column_error(wrapped)

    wrapped = OperationalError("SELECT 1", {}, _FakeDriverError("no such column: cards.reserved_order_id"))
    assert is_undefined_column_error(wrapped)


async def test_fresh_reservation_is_held_for_its_order(session_factory, seed_order, seed_card, fetch_order, fetch_card):
    await seed_order("order-x")
    await seed_order("order-y")
    await seed_card("RESERVED", reserved_order_id="order-x", reserved_at=datetime.now() - timedelta(seconds=10))

    async with session_factory() as session:
        other = await fulfill_order(session, "order-y", "9.99", "T-Y")
    assert other["order_status"] == ORDER_STATUS_PAID
    assert (await fetch_card("RESERVED")).is_used is False

    async with session_factory() as session:
        owner = await fulfill_order(session, "order-x", "9.99", "T-X")
    assert owner["order_status"] == ORDER_STATUS_DELIVERED
    assert (await fetch_order("order-x")).card_key == "RESERVED"

    card = await fetch_card("RESERVED")
    assert card.is_used is True
    assert card.reserved_order_id is None
    assert card.reserved_at is None


async def test_reserved_card_is_preferred_over_free_stock(db, seed_order, seed_card, fetch_order, fetch_card):
    await seed_order("order-x")
    await seed_card("FREE")
    await seed_card("RESERVED", reserved_order_id="order-x", reserved_at=datetime.now())

    await fulfill_order(db, "order-x", "9.99", "T-X")

    assert (await fetch_order("order-x")).card_key == "RESERVED"
    assert (await fetch_card("FREE")).is_used is False


async def test_other_orders_skip_fresh_reservations(db, seed_order, seed_card, fetch_order):
    await seed_order("order-y")
    await seed_card("RESERVED", reserved_order_id="order-x", reserved_at=datetime.now())
    await seed_card("FREE")

    await fulfill_order(db, "order-y", "9.99", "T-Y")

    assert (await fetch_order("order-y")).card_key == "FREE"


async def test_stale_reservation_is_reclaimed(db, seed_order, seed_card, fetch_order, fetch_card):
    await seed_order("order-y")
    await seed_card("RESERVED", reserved_order_id="order-x", reserved_at=datetime.now() - timedelta(minutes=2))

    result = await fulfill_order(db, "order-y", "9.99", "T-Y")

    assert result["order_status"] == ORDER_STATUS_DELIVERED
    assert (await fetch_order("order-y")).card_key == "RESERVED"
    card = await fetch_card("RESERVED")
    assert card.reserved_order_id is None
    assert card.reserved_at is None


async def test_reservation_freshness_is_configurable(db, settings, monkeypatch, seed_order, seed_card, fetch_order):
    monkeypatch.setattr(settings, "reservation_freshness_seconds", 600)
    await seed_order("order-y")
    await seed_card("RESERVED", reserved_order_id="order-x", reserved_at=datetime.now() - timedelta(minutes=2))

    result = await fulfill_order(db, "order-y", "9.99", "T-Y")

    assert result["order_status"] == ORDER_STATUS_PAID


async def test_claim_ignores_app_server_clock(db, monkeypatch, seed_order, seed_card, fetch_order, fetch_card):
    # 앱 서버 시계가 DB 시계보다 9시간 앞선 배포 환경
    skewed = datetime.now() + timedelta(hours=9)
    monkeypatch.setattr(fulfillment_crud, "current_time", lambda: skewed)
    await seed_order("order-x")
    await seed_order("order-y")
    await seed_card("RESERVED", reserved_order_id="order-x", reserved_at=datetime.now())

    other = await fulfill_order(db, "order-y", "9.99", "T-Y")
    assert other["order_status"] == ORDER_STATUS_PAID

    owner = await fulfill_order(db, "order-x", "9.99", "T-X")
    assert owner["order_status"] == ORDER_STATUS_DELIVERED

    card = await fetch_card("RESERVED")
    assert abs(card.used_at - datetime.now()) < timedelta(minutes=5)


async def test_used_cards_are_never_claimed(db, seed_order, seed_card, fetch_order):
    await seed_order("order-1")
    await seed_card("USED", is_used=True, used_at=datetime.now())

    result = await fulfill_order(db, "order-1", "9.99", "T1")

    assert result["order_status"] == ORDER_STATUS_PAID


async def test_reservation_support_is_detected_once(db, session_factory, monkeypatch):
    assert await resolve_reservation_support(db) is True

    async def _fail(_db):
        raise AssertionError("schema inspected twice")

    monkeypatch.setattr(card_schema_crud, "detect_reservation_support", _fail)
    async with session_factory() as session:
        assert await resolve_reservation_support(session) is True


async def test_disabled_mode_skips_reservations(db, settings, monkeypatch, seed_order, seed_card, fetch_order):
    monkeypatch.setattr(settings, "card_reservation_mode", "disabled")
    await seed_order("order-y")
    await seed_card("RESERVED", reserved_order_id="order-x", reserved_at=datetime.now())

    await fulfill_order(db, "order-y", "9.99", "T-Y")

    # 예약을 보지 않는 레거시 전략이므로 예약 카드도 할당됨
    assert (await fetch_order("order-y")).card_key == "RESERVED"


async def _seed_legacy(factory, table, seed_order, *card_keys):
    await seed_order("order-1", factory=factory)
    async with factory() as session:
        for card_key in card_keys:
            await session.execute(insert(table).values(product_id="prod-1", card_key=card_key, is_used=False))
        await session.commit()


async def _legacy_card_rows(factory, table):
    async with factory() as session:
        rows = (await session.execute(select(table).order_by(table.c.id))).all()
    return [(row.card_key, row.is_used) for row in rows]


async def test_legacy_schema_is_detected_and_claimed(legacy_session_factory, legacy_cards, seed_order):
    await _seed_legacy(legacy_session_factory, legacy_cards, seed_order, "LEGACY-A")

    async with legacy_session_factory() as session:
        assert await resolve_reservation_support(session) is False
        await session.rollback()
        result = await fulfill_order(session, "order-1", "9.99", "T1")

    assert result["order_status"] == ORDER_STATUS_DELIVERED
    assert await _legacy_card_rows(legacy_session_factory, legacy_cards) == [("LEGACY-A", True)]


async def test_legacy_null_is_used_counts_as_available(legacy_session_factory, legacy_cards, seed_order):
    await seed_order("order-1", factory=legacy_session_factory)
    async with legacy_session_factory() as session:
        await session.execute(insert(legacy_cards).values(product_id="prod-1", card_key="NULL-FLAG", is_used=None))
        await session.commit()

    async with legacy_session_factory() as session:
        result = await fulfill_order(session, "order-1", "9.99", "T1")

    assert result["card_claimed"] is True


async def test_enabled_mode_on_legacy_schema_falls_back(
    legacy_session_factory, legacy_cards, settings, monkeypatch, seed_order
):
    monkeypatch.setattr(settings, "card_reservation_mode", "enabled")
    await _seed_legacy(legacy_session_factory, legacy_cards, seed_order, "LEGACY-A")

    async with legacy_session_factory() as session:
        result = await fulfill_order(session, "order-1", "9.99", "T1")

    assert result["order_status"] == ORDER_STATUS_DELIVERED
    assert await _legacy_card_rows(legacy_session_factory, legacy_cards) == [("LEGACY-A", True)]

    # 한 번 실패한 뒤로는 레거시 전략 고정
    async with legacy_session_factory() as session:
        assert await resolve_reservation_support(session) is False


async def test_claim_runs_inside_callers_transaction(db, seed_order, seed_card, fetch_card):
    await seed_order("order-1")
    await seed_card("CARD-A")

    order = (await db.execute(select(Order).where(Order.order_id == "order-1"))).scalar_one()
    card_key = await claim_card_for_order(db, order.order_id, order.product_id)
    assert card_key == "CARD-A"
    await db.rollback()

    assert (await fetch_card("CARD-A")).is_used is False
