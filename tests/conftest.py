"""
주문/카드 테스트 공통 픽스처
- SQLite(aiosqlite) 파일 DB를 테스트마다 새로 생성
- SAVEPOINT 사용을 위해 드라이버 자동 BEGIN을 끄고 BEGIN IMMEDIATE를 직접 발행
  (쓰기 트랜잭션이 직렬화되어 동시 발급 테스트도 가능)
"""
import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("POSTGRES_SHOP_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ADMIN_USERS", "Alice, ops-admin")
os.environ.setdefault("MERCHANT_ID", "1001")
os.environ.setdefault("MERCHANT_KEY", "merchant-secret")
os.environ.setdefault("REFUND_GATEWAY_URL", "https://gateway.test/epay/api.php")

from datetime import datetime
from decimal import Decimal
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy import Boolean, Column, DateTime, Integer, MetaData, String, Table, event, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from common.config import get_settings
from common.database.base_postgres import ShopBase
from services.order.crud.card_schema_crud import reset_reservation_support
from services.order.models.card_model import Card
from services.order.models.login_user_model import LoginUser
from services.order.models.order_model import ORDER_STATUS_PENDING, Order
from services.order.models.refund_request_model import RefundRequest


def _enable_sqlite_savepoints(engine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        # aiosqlite의 자동 BEGIN 비활성화
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


# 예약 컬럼이 없는 구버전 cards 테이블
legacy_metadata = MetaData()
legacy_cards_table = Table(
    "cards",
    legacy_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("product_id", String(64), nullable=False),
    Column("card_key", String(512), nullable=False),
    Column("is_used", Boolean, nullable=True, default=False),
    Column("used_at", DateTime, nullable=True),
)


async def _make_engine(tmp_path, name: str):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / name}")
    _enable_sqlite_savepoints(engine)
    return engine


@pytest.fixture(autouse=True)
def _reset_card_schema_flag():
    reset_reservation_support()
    yield
    reset_reservation_support()


@pytest.fixture
def settings(monkeypatch):
    """캐시된 Settings 객체 (monkeypatch로 필드 변경 후 자동 복구)"""
    return get_settings()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = await _make_engine(tmp_path, "shop.db")
    async with engine.begin() as conn:
        await conn.run_sync(ShopBase.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def legacy_engine(tmp_path):
    """예약 컬럼이 없는 레거시 스키마"""
    engine = await _make_engine(tmp_path, "legacy_shop.db")
    tables = [Order.__table__, LoginUser.__table__, RefundRequest.__table__]
    async with engine.begin() as conn:
        await conn.run_sync(lambda sync_conn: ShopBase.metadata.create_all(sync_conn, tables=tables))
        await conn.run_sync(legacy_metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def legacy_cards():
    return legacy_cards_table


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def legacy_session_factory(legacy_engine):
    return async_sessionmaker(legacy_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def seed_order(session_factory):
    async def _seed(
        order_id: str,
        *,
        product_id: str = "prod-1",
        amount: str = "9.99",
        status: str = ORDER_STATUS_PENDING,
        user_id: Optional[str] = None,
        points_used: int = 0,
        trade_no: Optional[str] = None,
        card_key: Optional[str] = None,
        factory=None,
    ) -> None:
        async with (factory or session_factory)() as session:
            session.add(Order(
                order_id=order_id,
                product_id=product_id,
                amount=Decimal(amount),
                status=status,
                user_id=user_id,
                points_used=points_used,
                trade_no=trade_no,
                card_key=card_key,
                created_at=datetime.now(),
            ))
            await session.commit()
    return _seed


@pytest.fixture
def seed_card(session_factory):
    async def _seed(
        card_key: str,
        *,
        product_id: str = "prod-1",
        is_used: bool = False,
        used_at: Optional[datetime] = None,
        reserved_order_id: Optional[str] = None,
        reserved_at: Optional[datetime] = None,
    ) -> None:
        async with session_factory() as session:
            session.add(Card(
                product_id=product_id,
                card_key=card_key,
                is_used=is_used,
                used_at=used_at,
                reserved_order_id=reserved_order_id,
                reserved_at=reserved_at,
            ))
            await session.commit()
    return _seed


@pytest.fixture
def seed_user(session_factory):
    async def _seed(user_id: str, points: int = 0) -> None:
        async with session_factory() as session:
            session.add(LoginUser(user_id=user_id, username=user_id, points=points))
            await session.commit()
    return _seed


@pytest.fixture
def fetch_order(session_factory):
    async def _fetch(order_id: str) -> Optional[Order]:
        async with session_factory() as session:
            return (await session.execute(select(Order).where(Order.order_id == order_id))).scalar_one_or_none()
    return _fetch


@pytest.fixture
def fetch_card(session_factory):
    async def _fetch(card_key: str) -> Optional[Card]:
        async with session_factory() as session:
            return (await session.execute(select(Card).where(Card.card_key == card_key))).scalar_one_or_none()
    return _fetch


@pytest.fixture
def fetch_user(session_factory):
    async def _fetch(user_id: str) -> Optional[LoginUser]:
        async with session_factory() as session:
            return (await session.execute(select(LoginUser).where(LoginUser.user_id == user_id))).scalar_one_or_none()
    return _fetch
