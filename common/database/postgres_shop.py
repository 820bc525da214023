"""
PostgreSQL 상점 DB 세션 (orders / cards / login_users / refund_requests)
"""
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from common.config import get_settings
from common.logger import get_logger

logger = get_logger("postgres_shop")

settings = get_settings()
engine = create_async_engine(settings.postgres_shop_url, echo=settings.debug, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

logger.info(f"PostgreSQL Shop 엔진 생성됨, 드라이버: {engine.url.drivername}")
logger.info(f"디버그 모드: {settings.debug}")

async def get_postgres_shop_db() -> AsyncGenerator[AsyncSession, None]:
    """PostgreSQL 상점 DB 세션 반환"""
    logger.debug("PostgreSQL 상점 데이터베이스 세션 생성 중")
    async with SessionLocal() as session:
        yield session
    logger.debug("PostgreSQL 상점 데이터베이스 세션 종료됨")
