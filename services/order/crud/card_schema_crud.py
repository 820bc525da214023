"""Card schema capability (reservation column support) CRUD functions."""

from __future__ import annotations

from typing import Optional, Set

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from common.config import get_settings
from common.logger import get_logger
from services.order.models.card_model import Card

logger = get_logger("card_schema_crud")

UNDEFINED_COLUMN_SQLSTATE = "42703"
RESERVATION_COLUMNS = ("reserved_order_id", "reserved_at")

# 프로세스 수명 동안 한 번만 판별하는 예약 지원 여부 (None = 아직 미판별)
_reservation_support: Optional[bool] = None


def is_undefined_column_error(exc: BaseException) -> bool:
    """
    드라이버 에러가 '예약 컬럼 없음'(스키마 비호환)인지 분류

    Args:
        exc: SQLAlchemy DBAPIError 또는 드라이버 예외

    Returns:
        bool: SQLSTATE 42703 이거나 메시지에 예약 컬럼명이 포함된 경우 True
    """
    candidates = [exc, getattr(exc, "orig", None), getattr(exc, "__cause__", None)]
    for err in candidates:
        if err is None:
            continue
        code = getattr(err, "sqlstate", None) or getattr(err, "pgcode", None)
        if code == UNDEFINED_COLUMN_SQLSTATE:
            return True

    # SQLAlchemy 에러 문자열에는 실행한 SQL이 포함되므로 드라이버 메시지만 검사
    orig = getattr(exc, "orig", None)
    message = str(orig if orig is not None else exc)
    return any(column in message for column in RESERVATION_COLUMNS)


def _column_names(sync_conn) -> Set[str]:
    return {column["name"] for column in inspect(sync_conn).get_columns(Card.__tablename__)}


async def detect_reservation_support(db: AsyncSession) -> bool:
    """
    cards 테이블에 예약 컬럼이 모두 있는지 조회

    Note:
        - SQLAlchemy Inspector를 동기 커넥션에서 실행 (run_sync)
        - 테이블 구조만 조회하며 데이터는 변경하지 않음
    """
    conn = await db.connection()
    columns = await conn.run_sync(_column_names)
    supported = all(column in columns for column in RESERVATION_COLUMNS)
    logger.info(f"카드 예약 컬럼 감지: supported={supported}, columns={sorted(columns)}")
    return supported


async def resolve_reservation_support(db: AsyncSession) -> bool:
    """
    예약 지원 여부 반환 (최초 1회만 스키마 조회)

    Note:
        - CARD_RESERVATION_MODE=enabled/disabled 이면 조회 없이 고정
        - auto 이면 첫 호출에서 감지 후 캐시
    """
    global _reservation_support
    if _reservation_support is not None:
        return _reservation_support

    mode = (get_settings().card_reservation_mode or "auto").strip().lower()
    if mode == "enabled":
        _reservation_support = True
    elif mode == "disabled":
        _reservation_support = False
    else:
        _reservation_support = await detect_reservation_support(db)
    return _reservation_support


def mark_reservation_unsupported(reason: str) -> None:
    """예약 쿼리가 컬럼 없음으로 실패한 경우 레거시 전략으로 전환"""
    global _reservation_support
    if _reservation_support is not False:
        logger.warning(f"카드 예약 미지원 스키마로 전환: reason={reason}")
    _reservation_support = False


def reset_reservation_support() -> None:
    global _reservation_support
    _reservation_support = None
