# utils.py
"""
공통 유틸 함수 모음 (시간, 문자열, 금액)
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from common.logger import get_logger

logger = get_logger("utils")

def now() -> datetime:
    """DB 저장용 현재 시각 (naive, 서버 로컬 시간)"""
    return datetime.now()

def truncate_text(text: Optional[str], max_length: int = 100) -> Optional[str]:
    """최대 길이 초과 시 텍스트 자르기 (말줄임표 없이 정확히 max_length자)"""
    if text is None:
        return None
    if len(text) > max_length:
        logger.debug(f"truncate_text() 텍스트 자름: {len(text)}자에서 {max_length}자로")
        return text[:max_length]
    return text

def to_decimal(value) -> Decimal:
    """float/str/Decimal 금액을 Decimal로 변환 (float는 문자열 경유로 이진 오차 제거)"""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"금액 형식이 올바르지 않습니다: {value!r}") from e

def format_amount(value) -> str:
    """금액을 소수점 둘째 자리까지 고정 포맷"""
    return f"{to_decimal(value):.2f}"
