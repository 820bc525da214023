"""Order HTTP utility management CRUD functions."""

from __future__ import annotations

from typing import Dict

import httpx

from common.logger import get_logger

logger = get_logger("order_crud")

async def _post_form(url: str, data: Dict[str, str], timeout: float = 20.0) -> httpx.Response:
    """
    비동기 HTTP POST 유틸 (application/x-www-form-urlencoded)
    
    Args:
        url: 요청할 URL
        data: 폼 필드
        timeout: 연결/읽기 통합 타임아웃(초, 기본값: 20.0)
    
    Returns:
        httpx.Response: HTTP 응답 객체 (상태 코드 판단은 호출자 책임)
        
    Note:
        - httpx.AsyncClient를 context manager로 생성하여 커넥션 누수 방지
        - 네트워크 예외(httpx.RequestError)는 그대로 전파
    """
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.post(url, data=data)
    except httpx.RequestError as e:
        logger.error(f"HTTP POST 요청 실패: url={url}, error={str(e)}, error_type={type(e).__name__}")
        raise
