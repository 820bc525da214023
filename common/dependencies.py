from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from common.auth.jwt_handler import verify_token
from common.config import get_admin_usernames
from common.errors import NotAuthenticatedException, UnauthorizedException
from common.logger import get_logger

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/admin/login", auto_error=False)
logger = get_logger("dependencies")

def is_authorized_admin(username: Optional[str]) -> bool:
    """사용자명이 ADMIN_USERS 목록에 있는지 확인 (대소문자 무시)"""
    if not username:
        return False
    return username.strip().lower() in get_admin_usernames()

async def get_current_admin(token: Optional[str] = Depends(oauth2_scheme)) -> str:
    """토큰 기반 관리자 인증 후 사용자명 반환"""
    if not token:
        logger.warning("관리자 API 호출에 토큰 없음")
        raise NotAuthenticatedException()

    payload = verify_token(token)
    if payload is None:
        logger.warning("토큰 검증 실패: 유효하지 않은 토큰")
        raise NotAuthenticatedException("유효하지 않은 토큰입니다.")

    username = payload.get("sub")
    if not is_authorized_admin(username):
        logger.warning(f"관리자 권한 없음: username={username}")
        raise UnauthorizedException()

    logger.debug(f"관리자 인증 성공: username={username}")
    return username
