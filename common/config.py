# common/config.py

import os
from decimal import Decimal
from functools import lru_cache
from typing import Optional, Set

from pydantic import Field
from pydantic_settings import BaseSettings

from common.logger import get_logger

logger = get_logger("config", level="INFO")

class Settings(BaseSettings):
    jwt_secret: str = Field(..., env="JWT_SECRET")
    jwt_algorithm: str = Field("HS256", env="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60, env="ACCESS_TOKEN_EXPIRE_MINUTES")

    webhook_secret: Optional[str] = Field(None, env="WEBHOOK_SECRET")  # 결제 통지 서명 검증용 시크릿 키

    postgres_shop_url: str = Field(..., env="POSTGRES_SHOP_URL")
    redis_url: str = Field("redis://redis:6379/0", env="REDIS_URL")

    # 관리자 계정 목록 (쉼표 구분, 대소문자 무시)
    admin_users: str = Field("", env="ADMIN_USERS")

    # 결제 게이트웨이 (환불 요청용)
    merchant_id: Optional[str] = Field(None, env="MERCHANT_ID")
    merchant_key: Optional[str] = Field(None, env="MERCHANT_KEY")
    refund_gateway_url: str = Field("https://credit.linux.do/epay/api.php", env="REFUND_GATEWAY_URL")
    refund_gateway_timeout: float = Field(20.0, env="REFUND_GATEWAY_TIMEOUT")

    # 카드 예약/금액 검증 정책
    reservation_freshness_seconds: int = Field(60, env="RESERVATION_FRESHNESS_SECONDS")
    amount_epsilon: Decimal = Field(Decimal("0.01"), env="AMOUNT_EPSILON")
    card_reservation_mode: str = Field("auto", env="CARD_RESERVATION_MODE")  # auto | enabled | disabled

    app_name: str = Field("Card Shop Service", env="APP_NAME")
    debug: bool = Field(False, env="DEBUG")

    class Config:
        env_file = os.path.join(os.path.dirname(__file__), "..", ".env")
        env_file_encoding = "utf-8"
        extra = "ignore"  # 정의되지 않은 환경변수 무시

@lru_cache()
def get_settings() -> Settings:
    logger.debug("환경 변수에서 애플리케이션 설정 로드 중")
    try:
        settings = Settings()
        logger.info(f"설정 로드 완료: 앱명={settings.app_name}, 디버그={settings.debug}")
        logger.debug(f"예약 모드={settings.card_reservation_mode}, 예약 유효시간={settings.reservation_freshness_seconds}초")
        return settings
    except Exception as e:
        logger.error(f"설정 로드 실패: {str(e)}")
        raise

def get_admin_usernames() -> Set[str]:
    """
    ADMIN_USERS 환경변수를 파싱하여 관리자 사용자명 집합 반환
    - 공백 제거, 소문자 변환, 빈 항목 무시
    """
    settings = get_settings()
    return {
        name.strip().lower()
        for name in (settings.admin_users or "").split(",")
        if name.strip()
    }
