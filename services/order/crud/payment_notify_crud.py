"""Payment notification (gateway webhook) CRUD functions."""

from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from common.config import get_settings
from common.errors import NotAuthenticatedException, ValidationException
from common.logger import get_logger
from services.order.crud.fulfillment_crud import fulfill_order
from services.order.schemas.fulfillment_schema import PaymentNotifyRequest

logger = get_logger("payment_notify_crud")


def sign_webhook_body(body_bytes: bytes, secret: str) -> str:
    mac = hmac.new(secret.encode("utf-8"), body_bytes, hashlib.sha256).digest()
    return base64.b64encode(mac).decode("ascii")


# 게이트웨이 콜백의 서명을 검증
def verify_webhook_signature(body_bytes: bytes, signature_b64: Optional[str], secret: str) -> bool:
    if not signature_b64:
        return False
    # 타이밍 공격 방지 비교
    return hmac.compare_digest(sign_webhook_body(body_bytes, secret), signature_b64)


async def apply_payment_notification(
    db: AsyncSession,
    *,
    raw_body: bytes,
    signature_b64: Optional[str],
) -> Dict[str, Any]:
    """
    결제 게이트웨이 → 상점 결제 완료 통지 처리
    - WEBHOOK_SECRET이 설정되어 있으면 HMAC 서명 검증 필수
    - 검증 후 fulfill_order 호출 (중복 통지는 already_processed로 응답)
    """
    secret = get_settings().webhook_secret
    if secret:
        if not verify_webhook_signature(raw_body, signature_b64, secret):
            logger.warning(f"결제 통지 서명 검증 실패: signature={(signature_b64 or '')[:20]}...")
            raise NotAuthenticatedException("결제 통지 서명이 올바르지 않습니다.")
    else:
        logger.info("WEBHOOK_SECRET이 설정되지 않아 결제 통지 서명 검증 생략")

    try:
        notification = PaymentNotifyRequest.model_validate_json(raw_body)
    except ValidationError as e:
        logger.error(f"결제 통지 바디 파싱 실패: {e.error_count()}개 오류")
        raise ValidationException("결제 통지 형식이 올바르지 않습니다.") from e

    logger.info(f"결제 통지 수신: order_id={notification.order_id}, trade_no={notification.trade_no}")
    return await fulfill_order(
        db,
        notification.order_id,
        notification.paid_amount,
        notification.trade_no,
    )
