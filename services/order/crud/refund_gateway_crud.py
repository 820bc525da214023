"""Refund gateway (payment processor refund request) CRUD functions."""

from __future__ import annotations

import json
import re
from typing import Any, Dict

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from common.config import get_settings
from common.errors import (
    GatewayTransportException,
    MissingGatewayConfigException,
    MissingTradeNoException,
    OrderNotFoundException,
)
from common.logger import get_logger
from common.utils import format_amount, truncate_text
from services.order.crud.common import order_http_management_crud
from services.order.crud.refund_compensation_crud import compensate_refunded_order
from services.order.models.order_model import Order

logger = get_logger("refund_gateway_crud")

MESSAGE_MAX_LENGTH = 500
_SUCCESS_PATTERN = re.compile(r"success", re.IGNORECASE)


def _require_merchant_config() -> Dict[str, str]:
    settings = get_settings()
    if not settings.merchant_id or not settings.merchant_key:
        logger.error("결제 게이트웨이 설정 누락: MERCHANT_ID/MERCHANT_KEY")
        raise MissingGatewayConfigException()
    return {"merchant_id": settings.merchant_id, "merchant_key": settings.merchant_key}


async def _get_refundable_order(db: AsyncSession, order_id: str) -> Order:
    order = (await db.execute(select(Order).where(Order.order_id == order_id))).scalar_one_or_none()
    if order is None:
        logger.warning(f"환불 요청할 주문을 찾을 수 없음: order_id={order_id}")
        raise OrderNotFoundException(order_id)
    if not order.trade_no:
        logger.warning(f"환불 요청할 주문에 거래번호 없음: order_id={order_id}")
        raise MissingTradeNoException(order_id)
    return order


def build_refund_form(order: Order, merchant_id: str, merchant_key: str) -> Dict[str, str]:
    """
    게이트웨이 환불 API 폼 필드 구성

    Note:
        - pid/key: 가맹점 ID/키, trade_no: 게이트웨이 거래번호, out_trade_no: 상점 주문 ID
        - money: 주문 금액 (소수점 둘째 자리 고정)
    """
    return {
        "pid": merchant_id,
        "key": merchant_key,
        "trade_no": order.trade_no,
        "out_trade_no": order.order_id,
        "money": format_amount(order.amount),
    }


def parse_refund_success(text: str) -> bool:
    """
    게이트웨이 응답 본문에서 환불 성공 여부 판단

    Note:
        - JSON: code == 1 또는 status == "success" 또는 msg == "success"
        - JSON이 아니면 본문에 "success" 포함 여부 (대소문자 무시)
    """
    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return bool(_SUCCESS_PATTERN.search(text or ""))

    if not isinstance(payload, dict):
        return False
    return payload.get("code") == 1 or payload.get("status") == "success" or payload.get("msg") == "success"


async def get_refund_params(db: AsyncSession, order_id: str) -> Dict[str, str]:
    """
    클라이언트에서 직접 게이트웨이로 환불 폼을 제출할 때 쓸 파라미터 반환
    """
    merchant = _require_merchant_config()
    order = await _get_refundable_order(db, order_id)
    return build_refund_form(order, merchant["merchant_id"], merchant["merchant_key"])


async def initiate_refund(db: AsyncSession, order_id: str) -> Dict[str, Any]:
    """
    게이트웨이에 환불을 요청하고, 성공 시 환불 보상 트랜잭션 실행

    Args:
        db: 데이터베이스 세션
        order_id: 환불할 주문 ID

    Returns:
        dict: ok, processed, message(응답 본문 앞 500자)

    Raises:
        MissingGatewayConfigException: 가맹점 설정 없음
        OrderNotFoundException: 주문 없음
        MissingTradeNoException: 거래번호 없음
        GatewayTransportException: 네트워크 실패 또는 non-2xx 응답

    Note:
        - 게이트웨이가 성공을 반환하지 않으면 processed=False (에러 아님)
        - 재시도/백오프 없음
    """
    settings = get_settings()
    merchant = _require_merchant_config()
    order = await _get_refundable_order(db, order_id)
    form = build_refund_form(order, merchant["merchant_id"], merchant["merchant_key"])
    # 보상 트랜잭션이 주문을 다시 잠금 조회하므로 읽기 트랜잭션 종료
    await db.rollback()

    logger.info(f"게이트웨이 환불 요청: order_id={order_id}, money={form['money']}")
    try:
        resp = await order_http_management_crud._post_form(
            settings.refund_gateway_url,
            data=form,
            timeout=settings.refund_gateway_timeout,
        )
    except httpx.RequestError as e:
        raise GatewayTransportException(f"환불 게이트웨이 연결 실패: {type(e).__name__}") from e

    text = resp.text or ""
    success = parse_refund_success(text)

    if not resp.is_success:
        logger.error(
            f"환불 게이트웨이 응답 오류: order_id={order_id}, status_code={resp.status_code}, "
            f"body={truncate_text(text, 200)}"
        )
        raise GatewayTransportException(
            f"환불 게이트웨이 요청 실패 ({resp.status_code})",
            upstream_status=resp.status_code,
        )

    message = truncate_text(text, MESSAGE_MAX_LENGTH)
    if not success:
        logger.info(f"게이트웨이 환불 미처리: order_id={order_id}, body={truncate_text(text, 200)}")
        return {"ok": True, "processed": False, "message": message}

    await compensate_refunded_order(db, order_id)
    logger.info(f"게이트웨이 환불 및 보상 처리 완료: order_id={order_id}")
    return {"ok": True, "processed": True, "message": message}
