"""
환불 요청(REFUND_REQUESTS) ORM 모델
- 일부 배포 환경에는 테이블이 없을 수 있음 (환불 처리 시 선택 단계로만 갱신)
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from common.database.base_postgres import ShopBase

REFUND_REQUEST_PENDING = "pending"
REFUND_REQUEST_PROCESSED = "processed"
REFUND_REQUEST_REJECTED = "rejected"

class RefundRequest(ShopBase):
    """refund_requests 테이블"""
    __tablename__ = "refund_requests"

    id = Column("id", Integer, primary_key=True, autoincrement=True)
    order_id = Column("order_id", String(64), nullable=False, index=True)
    user_id = Column("user_id", String(64), nullable=True)
    reason = Column("reason", Text, nullable=True)
    status = Column("status", String(20), nullable=False, default=REFUND_REQUEST_PENDING)
    created_at = Column("created_at", DateTime, nullable=False, default=datetime.now)
    updated_at = Column("updated_at", DateTime, nullable=True)
    processed_at = Column("processed_at", DateTime, nullable=True)
