"""
주문(ORDERS) ORM 모델 및 주문 상태 코드 정의
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, Numeric, String

from common.database.base_postgres import ShopBase

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_PAID = "paid"
ORDER_STATUS_DELIVERED = "delivered"
ORDER_STATUS_CANCELLED = "cancelled"
ORDER_STATUS_REFUNDED = "refunded"

# 결제 통지로 발급(fulfill) 가능한 상태
FULFILLABLE_STATUSES = (ORDER_STATUS_PENDING, ORDER_STATUS_CANCELLED)

class Order(ShopBase):
    """
    orders 테이블 (주문)
    - card_key는 status가 delivered일 때만 채워진다
    """
    __tablename__ = "orders"

    order_id = Column("order_id", String(64), primary_key=True)
    product_id = Column("product_id", String(64), nullable=False, index=True)
    amount = Column("amount", Numeric(10, 2), nullable=False)
    status = Column("status", String(20), nullable=False, default=ORDER_STATUS_PENDING)
    trade_no = Column("trade_no", String(128), nullable=True)
    card_key = Column("card_key", String(512), nullable=True)
    user_id = Column("user_id", String(64), nullable=True, index=True)
    points_used = Column("points_used", Integer, nullable=False, default=0)
    paid_at = Column("paid_at", DateTime, nullable=True)
    delivered_at = Column("delivered_at", DateTime, nullable=True)
    created_at = Column("created_at", DateTime, nullable=False, default=datetime.now)
