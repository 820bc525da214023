"""
카드(CARDS) ORM 모델 정의
- reserved_order_id / reserved_at 컬럼은 배포 스키마에 따라 없을 수 있음
  (레거시 스키마에서는 예약 컬럼을 참조하지 않는 쿼리만 사용)
"""
from sqlalchemy import Boolean, Column, DateTime, Integer, String

from common.database.base_postgres import ShopBase

class Card(ShopBase):
    """cards 테이블 (상품별 1회용 카드키 재고)"""
    __tablename__ = "cards"

    id = Column("id", Integer, primary_key=True, autoincrement=True)
    product_id = Column("product_id", String(64), nullable=False, index=True)
    card_key = Column("card_key", String(512), nullable=False)
    is_used = Column("is_used", Boolean, nullable=True, default=False)
    used_at = Column("used_at", DateTime, nullable=True)
    reserved_order_id = Column("reserved_order_id", String(64), nullable=True, index=True)
    reserved_at = Column("reserved_at", DateTime, nullable=True)
