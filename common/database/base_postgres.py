"""
PostgreSQL 상점 DB(주문/카드) ORM Base
"""
from sqlalchemy.orm import declarative_base

ShopBase = declarative_base()
