"""
포인트 보유 사용자(LOGIN_USERS) ORM 모델
"""
from sqlalchemy import Column, Integer, String

from common.database.base_postgres import ShopBase

class LoginUser(ShopBase):
    """login_users 테이블 (적립 포인트 잔액)"""
    __tablename__ = "login_users"

    user_id = Column("user_id", String(64), primary_key=True)
    username = Column("username", String(100), nullable=True)
    points = Column("points", Integer, nullable=False, default=0)
