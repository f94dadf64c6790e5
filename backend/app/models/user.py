from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from app.db.base_class import Base

class User(Base):
    __tablename__ = "sys_user"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)

    # TOTP two-factor
    two_factor_enabled = Column(Boolean, default=False, nullable=False)
    totp_secret = Column(String(64), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
