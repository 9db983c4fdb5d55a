"""User model."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, func
from clubhouse.db.base import Base


class User(Base):
    """Club member. ``rutbe`` holds the rank name, not a foreign key."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    rutbe = Column(String(100), nullable=True, index=True)
    membership_status = Column(String(32), nullable=False, default="approved")
    two_factor_enabled = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
