"""Role group model: the ordered tiers ranks belong to."""

from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship
from clubhouse.db.base import Base


class RoleGroup(Base):
    """Tier of ranks. Higher ``order`` means more privileged."""
    __tablename__ = "role_groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(String(255), nullable=True)
    order = Column(Integer, nullable=False, default=0, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    roles = relationship("Role", back_populates="group", order_by="Role.name", lazy="selectin")
