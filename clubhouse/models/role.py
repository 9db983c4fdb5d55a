"""Role (rank) model for the permission matrix."""

import json

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship
from clubhouse.db.base import Base


class Role(Base):
    """Rank with a JSON permission matrix and an optional owning group."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(String(255), nullable=True)
    permissions_json = Column(Text, nullable=True)  # {"resource": {"action": bool}}
    group_id = Column(Integer, ForeignKey("role_groups.id"), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    group = relationship("RoleGroup", back_populates="roles")

    @property
    def permissions(self) -> dict:
        if not self.permissions_json:
            return {}
        return json.loads(self.permissions_json)

    @permissions.setter
    def permissions(self, value: dict) -> None:
        self.permissions_json = json.dumps(value)
