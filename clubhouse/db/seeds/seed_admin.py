"""Seed the first administrator from env vars."""

from sqlalchemy.orm import Session
from clubhouse.models.user import User
from clubhouse.models.role import Role
from clubhouse.core.context import APPROVED
from clubhouse.core.security import hash_password
from clubhouse.core.config import settings


def seed_admin(db: Session) -> None:
    """Create the admin user if not already present."""
    rank = db.query(Role).filter(Role.name == settings.ADMIN_RANK).first()
    if not rank:
        print(f"⚠️  Rank '{settings.ADMIN_RANK}' not found. Run seed_roles first.")
        return

    existing = db.query(User).filter(User.username == settings.ADMIN_USERNAME).first()
    if existing:
        print(f"ℹ️  Admin '{settings.ADMIN_USERNAME}' already exists, skipping.")
        return

    admin = User(
        username=settings.ADMIN_USERNAME,
        hashed_password=hash_password(settings.ADMIN_PASSWORD),
        full_name="Administrator",
        rutbe=rank.name,
        membership_status=APPROVED,
        is_active=True,
    )
    db.add(admin)
    db.commit()
    print(f"✅ Created admin: {settings.ADMIN_USERNAME} ({rank.name})")
