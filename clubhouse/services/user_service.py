"""User service — member administration and membership approval."""

import logging
from typing import Optional, List, Any

from sqlalchemy.orm import Session

from clubhouse.models.role import Role
from clubhouse.models.user import User
from clubhouse.core.context import APPROVED, PENDING_INFO, PENDING_STATUSES, REJECTED
from clubhouse.core.exceptions import NotFoundError, PolicyViolationError, ResourceConflictError
from clubhouse.core.security import hash_password
from clubhouse.services.role_service import UNSET

logger = logging.getLogger("clubhouse.users")


class UserService:
    """Creates members, assigns ranks and decides pending memberships.

    This is the only place a member's ``rutbe`` is assigned; the rank decides
    both the permission matrix and, through its group, the reachable scopes.
    """

    @staticmethod
    def list_users(db: Session) -> List[User]:
        """All members, newest first."""
        return db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def _check_rank(db: Session, rutbe: Optional[str]) -> Optional[str]:
        rutbe = (rutbe or "").strip() or None
        if rutbe and not db.query(Role.id).filter(Role.name == rutbe).first():
            raise NotFoundError(f"Rank '{rutbe}' not found")
        return rutbe

    @staticmethod
    def _check_username(db: Session, username: Optional[str], exclude_id: Optional[int] = None) -> str:
        username = (username or "").strip()
        if not username:
            raise PolicyViolationError("Username is required")
        query = db.query(User.id).filter(User.username == username)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise ResourceConflictError(f"User {username} already exists")
        return username

    @staticmethod
    def create_user(
        db: Session,
        username: str,
        password: str,
        full_name: Optional[str] = None,
        rutbe: Optional[str] = None,
        membership_status: str = PENDING_INFO,
    ) -> User:
        """Create a member. New members wait for approval unless told otherwise."""
        username = UserService._check_username(db, username)
        if not password:
            raise PolicyViolationError("Password is required")

        user = User(
            username=username,
            hashed_password=hash_password(password),
            full_name=(full_name or "").strip() or None,
            rutbe=UserService._check_rank(db, rutbe),
            membership_status=membership_status,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("user created id=%s rank=%s status=%s", user.id, user.rutbe, user.membership_status)
        return user

    @staticmethod
    def update_user(
        db: Session,
        user_id: int,
        username: Optional[str] = None,
        password: Optional[str] = None,
        full_name: Any = UNSET,
        rutbe: Any = UNSET,
    ) -> User:
        """Update a member. Omitted fields are kept; an empty rank clears it."""
        user = UserService.get_user(db, user_id)

        if username is not None and username != user.username:
            user.username = UserService._check_username(db, username, exclude_id=user.id)
        if password:
            user.hashed_password = hash_password(password)
        if full_name is not UNSET:
            user.full_name = (full_name or "").strip() or None
        if rutbe is not UNSET:
            new_rank = UserService._check_rank(db, rutbe)
            if new_rank != user.rutbe:
                logger.info("rank changed user=%s %s -> %s", user.id, user.rutbe, new_rank)
            user.rutbe = new_rank

        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def list_pending(db: Session) -> List[User]:
        """Members waiting for a decision, oldest first."""
        return (
            db.query(User)
            .filter(User.membership_status.in_(PENDING_STATUSES))
            .order_by(User.created_at.asc(), User.id.asc())
            .all()
        )

    @staticmethod
    def decide_membership(db: Session, user_id: int, approve: bool) -> User:
        """Approve or reject a pending membership.

        Rejected members are kept (audit rows point at them) but deactivated,
        so they can no longer sign in.
        """
        user = UserService.get_user(db, user_id)
        if user.membership_status not in PENDING_STATUSES:
            raise PolicyViolationError("This member is not waiting for approval")

        if approve:
            user.membership_status = APPROVED
        else:
            user.membership_status = REJECTED
            user.is_active = False
        db.commit()
        db.refresh(user)
        logger.info("membership %s user=%s", user.membership_status, user.id)
        return user


user_service = UserService()
