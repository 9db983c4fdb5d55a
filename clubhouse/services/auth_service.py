"""Auth service — JWT login, refresh and session claims."""

from typing import Dict, Any

from sqlalchemy.orm import Session

from clubhouse.models.user import User
from clubhouse.models.role import Role
from clubhouse.core.security import (
    verify_password, create_access_token, create_refresh_token, decode_token,
)
from clubhouse.core.context import APPROVED
from clubhouse.core.exceptions import AuthenticationError, NotFoundError
from clubhouse.db.base import utcnow


class AuthService:
    """Handles authentication and token issue."""

    @staticmethod
    def session_claims(db: Session, user: User) -> Dict[str, Any]:
        """Claims carried by the access token.

        The permission matrix is copied from the user's rank at issue time.
        """
        permissions: Dict[str, Any] = {}
        if user.rutbe:
            role = db.query(Role).filter(Role.name == user.rutbe).first()
            if role:
                permissions = role.permissions
        return {
            "sub": str(user.id),
            "username": user.username,
            "rutbe": user.rutbe,
            "permissions": permissions,
            "membership_status": user.membership_status or APPROVED,
        }

    @staticmethod
    def authenticate(db: Session, username: str, password: str) -> Dict[str, Any]:
        """Authenticate user and return JWT tokens.

        Raises:
            AuthenticationError: If credentials are invalid.
        """
        user = db.query(User).filter(User.username == username).first()
        if not user or not verify_password(password, user.hashed_password):
            raise AuthenticationError("Invalid username or password")

        if not user.is_active:
            raise AuthenticationError("Account is deactivated")

        token_data = AuthService.session_claims(db, user)
        access_token = create_access_token(token_data)
        refresh_token = create_refresh_token(token_data)

        user.last_login_at = utcnow()
        db.commit()

        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "user": {
                "id": user.id,
                "username": user.username,
                "full_name": user.full_name,
                "rutbe": user.rutbe,
                "membership_status": user.membership_status,
            },
        }

    @staticmethod
    def refresh_access_token(db: Session, refresh_token: str) -> Dict[str, Any]:
        """Issue a new access token; rank and permissions are re-read."""
        payload = decode_token(refresh_token, expected_type="refresh")

        user = db.query(User).filter(User.id == int(payload["sub"])).first()
        if not user or not user.is_active:
            raise AuthenticationError("User not found or deactivated")

        return {
            "access_token": create_access_token(AuthService.session_claims(db, user)),
            "token_type": "bearer",
        }

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        """Get a user by id."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError(f"User {user_id} not found")
        return user


auth_service = AuthService()
