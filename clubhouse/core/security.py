"""JWT authentication and permission-matrix authorization helpers."""

import logging
import bcrypt
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from clubhouse.core.config import settings
from clubhouse.core.context import AuthContext
from clubhouse.core.exceptions import forbidden, unauthorized
from clubhouse.core.permissions import Action, Resource, has_permission

logger = logging.getLogger("clubhouse.security")

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    pwd_bytes = plain_password.encode("utf-8")
    hashed_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(pwd_bytes, hashed_bytes)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token carrying the session claims."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token(data: dict) -> str:
    """Create a JWT refresh token."""
    to_encode = {"sub": data["sub"]}
    expire = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRY_DAYS)
    to_encode.update({"exp": expire, "type": "refresh"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, expected_type: str = "access") -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise unauthorized("Invalid or expired token")
    if payload.get("type") != expected_type:
        raise unauthorized("Invalid token type")
    return payload


async def get_auth_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> AuthContext:
    """Build the caller's AuthContext from the JWT Bearer token."""
    if credentials is None:
        raise unauthorized("Not authenticated")
    payload = decode_token(credentials.credentials)
    if payload.get("sub") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )
    ctx = AuthContext.from_claims(payload)
    request.state.user_id = ctx.user_id
    return ctx


async def get_approved_context(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
    """Reject members whose registration is not approved yet."""
    if not ctx.is_approved:
        raise forbidden(f"Membership is '{ctx.membership_status}', approval required")
    return ctx


async def get_current_user_id(ctx: AuthContext = Depends(get_auth_context)) -> int:
    """Extract user_id from the JWT Bearer token."""
    return ctx.user_id


class RequirePermission:
    """Dependency that checks the caller's permission matrix for a (resource, action)."""

    def __init__(self, resource: Resource, action: Optional[Action] = None):
        self.resource = resource
        self.action = action

    async def __call__(self, ctx: AuthContext = Depends(get_approved_context)) -> AuthContext:
        if not has_permission(ctx.permissions, self.resource, self.action):
            logger.info(
                "permission denied user=%s resource=%s action=%s",
                ctx.user_id, self.resource.value, self.action.value if self.action else "*",
            )
            raise forbidden("You are not authorized to perform this action")
        return ctx


# Convenience dependency instances
require_roles_create = RequirePermission(Resource.roles, Action.create)
require_roles_update = RequirePermission(Resource.roles, Action.update)
require_roles_delete = RequirePermission(Resource.roles, Action.delete)
require_events_create = RequirePermission(Resource.events, Action.create)
require_events_read = RequirePermission(Resource.events, Action.read)
require_activity_logs_read = RequirePermission(Resource.activity_logs, Action.read)
require_users_read = RequirePermission(Resource.users, Action.read)
require_users_create = RequirePermission(Resource.users, Action.create)
require_users_update = RequirePermission(Resource.users, Action.update)
require_user_approval = RequirePermission(Resource.user_approval)
require_user_approve = RequirePermission(Resource.user_approval, Action.approve)
require_user_reject = RequirePermission(Resource.user_approval, Action.reject)
