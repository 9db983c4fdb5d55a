"""Users API router — member administration and membership approval."""

from typing import List
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from clubhouse.db.session import get_db
from clubhouse.schemas.schemas import UserCreate, UserUpdate, UserOut
from clubhouse.services.user_service import user_service
from clubhouse.services.role_service import UNSET
from clubhouse.services.audit_service import audit_service
from clubhouse.core.context import AuthContext
from clubhouse.core.security import (
    require_users_read, require_users_create, require_users_update,
    require_user_approval, require_user_approve, require_user_reject,
)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=List[UserOut])
async def list_users(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_users_read),
):
    """List members (users.read, boolean or ``{"enabled": true}``)."""
    return [UserOut.model_validate(u) for u in user_service.list_users(db)]


@router.post("", response_model=UserOut, status_code=201)
async def create_user(
    body: UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_users_create),
):
    """Create a member; they wait for approval before using the club."""
    user = UserOut.model_validate(
        user_service.create_user(db, body.username, body.password, body.full_name, body.rutbe)
    )
    audit_service.log_from_request(
        db, request, ctx,
        action="user.created",
        resource_type="user",
        resource_id=user.id,
        new_value={"username": user.username, "rutbe": user.rutbe},
    )
    return user


@router.get("/approval", response_model=List[UserOut])
async def list_pending(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_user_approval),
):
    """Members waiting for approval."""
    return [UserOut.model_validate(u) for u in user_service.list_pending(db)]


@router.put("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: int,
    body: UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_users_update),
):
    """Update a member, including their rank."""
    before = user_service.get_user(db, user_id)
    old = {"username": before.username, "rutbe": before.rutbe}
    sent = body.model_fields_set
    user = UserOut.model_validate(
        user_service.update_user(
            db, user_id,
            username=body.username,
            password=body.password,
            full_name=body.full_name if "full_name" in sent else UNSET,
            rutbe=body.rutbe if "rutbe" in sent else UNSET,
        )
    )
    audit_service.log_from_request(
        db, request, ctx,
        action="user.updated",
        resource_type="user",
        resource_id=user_id,
        old_value=old,
        new_value={
            "username": user.username,
            "rutbe": user.rutbe,
            "password_changed": bool(body.password),
        },
    )
    return user


@router.post("/{user_id}/approve", response_model=UserOut)
async def approve_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_user_approve),
):
    user = UserOut.model_validate(user_service.decide_membership(db, user_id, approve=True))
    audit_service.log_from_request(
        db, request, ctx,
        action="user.approved",
        resource_type="user",
        resource_id=user_id,
        new_value={"username": user.username, "membership_status": user.membership_status},
    )
    return user


@router.post("/{user_id}/reject", response_model=UserOut)
async def reject_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_user_reject),
):
    user = UserOut.model_validate(user_service.decide_membership(db, user_id, approve=False))
    audit_service.log_from_request(
        db, request, ctx,
        action="user.rejected",
        resource_type="user",
        resource_id=user_id,
        new_value={"username": user.username, "membership_status": user.membership_status},
    )
    return user
