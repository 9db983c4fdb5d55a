"""Roles API router — rank administration."""

from typing import List
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from clubhouse.db.session import get_db
from clubhouse.schemas.schemas import RoleCreate, RoleUpdate, RoleOut, MessageResponse
from clubhouse.services.role_service import role_service, UNSET
from clubhouse.services.audit_service import audit_service
from clubhouse.core.context import AuthContext
from clubhouse.core.security import (
    get_approved_context, require_roles_create, require_roles_update, require_roles_delete,
)

router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("", response_model=List[RoleOut])
async def list_roles(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    """List all ranks."""
    return [RoleOut.model_validate(r) for r in role_service.list_roles(db)]


@router.get("/{role_id}", response_model=RoleOut)
async def get_role(
    role_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    return RoleOut.model_validate(role_service.get_role(db, role_id))


@router.post("", response_model=RoleOut, status_code=201)
async def create_role(
    body: RoleCreate,
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_roles_create),
):
    """Create a rank."""
    role = role_service.create_role(
        db, body.name, body.description, body.permissions, body.group_id
    )
    out = RoleOut.model_validate(role)
    audit_service.log_from_request(
        db, request, ctx,
        action="role.created",
        resource_type="role",
        resource_id=role.id,
        new_value=out.model_dump(),
    )
    return out


@router.put("/{role_id}", response_model=RoleOut)
async def update_role(
    role_id: int,
    body: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_roles_update),
):
    """Update a rank. ``group_id`` is only touched when present in the body."""
    old = RoleOut.model_validate(role_service.get_role(db, role_id)).model_dump()
    group_id = body.group_id if "group_id" in body.model_fields_set else UNSET
    role = role_service.update_role(
        db, role_id, body.name, body.description, body.permissions, group_id
    )
    out = RoleOut.model_validate(role)
    audit_service.log_from_request(
        db, request, ctx,
        action="role.updated",
        resource_type="role",
        resource_id=role_id,
        old_value=old,
        new_value=out.model_dump(),
    )
    return out


@router.delete("/{role_id}", response_model=MessageResponse)
async def delete_role(
    role_id: int,
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_roles_delete),
):
    """Delete a rank no user holds."""
    name = role_service.get_role(db, role_id).name
    role_service.delete_role(db, role_id)
    audit_service.log_from_request(
        db, request, ctx,
        action="role.deleted",
        resource_type="role",
        resource_id=role_id,
        old_value={"name": name},
    )
    return MessageResponse(message="Rank deleted")
