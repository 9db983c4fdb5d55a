"""Role groups API router — ordered tiers of ranks."""

from typing import List
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from clubhouse.db.session import get_db
from clubhouse.schemas.schemas import (
    RoleGroupCreate, RoleGroupUpdate, RoleGroupOut, MessageResponse,
)
from clubhouse.services.role_group_service import role_group_service
from clubhouse.services.audit_service import audit_service
from clubhouse.core.context import AuthContext
from clubhouse.core.security import get_approved_context, require_roles_update

router = APIRouter(prefix="/role-groups", tags=["role-groups"])


@router.get("", response_model=List[RoleGroupOut])
async def list_groups(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    """List groups by ascending order, each with its ranks."""
    return [RoleGroupOut.model_validate(g) for g in role_group_service.list_groups(db)]


@router.post("/initialize", response_model=List[RoleGroupOut], status_code=201)
async def initialize_groups(
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_roles_update),
):
    """Create the default tiers on a fresh install."""
    groups = [RoleGroupOut.model_validate(g) for g in role_group_service.initialize_defaults(db)]
    audit_service.log_from_request(
        db, request, ctx,
        action="role_group.initialized",
        resource_type="role_group",
        new_value=[g.model_dump() for g in groups],
    )
    return groups


@router.get("/{group_id}", response_model=RoleGroupOut)
async def get_group(
    group_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    return RoleGroupOut.model_validate(role_group_service.get_group(db, group_id))


@router.post("", response_model=RoleGroupOut, status_code=201)
async def create_group(
    body: RoleGroupCreate,
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_roles_update),
):
    group = RoleGroupOut.model_validate(
        role_group_service.create_group(db, body.name, body.description, body.order)
    )
    audit_service.log_from_request(
        db, request, ctx,
        action="role_group.created",
        resource_type="role_group",
        resource_id=group.id,
        new_value=group.model_dump(),
    )
    return group


@router.put("/{group_id}", response_model=RoleGroupOut)
async def update_group(
    group_id: int,
    body: RoleGroupUpdate,
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_roles_update),
):
    old = RoleGroupOut.model_validate(role_group_service.get_group(db, group_id)).model_dump()
    group = RoleGroupOut.model_validate(
        role_group_service.update_group(db, group_id, body.name, body.description, body.order)
    )
    audit_service.log_from_request(
        db, request, ctx,
        action="role_group.updated",
        resource_type="role_group",
        resource_id=group_id,
        old_value=old,
        new_value=group.model_dump(),
    )
    return group


@router.delete("/{group_id}", response_model=MessageResponse)
async def delete_group(
    group_id: int,
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_roles_update),
):
    """Delete a group with no ranks, messages or polls."""
    name = role_group_service.get_group(db, group_id).name
    role_group_service.delete_group(db, group_id)
    audit_service.log_from_request(
        db, request, ctx,
        action="role_group.deleted",
        resource_type="role_group",
        resource_id=group_id,
        old_value={"name": name},
    )
    return MessageResponse(message="Role group deleted")
