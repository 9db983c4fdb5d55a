"""Messages API router — scoped chat."""

from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clubhouse.db.session import get_db
from clubhouse.schemas.schemas import (
    MessageCreate, MessageEdit, MessageOut, ForwardRequest, ReactionRequest,
    StarRequest, StarResponse, PinRequest, ReadReceiptOut, ScopesResponse, ScopeOut,
    MessageResponse,
)
from clubhouse.services.message_service import message_service
from clubhouse.services.scope_service import scope_service
from clubhouse.models.role_group import RoleGroup
from clubhouse.core.context import AuthContext
from clubhouse.core.security import get_approved_context

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("", response_model=List[MessageOut])
async def list_messages(
    group_id: Optional[int] = Query(None),
    scope: Optional[str] = Query(None, description="'global' reads the unscoped channel only"),
    before: Optional[datetime] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    """Messages of one scope, or of every reachable scope when none is given."""
    messages = message_service.list_messages(
        db, ctx, group_id, before, limit, unscoped_only=(scope == "global" and group_id is None)
    )
    return [MessageOut.model_validate(m) for m in messages]


@router.post("", response_model=MessageOut, status_code=201)
async def post_message(
    body: MessageCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    message = message_service.post_message(
        db, ctx, body.content, body.group_id, body.type, body.replied_to_id
    )
    return MessageOut.model_validate(message)


@router.get("/scopes", response_model=ScopesResponse)
async def list_scopes(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    """Conversations the caller can open."""
    visible = scope_service.visible_scopes(db, ctx)
    scopes = []
    if visible.include_unscoped:
        scopes.append(ScopeOut(group_id=None, name="global"))
    if visible.group_ids:
        groups = (
            db.query(RoleGroup)
            .filter(RoleGroup.id.in_(visible.group_ids))
            .order_by(RoleGroup.order.desc(), RoleGroup.id.asc())
            .all()
        )
        scopes.extend(ScopeOut(group_id=g.id, name=g.name, order=g.order) for g in groups)
    return ScopesResponse(user_order=scope_service.user_order(db, ctx), scopes=scopes)


@router.get("/search", response_model=List[MessageOut])
async def search_messages(
    q: Optional[str] = Query(None),
    group_id: Optional[int] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    messages = message_service.search_messages(db, ctx, q, group_id, limit)
    return [MessageOut.model_validate(m) for m in messages]


@router.get("/pinned", response_model=Optional[MessageOut])
async def pinned_message(
    group_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    """The pinned message of a scope (``group_id`` omitted means global)."""
    message = message_service.pinned_message(db, ctx, group_id)
    return MessageOut.model_validate(message) if message else None


@router.put("/{message_id}", response_model=MessageOut)
async def edit_message(
    message_id: int,
    body: MessageEdit,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    return MessageOut.model_validate(message_service.edit_message(db, ctx, message_id, body.content))


@router.delete("/{message_id}", response_model=MessageResponse)
async def delete_message(
    message_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    message_service.delete_message(db, ctx, message_id)
    return MessageResponse(message="Message deleted")


@router.post("/{message_id}/forward", response_model=MessageOut, status_code=201)
async def forward_message(
    message_id: int,
    body: ForwardRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    return MessageOut.model_validate(
        message_service.forward_message(db, ctx, message_id, body.group_id)
    )


@router.post("/{message_id}/read", response_model=ReadReceiptOut)
async def mark_read(
    message_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    return ReadReceiptOut.model_validate(message_service.mark_read(db, ctx, message_id))


@router.post("/{message_id}/star", response_model=StarResponse)
async def star_message(
    message_id: int,
    body: StarRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    starred = message_service.set_star(db, ctx, message_id, body.star)
    return StarResponse(message_id=message_id, starred=starred)


@router.post("/{message_id}/reaction", response_model=MessageOut)
async def react(
    message_id: int,
    body: ReactionRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    message = message_service.react(db, ctx, message_id, body.emoji, body.remove)
    return MessageOut.model_validate(message)


@router.post("/{message_id}/pin", response_model=MessageOut)
async def pin_message(
    message_id: int,
    body: PinRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    return MessageOut.model_validate(message_service.set_pin(db, ctx, message_id, body.pin))
