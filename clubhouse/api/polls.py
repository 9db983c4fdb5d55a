"""Polls API router."""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clubhouse.db.session import get_db
from clubhouse.schemas.schemas import (
    PollCreate, PollUpdate, PollOut, PollOptionOut, VoteRequest, VoteOut, MessageResponse,
)
from clubhouse.services.poll_service import poll_service
from clubhouse.core.context import AuthContext
from clubhouse.core.security import get_approved_context

router = APIRouter(prefix="/polls", tags=["polls"])


def _poll_out(row: dict) -> PollOut:
    out = PollOut.model_validate(row["poll"])
    out.options = [PollOptionOut(**o) for o in row["options"]]
    out.total_votes = row["total_votes"]
    out.my_option_id = row["my_option_id"]
    return out


@router.get("", response_model=List[PollOut])
async def list_polls(
    search: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    """Polls in reachable scopes with their tallies."""
    return [_poll_out(row) for row in poll_service.list_polls(db, ctx, search, limit)]


@router.post("", response_model=PollOut, status_code=201)
async def create_poll(
    body: PollCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    poll = poll_service.create_poll(
        db, ctx,
        title=body.title,
        type=body.type,
        description=body.description,
        options=body.options,
        allow_custom_option=body.allow_custom_option,
        group_id=body.group_id,
    )
    return _poll_out(poll_service.summarize(poll, ctx.user_id))


@router.put("/{poll_id}", response_model=PollOut)
async def update_poll(
    poll_id: int,
    body: PollUpdate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    poll = poll_service.update_poll(db, ctx, poll_id, body.model_dump(exclude_unset=True))
    return _poll_out(poll_service.summarize(poll, ctx.user_id))


@router.delete("/{poll_id}", response_model=MessageResponse)
async def delete_poll(
    poll_id: int,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    poll_service.delete_poll(db, ctx, poll_id)
    return MessageResponse(message="Poll deleted")


@router.post("/{poll_id}/vote", response_model=VoteOut, status_code=201)
async def vote(
    poll_id: int,
    body: VoteRequest,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    """Cast or move a vote, optionally adding a custom option."""
    return VoteOut.model_validate(
        poll_service.vote(db, ctx, poll_id, body.option_id, body.new_option_text)
    )
