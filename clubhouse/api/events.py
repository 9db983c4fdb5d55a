"""Events API router — events and RSVPs."""

from typing import List, Union
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from clubhouse.db.session import get_db
from clubhouse.schemas.schemas import EventCreate, EventOut, RsvpRequest, RsvpOut, MessageResponse
from clubhouse.services.event_service import event_service
from clubhouse.services.audit_service import audit_service
from clubhouse.core.context import AuthContext
from clubhouse.core.security import get_approved_context, require_events_create, require_events_read

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=List[EventOut])
async def list_events(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_events_read),
):
    results = []
    for row in event_service.list_events(db, ctx):
        out = EventOut.model_validate(row["event"])
        out.attending = row["attending"]
        out.not_attending = row["not_attending"]
        out.my_status = row["my_status"]
        results.append(out)
    return results


@router.post("", response_model=EventOut, status_code=201)
async def create_event(
    body: EventCreate,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_events_create),
):
    event = event_service.create_event(
        db, ctx, body.title, body.event_date, body.location, body.description
    )
    return EventOut.model_validate(event)


@router.post("/{event_id}/rsvp", response_model=Union[RsvpOut, MessageResponse])
async def rsvp(
    event_id: int,
    body: RsvpRequest,
    request: Request,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_approved_context),
):
    """Answer an upcoming event; a null status withdraws the answer."""
    attendance = event_service.rsvp(db, ctx, event_id, body.status)
    if attendance is None:
        return MessageResponse(message="RSVP removed")

    out = RsvpOut.model_validate(attendance)
    audit_service.log_from_request(
        db, request, ctx,
        action="event.rsvp",
        resource_type="event",
        resource_id=event_id,
        new_value={"status": out.status.value},
    )
    return out
