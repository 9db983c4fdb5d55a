"""Event service — club events and RSVPs."""

import logging
from collections import Counter
from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy.orm import Session

from clubhouse.core.context import AuthContext
from clubhouse.core.exceptions import NotFoundError, PolicyViolationError
from clubhouse.db.base import utcnow, as_naive_utc
from clubhouse.db.upsert import upsert
from clubhouse.models.event import Event, EventAttendance, AttendanceStatus

logger = logging.getLogger("clubhouse.events")


class EventService:
    """Events are created by ranks holding events.create; any member may RSVP."""

    @staticmethod
    def get_event(db: Session, event_id: int) -> Event:
        event = db.query(Event).filter(Event.id == event_id).first()
        if not event:
            raise NotFoundError(f"Event {event_id} not found")
        return event

    @staticmethod
    def create_event(
        db: Session,
        ctx: AuthContext,
        title: str,
        event_date: datetime,
        location: str,
        description: Optional[str] = None,
    ) -> Event:
        title = (title or "").strip()
        location = (location or "").strip()
        if not title or not location or event_date is None:
            raise PolicyViolationError("Title, date and location are required")

        event = Event(
            title=title,
            description=(description or "").strip() or None,
            location=location,
            event_date=as_naive_utc(event_date),
            created_by=ctx.user_id,
        )
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    @staticmethod
    def list_events(db: Session, ctx: AuthContext) -> List[Dict[str, Any]]:
        """Events newest first, with attendance counts and the requester's answer."""
        results = []
        events = db.query(Event).order_by(Event.event_date.desc(), Event.id.desc()).all()
        for event in events:
            counts = Counter(a.status for a in event.attendances)
            mine = next((a.status for a in event.attendances if a.user_id == ctx.user_id), None)
            results.append({
                "event": event,
                "attending": counts[AttendanceStatus.attending],
                "not_attending": counts[AttendanceStatus.not_attending],
                "my_status": mine,
            })
        return results

    @staticmethod
    def rsvp(
        db: Session,
        ctx: AuthContext,
        event_id: int,
        status: Optional[AttendanceStatus],
        now: Optional[datetime] = None,
    ) -> Optional[EventAttendance]:
        """Set, change or (with ``status=None``) clear the requester's RSVP.

        Events whose date has passed are closed: nothing is written.
        """
        event = EventService.get_event(db, event_id)
        current = as_naive_utc(now) if now is not None else utcnow()
        if event.event_date < current:
            raise PolicyViolationError("Attendance cannot be changed for a past event")

        if status is None:
            db.query(EventAttendance).filter(
                EventAttendance.event_id == event.id,
                EventAttendance.user_id == ctx.user_id,
            ).delete(synchronize_session=False)
            db.commit()
            return None

        upsert(
            db, EventAttendance,
            {
                "event_id": event.id,
                "user_id": ctx.user_id,
                "status": AttendanceStatus(status),
                "updated_at": current,
            },
            key_columns=("event_id", "user_id"),
            update_columns=("status", "updated_at"),
        )
        db.commit()
        return (
            db.query(EventAttendance)
            .filter(EventAttendance.event_id == event.id, EventAttendance.user_id == ctx.user_id)
            .one()
        )


event_service = EventService()
