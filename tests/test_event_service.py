"""Tests for events and the RSVP temporal guard."""

from datetime import datetime, timedelta, timezone

import pytest

from clubhouse.core.exceptions import NotFoundError, PolicyViolationError
from clubhouse.db.base import utcnow
from clubhouse.models.event import AttendanceStatus, EventAttendance
from clubhouse.services.event_service import event_service


@pytest.fixture
def officer_ctx(president, ctx_for):
    return ctx_for(president)


@pytest.fixture
def upcoming(db, officer_ctx):
    return event_service.create_event(
        db, officer_ctx, "Spring run", utcnow() + timedelta(days=7), "Clubhouse"
    )


@pytest.fixture
def past(db, officer_ctx):
    return event_service.create_event(
        db, officer_ctx, "Winter party", utcnow() - timedelta(days=7), "Clubhouse"
    )


class TestRsvp:
    def test_past_event_is_closed(self, db, past, member, ctx_for):
        with pytest.raises(PolicyViolationError):
            event_service.rsvp(db, ctx_for(member), past.id, AttendanceStatus.attending)
        assert db.query(EventAttendance).count() == 0

    def test_past_event_cannot_be_withdrawn_either(self, db, past, member, ctx_for):
        db.add(EventAttendance(event_id=past.id, user_id=member.id, status=AttendanceStatus.attending))
        db.commit()
        with pytest.raises(PolicyViolationError):
            event_service.rsvp(db, ctx_for(member), past.id, None)
        assert db.query(EventAttendance).count() == 1

    def test_answer_then_change(self, db, upcoming, member, ctx_for):
        ctx = ctx_for(member)
        event_service.rsvp(db, ctx, upcoming.id, AttendanceStatus.attending)
        row = event_service.rsvp(db, ctx, upcoming.id, AttendanceStatus.not_attending)
        assert row.status == AttendanceStatus.not_attending
        assert db.query(EventAttendance).filter_by(event_id=upcoming.id).count() == 1

    def test_none_withdraws(self, db, upcoming, member, ctx_for):
        ctx = ctx_for(member)
        event_service.rsvp(db, ctx, upcoming.id, AttendanceStatus.attending)
        assert event_service.rsvp(db, ctx, upcoming.id, None) is None
        assert db.query(EventAttendance).count() == 0

    def test_guard_uses_given_clock(self, db, upcoming, member, ctx_for):
        later = datetime.now(timezone.utc) + timedelta(days=8)
        with pytest.raises(PolicyViolationError):
            event_service.rsvp(db, ctx_for(member), upcoming.id, AttendanceStatus.attending, now=later)

    def test_missing_event(self, db, member, ctx_for):
        with pytest.raises(NotFoundError):
            event_service.rsvp(db, ctx_for(member), 4242, AttendanceStatus.attending)


class TestEvents:
    def test_aware_dates_are_stored_as_utc(self, db, officer_ctx):
        local = datetime(2030, 6, 1, 20, 0, tzinfo=timezone(timedelta(hours=3)))
        event = event_service.create_event(db, officer_ctx, "Summer run", local, "Coast")
        assert event.event_date == datetime(2030, 6, 1, 17, 0)

    def test_required_fields(self, db, officer_ctx):
        with pytest.raises(PolicyViolationError):
            event_service.create_event(db, officer_ctx, "No place", utcnow(), "  ")

    def test_list_counts(self, db, upcoming, member, prospect, ctx_for):
        event_service.rsvp(db, ctx_for(member), upcoming.id, AttendanceStatus.attending)
        event_service.rsvp(db, ctx_for(prospect), upcoming.id, AttendanceStatus.not_attending)
        [row] = event_service.list_events(db, ctx_for(member))
        assert (row["attending"], row["not_attending"]) == (1, 1)
        assert row["my_status"] == AttendanceStatus.attending
