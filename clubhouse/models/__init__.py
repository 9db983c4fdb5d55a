"""Models package — import all models so metadata.create_all sees them."""

from clubhouse.models.role_group import RoleGroup
from clubhouse.models.role import Role
from clubhouse.models.user import User
from clubhouse.models.message import Message, MessageReaction, StarredMessage, ReadReceipt
from clubhouse.models.poll import Poll, PollOption, PollVote, PollType
from clubhouse.models.event import Event, EventAttendance, AttendanceStatus
from clubhouse.models.audit_log import AuditLog

__all__ = [
    "RoleGroup", "Role", "User",
    "Message", "MessageReaction", "StarredMessage", "ReadReceipt",
    "Poll", "PollOption", "PollVote", "PollType",
    "Event", "EventAttendance", "AttendanceStatus",
    "AuditLog",
]
