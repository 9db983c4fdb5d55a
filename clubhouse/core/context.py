"""Per-request authorization context built from session claims."""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

APPROVED = "approved"
PENDING_INFO = "pending_info"
PENDING_APPROVAL = "pending_approval"
REJECTED = "rejected"
PENDING_STATUSES = (PENDING_INFO, PENDING_APPROVAL)


@dataclass(frozen=True)
class AuthContext:
    """Immutable snapshot of who is calling and what their session grants.

    Passed explicitly into every authorization decision; nothing reads it from
    ambient request state.
    """

    user_id: int
    rutbe: Optional[str] = None
    permissions: Mapping[str, Any] = field(default_factory=dict)
    membership_status: str = APPROVED
    username: Optional[str] = None

    @property
    def is_approved(self) -> bool:
        return self.membership_status == APPROVED

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> "AuthContext":
        permissions = claims.get("permissions")
        return cls(
            user_id=int(claims["sub"]),
            rutbe=claims.get("rutbe") or None,
            permissions=permissions if isinstance(permissions, dict) else {},
            # a token without a status is never treated as approved
            membership_status=claims.get("membership_status") or PENDING_APPROVAL,
            username=claims.get("username"),
        )
