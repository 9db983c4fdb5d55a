"""Scope access decisions for chat groups.

Every rank belongs to a group whose integer ``order`` ranks it (higher is more
privileged). A conversation scoped to a group is reachable according to the
group's tier:

* ``TOP_TIER`` (2): only users whose own order is exactly 2.
* ``MEMBER_TIER`` (1): users with order 1 or above.
* ``CANDIDATE_TIER`` (0): any user with an order at all.

The top tier is exclusive rather than inherited upwards; keep it that way.
Users without an order (no rank, or a rank outside every group) reach no
ordered scope. The unscoped channel (no group) is open to every approved user.
"""

import enum
from typing import Iterable, List, Optional, Protocol

from clubhouse.core.context import AuthContext

TOP_TIER = 2
MEMBER_TIER = 1
CANDIDATE_TIER = 0


class ScopeAction(str, enum.Enum):
    read = "read"
    post = "post"
    search = "search"
    forward = "forward"
    vote = "vote"

    @property
    def denial_reason(self) -> str:
        return _DENIAL_REASONS[self]


_DENIAL_REASONS = {
    ScopeAction.read: "You are not allowed to access this conversation",
    ScopeAction.post: "You are not allowed to post in this conversation",
    ScopeAction.search: "You are not allowed to search this conversation",
    ScopeAction.forward: "You are not allowed to forward messages into this conversation",
    ScopeAction.vote: "You are not allowed to vote in this conversation",
}


class OrderedGroup(Protocol):
    id: int
    order: int


def can_access_scope(target_order: int, user_order: Optional[int]) -> bool:
    """Decide whether a user of ``user_order`` may use a scope of ``target_order``."""
    if user_order is None:
        return False
    if target_order == TOP_TIER:
        return user_order == TOP_TIER
    if target_order in (MEMBER_TIER, CANDIDATE_TIER):
        return user_order >= target_order
    return False


def can_access_unscoped(ctx: Optional[AuthContext]) -> bool:
    """The global channel: any authenticated, approved user, ranked or not."""
    return ctx is not None and ctx.is_approved


def accessible_group_ids(groups: Iterable[OrderedGroup], user_order: Optional[int]) -> List[int]:
    """Ids of every group the user may reach, in input order."""
    if user_order is None:
        return []
    return [g.id for g in groups if can_access_scope(g.order, user_order)]
