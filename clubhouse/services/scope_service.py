"""Scope service — applies the group-order access rule against the database."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import false, or_
from sqlalchemy.orm import Session

from clubhouse.core.access import (
    ScopeAction, can_access_scope, can_access_unscoped, accessible_group_ids,
)
from clubhouse.core.context import AuthContext
from clubhouse.core.exceptions import NotFoundError, PermissionDeniedError
from clubhouse.models.role_group import RoleGroup
from clubhouse.models.user import User
from clubhouse.services.role_service import role_service

logger = logging.getLogger("clubhouse.access")


@dataclass
class VisibleScopes:
    """Every scope a requester may read when they did not name one."""

    group_ids: List[int] = field(default_factory=list)
    include_unscoped: bool = False


class ScopeService:
    """Resolves the requester's order and enforces it on scoped operations."""

    @staticmethod
    def user_order(db: Session, ctx: AuthContext) -> Optional[int]:
        """Order of the requester's current rank.

        The rank is re-read from the users table so a demotion takes effect
        before the session token expires; the claim is the fallback.
        """
        row = db.query(User.rutbe).filter(User.id == ctx.user_id).first()
        rank_name = row[0] if row else ctx.rutbe
        return role_service.resolve_user_order(db, rank_name)

    @staticmethod
    def require_scope(
        db: Session,
        ctx: AuthContext,
        group_id: Optional[int],
        action: ScopeAction = ScopeAction.read,
    ) -> Optional[RoleGroup]:
        """Raise unless ``ctx`` may perform ``action`` in the given scope.

        Returns the group, or None for the unscoped channel.
        """
        if group_id is None:
            if not can_access_unscoped(ctx):
                logger.info(
                    "scope denied user=%s scope=global action=%s", ctx.user_id, action.value
                )
                raise PermissionDeniedError(action.denial_reason)
            return None

        group = db.query(RoleGroup).filter(RoleGroup.id == group_id).first()
        if not group:
            raise NotFoundError(f"Role group {group_id} not found")

        order = ScopeService.user_order(db, ctx)
        if not ctx.is_approved or not can_access_scope(group.order, order):
            logger.info(
                "scope denied user=%s scope=%s target_order=%s user_order=%s action=%s",
                ctx.user_id, group.id, group.order, order, action.value,
            )
            raise PermissionDeniedError(action.denial_reason)
        return group

    @staticmethod
    def visible_scopes(db: Session, ctx: AuthContext) -> VisibleScopes:
        if not ctx.is_approved:
            return VisibleScopes()
        order = ScopeService.user_order(db, ctx)
        groups = db.query(RoleGroup).order_by(RoleGroup.order.asc(), RoleGroup.id.asc()).all()
        return VisibleScopes(
            group_ids=accessible_group_ids(groups, order),
            include_unscoped=can_access_unscoped(ctx),
        )

    @staticmethod
    def scope_filter(column, scopes: VisibleScopes):
        """SQL condition restricting ``column`` (a group_id column) to ``scopes``."""
        conditions = []
        if scopes.group_ids:
            conditions.append(column.in_(scopes.group_ids))
        if scopes.include_unscoped:
            conditions.append(column.is_(None))
        if not conditions:
            return false()
        return or_(*conditions)


scope_service = ScopeService()
