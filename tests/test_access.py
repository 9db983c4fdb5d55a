"""Tests for the group-order scope rule and its database-backed enforcement."""

import logging
from types import SimpleNamespace

import pytest

from clubhouse.core.access import (
    ScopeAction, can_access_scope, can_access_unscoped, accessible_group_ids,
)
from clubhouse.core.context import AuthContext
from clubhouse.core.exceptions import NotFoundError, PermissionDeniedError
from clubhouse.models.role import Role
from clubhouse.services.role_service import role_service
from clubhouse.services.scope_service import scope_service

ORDERS = [None, 0, 1, 2]


class TestCanAccessScope:
    """Pure decision table."""

    @pytest.mark.parametrize("user_order", [None, -1, 0, 1, 3])
    def test_top_tier_is_exact(self, user_order):
        assert can_access_scope(2, user_order) is False

    def test_top_tier_admits_order_two(self):
        assert can_access_scope(2, 2) is True

    def test_higher_order_does_not_reach_top_tier(self):
        # order 3 is above the top tier but still excluded from it
        assert can_access_scope(2, 3) is False

    @pytest.mark.parametrize("target", [0, 1])
    def test_lower_tiers_are_monotonic(self, target):
        for u in range(-1, 4):
            for v in range(u, 4):
                if can_access_scope(target, u):
                    assert can_access_scope(target, v)

    def test_member_tier(self):
        assert can_access_scope(1, 0) is False
        assert can_access_scope(1, 1) is True
        assert can_access_scope(1, 2) is True

    def test_candidate_tier(self):
        assert can_access_scope(0, 0) is True
        assert can_access_scope(0, 2) is True
        assert can_access_scope(0, -1) is False

    @pytest.mark.parametrize("target", [0, 1, 2])
    def test_unordered_user_is_denied(self, target):
        assert can_access_scope(target, None) is False

    @pytest.mark.parametrize("target", [-1, 3, 7])
    def test_unknown_target_order_is_denied(self, target):
        for u in ORDERS:
            assert can_access_scope(target, u) is False


class TestUnscoped:
    @pytest.mark.parametrize("rutbe", [None, "MEMBER", "NO SUCH RANK"])
    def test_any_approved_user(self, rutbe):
        assert can_access_unscoped(AuthContext(user_id=1, rutbe=rutbe)) is True

    def test_unapproved_or_missing_context(self):
        assert can_access_unscoped(AuthContext(user_id=1, membership_status="pending_approval")) is False
        assert can_access_unscoped(None) is False

    @pytest.mark.parametrize("status", [None, ""])
    def test_claims_without_status_are_not_approved(self, status):
        ctx = AuthContext.from_claims({"sub": "7", "rutbe": "MEMBER", "membership_status": status})
        assert ctx.is_approved is False
        assert can_access_unscoped(ctx) is False

    def test_claims_with_approved_status(self):
        ctx = AuthContext.from_claims({"sub": "7", "membership_status": "approved"})
        assert ctx.user_id == 7
        assert ctx.is_approved is True


class TestAccessibleGroupIds:
    def test_filters_in_input_order(self):
        groups = [SimpleNamespace(id=i, order=o) for i, o in [(10, 2), (11, 1), (12, 0)]]
        assert accessible_group_ids(groups, 2) == [10, 11, 12]
        assert accessible_group_ids(groups, 1) == [11, 12]
        assert accessible_group_ids(groups, 0) == [12]
        assert accessible_group_ids(groups, None) == []


class TestScopeService:
    """The rule applied to stored ranks and groups."""

    def test_member_reaches_candidate_but_not_top_tier(self, db, groups, member, ctx_for):
        ctx = ctx_for(member)
        assert role_service.resolve_user_order(db, "MEMBER") == 1
        assert scope_service.require_scope(db, ctx, groups[0].id, ScopeAction.post).id == groups[0].id
        with pytest.raises(PermissionDeniedError):
            scope_service.require_scope(db, ctx, groups[2].id, ScopeAction.post)

    def test_rank_without_group(self, db, groups, make_user, ctx_for):
        db.add(Role(name="LOOSE", permissions_json="{}"))
        db.commit()
        user = make_user("loose", "LOOSE")
        ctx = ctx_for(user)

        assert role_service.resolve_user_order(db, "LOOSE") is None
        for g in groups.values():
            with pytest.raises(PermissionDeniedError):
                scope_service.require_scope(db, ctx, g.id, ScopeAction.read)
        assert scope_service.require_scope(db, ctx, None, ScopeAction.post) is None

    def test_president_sees_every_group(self, db, groups, president, ctx_for):
        scopes = scope_service.visible_scopes(db, ctx_for(president))
        assert sorted(scopes.group_ids) == sorted(g.id for g in groups.values())
        assert scopes.include_unscoped is True

    def test_visible_scopes_for_prospect(self, db, groups, prospect, ctx_for):
        scopes = scope_service.visible_scopes(db, ctx_for(prospect))
        assert scopes.group_ids == [groups[0].id]
        assert scopes.include_unscoped is True

    def test_unknown_group_is_not_found(self, db, groups, member, ctx_for):
        with pytest.raises(NotFoundError):
            scope_service.require_scope(db, ctx_for(member), 9999, ScopeAction.read)

    def test_order_uses_current_rank_not_token(self, db, groups, member, ctx_for):
        ctx = ctx_for(member)
        member.rutbe = "PRESIDENT"
        db.commit()
        assert scope_service.require_scope(db, ctx, groups[2].id, ScopeAction.read).order == 2

    def test_unapproved_user_is_denied_everywhere(self, db, groups, make_user, ctx_for):
        pending = make_user("pending", "MEMBER", membership_status="pending_approval")
        ctx = ctx_for(pending)
        with pytest.raises(PermissionDeniedError):
            scope_service.require_scope(db, ctx, None, ScopeAction.read)
        with pytest.raises(PermissionDeniedError):
            scope_service.require_scope(db, ctx, groups[0].id, ScopeAction.read)
        assert scope_service.visible_scopes(db, ctx).group_ids == []

    def test_denial_reason_names_the_action(self, db, groups, prospect, ctx_for):
        with pytest.raises(PermissionDeniedError) as exc:
            scope_service.require_scope(db, ctx_for(prospect), groups[1].id, ScopeAction.vote)
        assert exc.value.message == ScopeAction.vote.denial_reason

    def test_denial_is_logged(self, db, groups, prospect, ctx_for, caplog):
        with caplog.at_level(logging.INFO, logger="clubhouse.access"):
            with pytest.raises(PermissionDeniedError):
                scope_service.require_scope(db, ctx_for(prospect), groups[2].id, ScopeAction.read)
        assert "scope denied" in caplog.text
