"""HTTP-level tests: authentication, error bodies and audited endpoints."""

import logging
from datetime import timedelta

import pytest

from clubhouse.db.base import utcnow
from clubhouse.models.audit_log import AuditLog
from clubhouse.models.event import Event
from clubhouse.models.message import Message
from clubhouse.models.user import User
from clubhouse.services.role_service import role_service
from tests.conftest import TEST_PASSWORD


class TestHealth:
    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        assert r.json()["version"] == "0.1.0"

    def test_api_health(self, client):
        r = client.get("/api/health")
        assert r.json() == {"status": "ok"}


class TestAuth:
    def test_login_and_me(self, client, member, db):
        r = client.post("/api/auth/login", json={"username": "member", "password": TEST_PASSWORD})
        assert r.status_code == 200
        token = r.json()["access_token"]

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["rutbe"] == "MEMBER"
        assert db.query(AuditLog).filter(AuditLog.action == "user.login").count() == 1

    def test_wrong_password(self, client, member):
        r = client.post("/api/auth/login", json={"username": "member", "password": "nope-nope"})
        assert r.status_code == 401
        assert r.json()["code"] == "unauthenticated"

    def test_refresh(self, client, member):
        tokens = client.post(
            "/api/auth/login", json={"username": "member", "password": TEST_PASSWORD}
        ).json()
        r = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert r.status_code == 200
        assert r.json()["access_token"]

    def test_access_token_is_not_a_refresh_token(self, client, member):
        tokens = client.post(
            "/api/auth/login", json={"username": "member", "password": TEST_PASSWORD}
        ).json()
        r = client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]})
        assert r.status_code == 401

    def test_missing_token(self, client):
        assert client.get("/api/messages").status_code == 401

    def test_garbage_token(self, client):
        r = client.get("/api/messages", headers={"Authorization": "Bearer not-a-jwt"})
        assert r.status_code == 401

    def test_pending_membership_is_refused(self, client, make_user, auth_headers):
        pending = make_user("newbie", "HANGAROUND", membership_status="pending")
        assert client.get("/api/messages", headers=auth_headers(pending)).status_code == 403


class TestMessagesApi:
    def test_post_and_list(self, client, member, auth_headers, groups):
        headers = auth_headers(member)
        r = client.post("/api/messages", json={"content": "hello", "group_id": groups[1].id}, headers=headers)
        assert r.status_code == 201
        assert r.json()["group_id"] == groups[1].id

        listed = client.get("/api/messages", params={"group_id": groups[1].id}, headers=headers)
        assert [m["content"] for m in listed.json()] == ["hello"]

    def test_scope_denial_body(self, client, member, auth_headers, groups):
        r = client.post(
            "/api/messages", json={"content": "hi", "group_id": groups[2].id}, headers=auth_headers(member)
        )
        assert r.status_code == 403
        assert r.json()["code"] == "not_authorized"

    def test_unknown_scope_is_404(self, client, member, auth_headers):
        r = client.get("/api/messages", params={"group_id": 4242}, headers=auth_headers(member))
        assert r.status_code == 404
        assert r.json()["code"] == "not_found"

    def test_global_only_listing(self, client, db, member, auth_headers, groups):
        db.add_all([
            Message(content="global", sender_id=member.id),
            Message(content="scoped", sender_id=member.id, group_id=groups[0].id),
        ])
        db.commit()
        r = client.get("/api/messages", params={"scope": "global"}, headers=auth_headers(member))
        assert [m["content"] for m in r.json()] == ["global"]

    def test_scopes(self, client, member, auth_headers, groups):
        body = client.get("/api/messages/scopes", headers=auth_headers(member)).json()
        assert body["user_order"] == 1
        assert [s["group_id"] for s in body["scopes"]] == [None, groups[1].id, groups[0].id]

    def test_star_and_pin(self, client, db, member, president, auth_headers):
        message = Message(content="ride at 9", sender_id=member.id)
        db.add(message)
        db.commit()

        star = client.post(f"/api/messages/{message.id}/star", json={"star": True}, headers=auth_headers(member))
        assert star.json() == {"message_id": message.id, "starred": True}

        pin = client.post(f"/api/messages/{message.id}/pin", json={"pin": True}, headers=auth_headers(president))
        assert pin.json()["pinned"] is True
        pinned = client.get("/api/messages/pinned", headers=auth_headers(member))
        assert pinned.json()["id"] == message.id

    def test_validation_error(self, client, member, auth_headers):
        r = client.post("/api/messages/1/star", json={}, headers=auth_headers(member))
        assert r.status_code == 422


class TestRolesApi:
    def test_member_cannot_create_ranks(self, client, member, auth_headers):
        r = client.post("/api/roles", json={"name": "TREASURER"}, headers=auth_headers(member))
        assert r.status_code == 403

    def test_officer_creates_rank_with_audit(self, client, db, president, auth_headers, groups):
        r = client.post(
            "/api/roles",
            json={"name": "TREASURER", "group_id": groups[1].id, "permissions": {"events": {"read": True}}},
            headers=auth_headers(president),
        )
        assert r.status_code == 201
        assert r.json()["group"]["order"] == 1
        log = db.query(AuditLog).filter(AuditLog.action == "role.created").one()
        assert log.actor_username == "president"

    def test_update_without_group_keeps_it(self, client, president, auth_headers, groups):
        headers = auth_headers(president)
        role = client.post(
            "/api/roles", json={"name": "TREASURER", "group_id": groups[1].id}, headers=headers
        ).json()
        r = client.put(f"/api/roles/{role['id']}", json={"name": "TREASURER"}, headers=headers)
        assert r.json()["group_id"] == groups[1].id

    def test_duplicate_group_name(self, client, president, auth_headers):
        r = client.post("/api/role-groups", json={"name": "Member"}, headers=auth_headers(president))
        assert r.status_code == 400
        assert r.json()["code"] == "invalid_request"


class TestPollsApi:
    def test_create_vote_and_list(self, client, member, auth_headers):
        headers = auth_headers(member)
        poll = client.post(
            "/api/polls", json={"title": "Trailer?", "type": "yes_no"}, headers=headers
        ).json()
        yes = poll["options"][0]["id"]

        vote = client.post(f"/api/polls/{poll['id']}/vote", json={"option_id": yes}, headers=headers)
        assert vote.status_code == 201
        [listed] = client.get("/api/polls", headers=headers).json()
        assert listed["my_option_id"] == yes
        assert listed["total_votes"] == 1


class TestEventsApi:
    @pytest.fixture
    def event(self, db, president):
        event = Event(
            title="Spring run", location="Clubhouse",
            event_date=utcnow() + timedelta(days=3), created_by=president.id,
        )
        db.add(event)
        db.commit()
        return event

    def test_rsvp_is_audited(self, client, db, event, member, auth_headers):
        r = client.post(f"/api/events/{event.id}/rsvp", json={"status": "attending"}, headers=auth_headers(member))
        assert r.status_code == 200
        assert r.json()["status"] == "attending"
        log = db.query(AuditLog).filter(AuditLog.action == "event.rsvp").one()
        assert log.resource_id == str(event.id)

    def test_withdraw(self, client, event, member, auth_headers):
        headers = auth_headers(member)
        client.post(f"/api/events/{event.id}/rsvp", json={"status": "attending"}, headers=headers)
        r = client.post(f"/api/events/{event.id}/rsvp", json={"status": None}, headers=headers)
        assert r.json()["message"] == "RSVP removed"

    def test_past_event_is_400(self, client, db, event, member, auth_headers):
        event.event_date = utcnow() - timedelta(days=1)
        db.commit()
        r = client.post(f"/api/events/{event.id}/rsvp", json={"status": "attending"}, headers=auth_headers(member))
        assert r.status_code == 400
        assert r.json()["code"] == "invalid_request"

    def test_members_cannot_create_events(self, client, member, auth_headers):
        r = client.post(
            "/api/events",
            json={"title": "x", "event_date": "2031-01-01T10:00:00Z", "location": "y"},
            headers=auth_headers(member),
        )
        assert r.status_code == 403


class TestAuditApi:
    def test_requires_activity_logs_read(self, client, member, president, auth_headers):
        assert client.get("/api/admin/audit", headers=auth_headers(member)).status_code == 403
        r = client.get("/api/admin/audit", headers=auth_headers(president))
        assert r.status_code == 200
        assert r.json()["total"] == 0


class TestUsersApi:
    def test_members_read_but_cannot_create(self, client, member, president, auth_headers):
        headers = auth_headers(member)
        listed = client.get("/api/users", headers=headers)
        assert listed.status_code == 200
        assert {u["username"] for u in listed.json()} == {"member", "president"}

        r = client.post("/api/users", json={"username": "rider", "password": "s3cret"}, headers=headers)
        assert r.status_code == 403

    @pytest.mark.parametrize("flag, expected", [({"enabled": True}, 200), ({"enabled": False}, 403)])
    def test_read_flag_object_form(self, client, db, make_user, auth_headers, flag, expected):
        role_service.create_role(db, "READER", permissions={"users": {"read": flag}})
        reader = make_user("reader", "READER")
        assert client.get("/api/users", headers=auth_headers(reader)).status_code == expected

    def test_officer_creates_and_ranks_member(self, client, db, president, auth_headers):
        headers = auth_headers(president)
        r = client.post(
            "/api/users", json={"username": "rider", "password": "s3cret", "rutbe": "HANGAROUND"}, headers=headers
        )
        assert r.status_code == 201
        created = r.json()
        assert created["membership_status"] == "pending_info"

        r = client.put(f"/api/users/{created['id']}", json={"rutbe": "PROSPECT"}, headers=headers)
        assert r.status_code == 200
        assert r.json()["rutbe"] == "PROSPECT"

        actions = [a for (a,) in db.query(AuditLog.action).order_by(AuditLog.id)]
        assert actions == ["user.created", "user.updated"]

    def test_duplicate_username_is_409(self, client, member, president, auth_headers):
        r = client.post(
            "/api/users", json={"username": "member", "password": "s3cret"}, headers=auth_headers(president)
        )
        assert r.status_code == 409
        assert r.json()["code"] == "conflict"

    def test_approval_queue_needs_approval_rights(self, client, member, president, make_user, auth_headers):
        make_user("newbie", "HANGAROUND", membership_status="pending_approval")
        assert client.get("/api/users/approval", headers=auth_headers(member)).status_code == 403
        r = client.get("/api/users/approval", headers=auth_headers(president))
        assert [u["username"] for u in r.json()] == ["newbie"]

    def test_approved_member_gets_in(self, client, db, president, make_user, auth_headers):
        newbie = make_user("newbie", "HANGAROUND", membership_status="pending_approval")
        assert client.get("/api/messages", headers=auth_headers(newbie)).status_code == 403

        r = client.post(f"/api/users/{newbie.id}/approve", headers=auth_headers(president))
        assert r.status_code == 200
        assert r.json()["membership_status"] == "approved"

        login = client.post("/api/auth/login", json={"username": "newbie", "password": TEST_PASSWORD})
        token = login.json()["access_token"]
        assert client.get("/api/messages", headers={"Authorization": f"Bearer {token}"}).status_code == 200
        assert db.query(AuditLog).filter(AuditLog.action == "user.approved").count() == 1

    def test_rejected_member_cannot_sign_in(self, client, db, president, make_user, auth_headers):
        newbie = make_user("newbie", "HANGAROUND", membership_status="pending_approval")
        r = client.post(f"/api/users/{newbie.id}/reject", headers=auth_headers(president))
        assert r.status_code == 200
        assert db.get(User, newbie.id).is_active is False

        login = client.post("/api/auth/login", json={"username": "newbie", "password": TEST_PASSWORD})
        assert login.status_code == 401

    def test_members_cannot_approve(self, client, member, make_user, auth_headers):
        newbie = make_user("newbie", "HANGAROUND", membership_status="pending_approval")
        assert client.post(f"/api/users/{newbie.id}/approve", headers=auth_headers(member)).status_code == 403


class TestRequestLog:
    def test_denied_request_names_caller_and_code(self, client, member, auth_headers, groups, caplog):
        caplog.set_level(logging.INFO, logger="clubhouse.requests")
        headers = {**auth_headers(member), "X-Request-Id": "req-42"}
        r = client.post("/api/messages", json={"content": "hi", "group_id": groups[2].id}, headers=headers)

        assert r.status_code == 403
        assert r.headers["X-Request-Id"] == "req-42"
        assert "X-Response-Time-Ms" in r.headers
        [line] = [rec.getMessage() for rec in caplog.records if rec.name == "clubhouse.requests"]
        assert f"user={member.id}" in line
        assert "code=not_authorized" in line
        assert "rid=req-42" in line

    def test_anonymous_request(self, client, caplog):
        caplog.set_level(logging.INFO, logger="clubhouse.requests")
        client.get("/api/health")
        [line] = [rec.getMessage() for rec in caplog.records if rec.name == "clubhouse.requests"]
        assert "user=- code=-" in line
