"""
Shared pytest fixtures for the clubhouse tests.

Provides:
- In-memory SQLite database with the schema and stock ranks/groups seeded
- User and AuthContext factories
- FastAPI TestClient bound to the test session
- Redis publishing captured in memory
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import clubhouse.models  # noqa: F401  registers every table
from clubhouse.core.context import AuthContext, APPROVED
from clubhouse.core.security import hash_password, create_access_token
from clubhouse.db.base import Base
from clubhouse.db.seeds.seed_roles import seed_roles
from clubhouse.models.role import Role
from clubhouse.models.role_group import RoleGroup
from clubhouse.models.user import User
from clubhouse.services.auth_service import auth_service
from clubhouse.services.cache_service import cache_service

TEST_PASSWORD = "secret-pass"


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def empty_db(engine):
    """Session on an empty schema."""
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def db(empty_db):
    """Session with the stock ranks and the three default groups seeded."""
    seed_roles(empty_db)
    return empty_db


@pytest.fixture
def groups(db):
    """Default groups keyed by order: {2: Yönetim, 1: Member, 0: Aday}."""
    return {g.order: g for g in db.query(RoleGroup).all()}


# ============================================================================
# User / Context Factories
# ============================================================================

@pytest.fixture(scope="session")
def password_hash():
    return hash_password(TEST_PASSWORD)


@pytest.fixture
def make_user(db, password_hash):
    """Create users: make_user("ali", "MEMBER", membership_status="approved")."""
    counter = {"n": 0}

    def _make(username=None, rutbe=None, membership_status=APPROVED):
        counter["n"] += 1
        user = User(
            username=username or f"user{counter['n']}",
            hashed_password=password_hash,
            full_name=(username or f"User {counter['n']}").title(),
            rutbe=rutbe,
            membership_status=membership_status,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def ctx_for(db):
    """AuthContext for a user, with the rank's matrix unless one is given."""

    def _ctx(user, permissions=None):
        if permissions is None:
            role = db.query(Role).filter(Role.name == user.rutbe).first() if user.rutbe else None
            permissions = role.permissions if role else {}
        return AuthContext(
            user_id=user.id,
            rutbe=user.rutbe,
            permissions=permissions,
            membership_status=user.membership_status,
            username=user.username,
        )

    return _ctx


@pytest.fixture
def president(make_user):
    return make_user("president", "PRESIDENT")


@pytest.fixture
def member(make_user):
    return make_user("member", "MEMBER")


@pytest.fixture
def prospect(make_user):
    return make_user("prospect", "PROSPECT")


# ============================================================================
# Realtime
# ============================================================================

@pytest.fixture(autouse=True)
def published(monkeypatch):
    """Capture Redis publishes instead of talking to a server."""
    sent = []
    monkeypatch.setattr(cache_service, "publish", lambda channel, message: sent.append((channel, message)))
    return sent


# ============================================================================
# API Client Fixtures
# ============================================================================

@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from clubhouse.main import app
    from clubhouse.db.session import get_db

    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(db):
    """Bearer headers carrying the session claims of a user."""

    def _headers(user):
        token = create_access_token(auth_service.session_claims(db, user))
        return {"Authorization": f"Bearer {token}"}

    return _headers
