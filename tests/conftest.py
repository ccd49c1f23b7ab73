"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine and a session that rolls back
after each test, so tests do not affect each other. API tests build the app
without running its lifespan and point it at a shared in-memory database.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import jwt
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


TEST_DB_URL = "sqlite:///:memory:"
TEST_JWT_SECRET = "test-secret"
REPO_ROOT = Path(__file__).resolve().parents[1]


def seed_hierarchy(db) -> None:
    """
    Add a small org tree:

        N1 -> D1 -> C1, C2
        N1 -> D5 -> C5
        N1 -> D9
        N2 -> D7 -> C7
    """
    from churchauthz.models.org import Church, District, NationalChurch

    db.add_all([NationalChurch(id="N1", name="National One"), NationalChurch(id="N2", name="National Two")])
    db.add_all(
        [
            District(id="D1", name="District One", national_id="N1"),
            District(id="D5", name="District Five", national_id="N1"),
            District(id="D9", name="District Nine", national_id="N1"),
            District(id="D7", name="District Seven", national_id="N2"),
        ]
    )
    db.add_all(
        [
            Church(id="C1", name="Church One", district_id="D1", national_id="N1"),
            Church(id="C2", name="Church Two", district_id="D1", national_id="N1"),
            Church(id="C5", name="Church Five", district_id="D5", national_id="N1"),
            Church(id="C7", name="Church Seven", district_id="D7", national_id="N2"),
        ]
    )
    db.flush()


class FakeClock:
    """Injectable clock; call it to read, ``advance`` to move time forward."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from churchauthz.db.base import Base
    from churchauthz.models import events, org, security  # noqa: F401  (register tables)

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    Stores call ``commit()``; with the session joined to an outer transaction
    those commits are released at teardown by the rollback.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def cache():
    from churchauthz.authz.cache import PermissionCache

    return PermissionCache(ttl_seconds=60)


@pytest.fixture
def role_store(db_session, cache):
    from churchauthz.authz.roles import RoleStore

    return RoleStore(db_session, cache)


@pytest.fixture
def resolver(db_session, role_store, clock):
    from churchauthz.authz.resolver import EffectivePermissionResolver

    return EffectivePermissionResolver(db_session, role_store, clock=clock)


@pytest.fixture
def delegation_service(db_session, role_store, resolver, clock):
    from churchauthz.authz.delegations import DelegationService

    return DelegationService(db_session, role_store, resolver, clock=clock)


@pytest.fixture
def orgs(db_session):
    seed_hierarchy(db_session)
    db_session.commit()


@pytest.fixture
def add_user(db_session):
    """Insert a user row and return it."""
    from churchauthz.models.security import User

    def _add(user_id: str, role: str, **scope) -> User:
        user = User(id=user_id, email=f"{user_id.lower()}@example.com", role=role, is_active=True, **scope)
        db_session.add(user)
        db_session.commit()
        return user

    return _add


# ---- API -----------------------------------------------------------------------------


@pytest.fixture
def api_engine():
    """One in-memory database shared by every session the app opens."""
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def api_sessions(api_engine):
    return sessionmaker(bind=api_engine, autocommit=False, autoflush=False, class_=Session)


@pytest.fixture
def app(api_engine, api_sessions, clock):
    from churchauthz.authz.cache import PermissionCache
    from churchauthz.db.init_db import init_db
    from churchauthz.main import create_app
    from churchauthz.security.config import load_security_config
    from churchauthz.settings import Settings, get_settings

    application = create_app()
    cache = PermissionCache(ttl_seconds=60)
    init_db(api_engine, cache, api_sessions)

    # What the lifespan would set up, pointed at the test database.
    application.state.session_factory = api_sessions
    application.state.permission_cache = cache
    application.state.security_config = load_security_config(REPO_ROOT / "config" / "security_config.yaml")
    application.state.clock = clock
    application.dependency_overrides[get_settings] = lambda: Settings(jwt_secret=TEST_JWT_SECRET)
    return application


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app)


@pytest.fixture
def org(app, api_sessions):
    """Seed the hierarchy (see ``seed_hierarchy``) and a few users."""
    from churchauthz.models.security import User

    with api_sessions() as db:
        seed_hierarchy(db)
        db.add_all(
            [
                User(id="ADMIN", email="admin@example.com", role="siteAdmin"),
                User(id="N-PASTOR", email="np@example.com", role="nationalPastor", national_id="N1"),
                User(
                    id="CA1",
                    email="ca1@example.com",
                    role="churchAdmin",
                    national_id="N1",
                    district_id="D1",
                    church_id="C1",
                ),
                User(
                    id="CA2",
                    email="ca2@example.com",
                    role="churchAdmin",
                    national_id="N1",
                    district_id="D1",
                    church_id="C2",
                ),
                User(id="U2", email="u2@example.com", role="member", national_id="N1", district_id="D1", church_id="C1"),
            ]
        )
        db.commit()


@pytest.fixture
def token():
    """Mint an identity token the way the auth service does."""

    def _token(actor_id: str, role: str, church_id=None, district_id=None, national_id=None, secret=TEST_JWT_SECRET):
        claims = {"id": actor_id, "role": role}
        if church_id:
            claims["churchId"] = church_id
        if district_id:
            claims["districtId"] = district_id
        if national_id:
            claims["nationalChurchId"] = national_id
        return jwt.encode(claims, secret, algorithm="HS256")

    return _token


@pytest.fixture
def headers(token):
    """``headers("CA1", "churchAdmin", church_id="C1")`` -> Authorization header dict."""

    def _headers(actor_id: str, role: str, **scope):
        return {"Authorization": f"Bearer {token(actor_id, role, **scope)}"}

    return _headers
