"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
# Inject sys.path for reliable pytest imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # => .../apps/api

import os

os.environ.setdefault("XPT_JSON_LOGS", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tests.factories import (
    FakeClock,
    FakeIdentityVerifier,
    FakeReceiptScanner,
    RecordingAlertSink,
    grant_access,
    make_session,
    make_tenant,
    make_user,
)
from xpt_api.db.models import Base, Tenant, User, UserSession
from xpt_api.db.session import get_db
from xpt_api.main import app

TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite shared by every session of one test (StaticPool)."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    """Create a fresh database session for each test."""
    session = session_factory()
    try:
        yield session
        session.rollback()
    finally:
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def alert_sink() -> RecordingAlertSink:
    return RecordingAlertSink()


@pytest.fixture
def receipt_scanner() -> FakeReceiptScanner:
    return FakeReceiptScanner()


@pytest.fixture
def identity_verifier() -> FakeIdentityVerifier:
    return FakeIdentityVerifier()


@pytest.fixture
def test_client(db_session: Session, alert_sink: RecordingAlertSink, receipt_scanner: FakeReceiptScanner, identity_verifier: FakeIdentityVerifier):
    """TestClient with db_session override, recording alerts, a fake scanner and a fake OAuth verifier."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close - db_session fixture handles it

    app.dependency_overrides[get_db] = override_get_db
    app.state.alert_dispatcher = alert_sink
    app.state.receipt_scanner = receipt_scanner
    app.state.identity_verifier = identity_verifier
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
    app.state.alert_dispatcher = None
    app.state.receipt_scanner = None
    app.state.identity_verifier = None


@pytest.fixture
def tenant(db_session: Session) -> Tenant:
    return make_tenant(db_session)


@pytest.fixture
def member(db_session: Session, tenant: Tenant) -> User:
    """User with an access row on `tenant`."""
    user = make_user(db_session, tenant=tenant)
    grant_access(db_session, user, tenant)
    return user


@pytest.fixture
def member_session(db_session: Session, member: User) -> UserSession:
    return make_session(db_session, member)
