"""Tests for login completion, session issuance and post-login redirect."""

import re
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from tests.factories import FakeClock, grant_access, make_invite, make_session, make_tenant, make_user
from xpt_api.auth.login import (
    VerifiedIdentity,
    complete_login,
    create_session,
    delete_session,
    describe_session_user,
    resolve_login_redirect,
    resolve_or_create_user,
)
from xpt_api.db.models import Invite, UserSession, UserTenantAccess
from xpt_api.db.repository import GateRepository
from xpt_api.errors import LoginRejectedError, StoreError


@pytest.fixture
def repo(db_session) -> GateRepository:
    return GateRepository(db_session)


def identity(email: str = "new.hire@example.com", provider_id: str = "google-123") -> VerifiedIdentity:
    return VerifiedIdentity(email=email, provider_id=provider_id, given_name="Jordan", family_name="Lee")


# ============================================================================
# User resolution
# ============================================================================


def test_uninvited_email_is_rejected(repo):
    with pytest.raises(LoginRejectedError) as exc_info:
        resolve_or_create_user(repo, identity())

    assert exc_info.value.reason == "not_invited"
    assert exc_info.value.status_code == 403


def test_unverified_email_is_rejected(repo, tenant):
    make_invite(repo.db, tenant)

    with pytest.raises(LoginRejectedError) as exc_info:
        resolve_or_create_user(repo, VerifiedIdentity(email="new.hire@example.com", provider_id="g", email_verified=False))

    assert exc_info.value.reason == "email_not_verified"


def test_expired_invite_is_rejected(repo, db_session, tenant, clock):
    make_invite(db_session, tenant, expires_at=clock.now - timedelta(seconds=1))

    with pytest.raises(LoginRejectedError) as exc_info:
        resolve_or_create_user(repo, identity(), clock=clock)

    assert exc_info.value.reason == "invite_expired"


def test_pending_invite_creates_user_and_access(repo, db_session, tenant, clock):
    invite = make_invite(db_session, tenant, expires_at=clock.now + timedelta(days=1))

    user = resolve_or_create_user(repo, identity(email="New.Hire@Example.com"), clock=clock)

    assert user.email == "new.hire@example.com"
    assert user.tenant_id == tenant.id
    assert user.role == "editor"
    assert user.google_id == "google-123"
    assert user.first_name == "Jordan"

    access = db_session.query(UserTenantAccess).filter_by(user_id=user.id).one()
    assert access.tenant_id == tenant.id
    assert access.role == "editor"

    db_session.refresh(invite)
    assert invite.status == "accepted"
    assert invite.accepted_at is not None


def test_invite_without_role_defaults_to_owner(repo, db_session, tenant, clock):
    make_invite(db_session, tenant, role=None, expires_at=clock.now + timedelta(days=1))

    user = resolve_or_create_user(repo, identity(), clock=clock)

    assert user.role == "owner"


def test_accepted_invite_is_not_reused(repo, db_session, tenant):
    make_invite(db_session, tenant, status="accepted")

    with pytest.raises(LoginRejectedError) as exc_info:
        resolve_or_create_user(repo, identity())

    assert exc_info.value.reason == "not_invited"


def test_existing_user_gets_provider_id_linked(repo, db_session, member):
    user = resolve_or_create_user(repo, identity(email=member.email, provider_id="google-999"))

    assert user.id == member.id
    db_session.refresh(member)
    assert member.google_id == "google-999"


def test_provider_id_mismatch_is_rejected(repo, db_session, tenant):
    make_user(db_session, email="taken@example.com", tenant=tenant, google_id="google-original")

    with pytest.raises(LoginRejectedError) as exc_info:
        resolve_or_create_user(repo, identity(email="taken@example.com", provider_id="google-attacker"))

    assert exc_info.value.reason == "account_mismatch"


# ============================================================================
# Sessions
# ============================================================================


def test_create_session(repo, db_session, member, clock):
    session = create_session(repo, member, user_agent="pytest", ip_address="203.0.113.7", clock=clock)

    assert re.fullmatch(r"[0-9a-f]{64}", session.token)
    assert session.expires_at == clock.now + timedelta(days=30)
    assert session.user_id == member.id
    assert session.user_agent == "pytest"

    db_session.refresh(member)
    assert member.last_login_at == clock.now


def test_sessions_are_never_reused(repo, member, clock):
    first = create_session(repo, member, clock=clock)
    second = create_session(repo, member, clock=clock)

    assert first.token != second.token
    assert first.id != second.id


def test_session_ttl_from_env(repo, member, clock, monkeypatch):
    monkeypatch.setenv("SESSION_TTL_DAYS", "7")

    session = create_session(repo, member, clock=clock)

    assert session.expires_at == clock.now + timedelta(days=7)


def test_delete_session(repo, db_session, member_session):
    assert delete_session(repo, member_session.token) is True
    assert db_session.query(UserSession).count() == 0


def test_delete_unknown_or_missing_session(repo):
    assert delete_session(repo, "f" * 64) is False
    assert delete_session(repo, None) is False


def test_delete_session_store_failure_is_not_fatal():
    repo = MagicMock()
    repo.delete_session_by_token.side_effect = StoreError("delete_session_by_token")

    assert delete_session(repo, "a" * 64) is False


# ============================================================================
# Redirect
# ============================================================================


def test_redirect_to_first_accessible_tenant(repo, member):
    assert resolve_login_redirect(repo, member) == "/?tenant=acme"


def test_redirect_merges_primary_tenant(repo, db_session, tenant):
    user = make_user(db_session, email="primary@example.com", tenant=tenant)

    assert resolve_login_redirect(repo, user) == "/?tenant=acme"


def test_super_admin_without_tenants_goes_to_admin(repo, db_session):
    admin = make_user(db_session, email="root@example.com", is_super_admin=True)

    assert resolve_login_redirect(repo, admin) == "/admin"


def test_accountant_goes_to_dashboard(repo, db_session, tenant):
    accountant = make_user(db_session, email="cpa@example.com", is_accountant=True)
    grant_access(db_session, accountant, tenant, role="accountant")

    assert resolve_login_redirect(repo, accountant) == "/dashboard"


def test_user_without_tenants_is_rejected(repo, db_session):
    orphan = make_user(db_session, email="orphan@example.com")

    with pytest.raises(LoginRejectedError) as exc_info:
        resolve_login_redirect(repo, orphan)

    assert exc_info.value.reason == "no_tenant_access"


def test_complete_login_issues_session_and_redirect(repo, db_session, tenant):
    clock = FakeClock()
    make_invite(db_session, tenant, expires_at=clock.now + timedelta(days=1))

    session, redirect_to = complete_login(repo, identity(), user_agent="pytest", clock=clock)

    assert redirect_to == "/?tenant=acme"
    assert db_session.query(UserSession).filter_by(token=session.token).count() == 1


def test_complete_login_without_access_issues_no_session(repo, db_session):
    make_user(db_session, email="orphan@example.com", google_id="google-1")

    with pytest.raises(LoginRejectedError):
        complete_login(repo, identity(email="orphan@example.com", provider_id="google-1"))

    assert db_session.query(UserSession).count() == 0


# ============================================================================
# /me projection
# ============================================================================


def test_describe_session_user(repo, db_session, tenant, member):
    other = make_tenant(db_session, subdomain="globex", name="Globex")
    grant_access(db_session, member, other, role="viewer")

    me = describe_session_user(repo, member)

    assert me.id == member.id
    assert me.primary_tenant.subdomain == "acme"
    assert {entry.tenant.subdomain for entry in me.tenant_access} == {"acme", "globex"}
    assert {entry.role for entry in me.tenant_access} == {"owner", "viewer"}
