"""Login completion after an OAuth provider has verified the caller's email.

The provider exchange itself happens elsewhere; this module takes the
verified identity and:
1. Resolves the user by email, or creates it from a pending invite
2. Links (or checks) the provider account id
3. Issues a brand-new session (sessions are never renewed in place)
4. Picks the post-login landing page

SECURITY:
- Uninvited emails never get an account
- A provider id mismatch on an existing user is refused (takeover guard)
- Raw session tokens are only returned to the caller for the cookie
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional

from pydantic import BaseModel

from xpt_api.config.env import get_session_ttl_days
from xpt_api.db.models import Tenant, User, UserSession, utc_now
from xpt_api.db.repository import GateRepository
from xpt_api.errors import LoginRejectedError, StoreError
from xpt_api.schemas import MeUser, TenantAccessEntry, TenantSummary

logger = logging.getLogger(__name__)

DEFAULT_INVITE_ROLE = "owner"


class VerifiedIdentity(BaseModel):
    """Identity returned by the OAuth provider after token exchange."""

    email: str
    provider_id: str
    email_verified: bool = True
    given_name: Optional[str] = None
    family_name: Optional[str] = None


def generate_session_token() -> str:
    """256-bit random token, hex encoded (64 chars)."""
    return secrets.token_hex(32)


def resolve_or_create_user(
    repo: GateRepository,
    identity: VerifiedIdentity,
    clock: Callable[[], datetime] = utc_now,
) -> User:
    """Find the user for a verified identity, accepting a pending invite if needed.

    Raises:
        LoginRejectedError: email_not_verified, not_invited, invite_expired,
            account_mismatch
    """
    if not identity.email_verified:
        raise LoginRejectedError(reason="email_not_verified")

    email = identity.email.lower()
    user = repo.get_user_by_email(email)

    if user is None:
        invite = repo.get_pending_invite(email)
        if invite is None:
            logger.info("auth.login.not_invited", extra={"provider_id": identity.provider_id})
            raise LoginRejectedError(reason="not_invited", detail="No invitation found for this account.")

        if invite.expires_at < clock():
            logger.info("auth.login.invite_expired", extra={"invite_id": invite.id})
            raise LoginRejectedError(reason="invite_expired", detail="This invitation has expired.")

        role = invite.role or DEFAULT_INVITE_ROLE
        user = repo.accept_invite(
            invite,
            User(
                email=email,
                first_name=identity.given_name or invite.first_name,
                last_name=identity.family_name or invite.last_name,
                google_id=identity.provider_id,
                tenant_id=invite.tenant_id,
                role=role,
                email_verified=True,
                is_super_admin=False,
                is_accountant=False,
            ),
            role=role,
        )
        logger.info(
            "auth.login.invite_accepted",
            extra={"invite_id": invite.id, "new_user_id": user.id, "role": role},
        )

    if not user.google_id:
        user.google_id = identity.provider_id
        repo.save_user(user)
    elif user.google_id != identity.provider_id:
        logger.error("auth.login.account_mismatch", extra={"existing_user_id": user.id})
        raise LoginRejectedError(reason="account_mismatch", detail="Account mismatch.")

    return user


def create_session(
    repo: GateRepository,
    user: User,
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
    clock: Callable[[], datetime] = utc_now,
) -> UserSession:
    """Issue a new session row for the user and stamp last_login_at."""
    now = clock()
    session = repo.add_session(
        UserSession(
            user_id=user.id,
            tenant_id=user.tenant_id,
            token=generate_session_token(),
            expires_at=now + timedelta(days=get_session_ttl_days()),
            user_agent=user_agent,
            ip_address=ip_address,
            created_at=now,
        )
    )

    user.last_login_at = now
    repo.save_user(user)

    logger.info("auth.session.created", extra={"session_id": session.id, "login_user_id": user.id})
    return session


def accessible_subdomains(repo: GateRepository, user: User) -> list[str]:
    """Subdomains the user holds access rows for, with the primary tenant merged in."""
    subdomains = [tenant.subdomain for _access, tenant in repo.list_tenant_access(user.id)]

    if user.tenant_id:
        primary = repo.get_tenant(user.tenant_id)
        if primary is not None and primary.subdomain not in subdomains:
            subdomains.append(primary.subdomain)

    return subdomains


def resolve_login_redirect(repo: GateRepository, user: User) -> str:
    """Landing page after login.

    - Any user with tenants: first accessible tenant
    - Super admin without tenants: /admin
    - Accountant: /dashboard (tenant picker)
    - Regular user without tenants: rejected

    Raises:
        LoginRejectedError: no_tenant_access
    """
    subdomains = accessible_subdomains(repo, user)

    if user.is_super_admin:
        if not subdomains:
            return "/admin"
        if len(subdomains) > 1:
            logger.info("auth.login.multiple_tenants", extra={"tenant_count": len(subdomains)})
        return f"/?tenant={subdomains[0]}"

    if user.is_accountant:
        return "/dashboard"

    if not subdomains:
        raise LoginRejectedError(reason="no_tenant_access", detail="Your account has no tenant access.")
    if len(subdomains) > 1:
        logger.info("auth.login.multiple_tenants", extra={"tenant_count": len(subdomains)})
    return f"/?tenant={subdomains[0]}"


def complete_login(
    repo: GateRepository,
    identity: VerifiedIdentity,
    user_agent: Optional[str] = None,
    ip_address: Optional[str] = None,
    clock: Callable[[], datetime] = utc_now,
) -> tuple[UserSession, str]:
    """Resolve the user, issue a session and return (session, redirect path).

    The redirect is resolved before the session is written so a user with
    no tenant access never receives a credential.
    """
    user = resolve_or_create_user(repo, identity, clock=clock)
    redirect_to = resolve_login_redirect(repo, user)
    session = create_session(repo, user, user_agent=user_agent, ip_address=ip_address, clock=clock)
    return session, redirect_to


def delete_session(repo: GateRepository, session_token: Optional[str]) -> bool:
    """Remove the session row on logout.

    A store failure is logged and reported as False; the caller still
    clears the cookie.
    """
    if not session_token:
        return False
    try:
        return repo.delete_session_by_token(session_token) > 0
    except StoreError:
        logger.error("auth.logout.delete_failed")
        return False


def _tenant_summary(tenant: Tenant) -> TenantSummary:
    return TenantSummary(
        id=tenant.id,
        name=tenant.name,
        subdomain=tenant.subdomain,
        logo_url=tenant.logo_url,
        primary_color=tenant.primary_color,
        app_name=tenant.app_name,
    )


def describe_session_user(repo: GateRepository, user: User) -> MeUser:
    """Profile, primary tenant and tenant access list for GET /v1/auth/me."""
    primary_tenant = None
    if user.tenant_id:
        tenant = repo.get_tenant(user.tenant_id)
        if tenant is not None:
            primary_tenant = _tenant_summary(tenant)

    tenant_access = [
        TenantAccessEntry(
            tenant_id=access.tenant_id,
            role=access.role,
            can_edit=bool(access.can_edit),
            tenant=_tenant_summary(tenant),
        )
        for access, tenant in repo.list_tenant_access(user.id)
    ]

    return MeUser(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        tenant_id=user.tenant_id,
        role=user.role,
        is_super_admin=bool(user.is_super_admin),
        is_accountant=bool(user.is_accountant),
        primary_tenant=primary_tenant,
        tenant_access=tenant_access,
    )
