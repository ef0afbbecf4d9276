"""Session authentication and tenant authorization.

FLOW (order is fixed):
1. Session token from the `session` cookie           -> 401 if absent
2. Session row by token, not expired                 -> 401 (cookie cleared)
3. User row for session.user_id                      -> 401 (cookie cleared)
4. Tenant identifier from ?tenant=                   -> 400 if absent
5. Tenant by subdomain                               -> 400 if unknown
6. Access row for (user, tenant) OR user is super admin -> 403 otherwise
7. AuthResult(user, tenant_id, session_id)

SECURITY:
- Tenant problems are only reported after the credential is proven valid,
  so a tenant probe never reveals whether a token was good.
- The super-admin bypass applies only to a tenant that exists.
- Every route goes through require_tenant_auth; the cookie is always read
  from the framework-parsed cookie map.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from fastapi import Depends, Query, Request
from sqlalchemy.orm import Session

from xpt_api.config.env import SESSION_COOKIE_NAME
from xpt_api.context import tenant_id_var, user_id_var
from xpt_api.db.models import User, UserSession, utc_now
from xpt_api.db.ports import AuthStore
from xpt_api.db.repository import GateRepository
from xpt_api.db.session import get_db
from xpt_api.errors import MissingContextError, UnauthenticatedError, UnauthorizedError

logger = logging.getLogger(__name__)


class AuthUser:
    """Projection of the authenticated user carried through a request."""

    def __init__(
        self,
        id: str,
        email: str,
        is_super_admin: bool = False,
        is_accountant: bool = False,
    ):
        self.id = id
        self.email = email
        self.is_super_admin = is_super_admin
        self.is_accountant = is_accountant

    @classmethod
    def from_model(cls, user: User) -> "AuthUser":
        return cls(
            id=user.id,
            email=user.email,
            is_super_admin=bool(user.is_super_admin),
            is_accountant=bool(user.is_accountant),
        )


class AuthResult:
    """Successful authentication + tenant authorization."""

    def __init__(self, user: AuthUser, tenant_id: str, session_id: str):
        self.user = user
        self.tenant_id = tenant_id
        self.session_id = session_id


class AuthResolver:
    """Validates a session token and authorizes it against a tenant.

    Reads only. Store failures propagate as StoreError.
    """

    def __init__(self, store: AuthStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def resolve_session(self, session_token: Optional[str]) -> tuple[UserSession, User]:
        """Steps 1-3: credential -> live session -> user."""
        if not session_token:
            raise UnauthenticatedError(
                reason="missing_credential",
                detail="Not authenticated. Please log in.",
            )

        session = self.store.get_session_by_token(session_token)
        if session is None or session.expires_at <= self.clock():
            logger.info(
                "auth.session.invalid",
                extra={"reason": "not_found" if session is None else "expired"},
            )
            raise UnauthenticatedError(
                reason="invalid_or_expired_session",
                detail="Session expired. Please log in again.",
                clear_credential=True,
            )

        user = self.store.get_user(session.user_id)
        if user is None:
            # Session outlived the user record it points to
            logger.warning(
                "auth.session.user_missing",
                extra={"session_id": session.id},
            )
            raise UnauthenticatedError(
                reason="user_not_found",
                detail="User not found. Please log in again.",
                clear_credential=True,
            )

        return session, user

    def authenticate(
        self,
        session_token: Optional[str],
        tenant_identifier: Optional[str],
    ) -> AuthResult:
        """Run the full gate. See module docstring for the step order."""
        session, user = self.resolve_session(session_token)

        if not tenant_identifier:
            raise MissingContextError(
                reason="missing_tenant",
                detail="No tenant selected. Pass ?tenant=<subdomain>.",
            )

        tenant = self.store.get_tenant_by_subdomain(tenant_identifier)
        if tenant is None:
            raise MissingContextError(
                reason="unknown_tenant",
                detail=f"Unknown tenant '{tenant_identifier}'.",
            )

        access = self.store.get_tenant_access(user.id, tenant.id)
        if access is None and not user.is_super_admin:
            logger.warning(
                "auth.tenant_access.denied",
                extra={"auth_user_id": user.id, "auth_tenant_id": tenant.id},
            )
            raise UnauthorizedError(
                reason="no_tenant_access",
                detail="You do not have access to this tenant.",
            )

        return AuthResult(
            user=AuthUser.from_model(user),
            tenant_id=tenant.id,
            session_id=session.id,
        )


# ============================================================================
# FastAPI dependencies
# ============================================================================


def get_gate_repository(db: Session = Depends(get_db)) -> GateRepository:
    return GateRepository(db)


def get_auth_resolver(repo: GateRepository = Depends(get_gate_repository)) -> AuthResolver:
    return AuthResolver(repo)


async def require_session(
    request: Request,
    resolver: AuthResolver = Depends(get_auth_resolver),
) -> tuple[UserSession, User]:
    """Session-only authentication (no tenant context), e.g. GET /v1/auth/me."""
    session, user = resolver.resolve_session(request.cookies.get(SESSION_COOKIE_NAME))
    user_id_var.set(user.id)
    return session, user


async def require_tenant_auth(
    request: Request,
    tenant: Optional[str] = Query(None, description="Tenant subdomain"),
    resolver: AuthResolver = Depends(get_auth_resolver),
) -> AuthResult:
    """Authenticate the session cookie and authorize it for ?tenant=.

    Raises:
        UnauthenticatedError: 401 (cookie cleared where the session is gone)
        MissingContextError: 400
        UnauthorizedError: 403
    """
    result = resolver.authenticate(request.cookies.get(SESSION_COOKIE_NAME), tenant)

    # Observability: tenant/user on every subsequent log line of this request
    tenant_id_var.set(result.tenant_id)
    user_id_var.set(result.user.id)

    logger.info(
        "auth.success",
        extra={"super_admin": result.user.is_super_admin},
    )
    return result
