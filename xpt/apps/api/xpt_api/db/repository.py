"""SQLAlchemy implementation of the gate persistence port.

All store failures surface as StoreError so callers can tell infrastructure
problems apart from policy denials.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from xpt_api.db.models import (
    Invite,
    RateLimitUsage,
    Tenant,
    User,
    UserSession,
    UserTenantAccess,
    utc_now,
)
from xpt_api.errors import StoreError

logger = logging.getLogger(__name__)


class GateRepository:
    """Point lookups, windowed counts and appends against one DB session."""

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "store.operation.failed",
                extra={"operation": operation, "error_type": type(e).__name__},
                exc_info=True,
            )
            raise StoreError(operation) from e

    # ------------------------------------------------------------------
    # Sessions / users / tenants
    # ------------------------------------------------------------------

    def get_session_by_token(self, token: str) -> Optional[UserSession]:
        with self._guard("get_session_by_token"):
            return self.db.scalars(
                select(UserSession).where(UserSession.token == token).limit(1)
            ).first()

    def get_user(self, user_id: str) -> Optional[User]:
        with self._guard("get_user"):
            return self.db.get(User, user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._guard("get_user_by_email"):
            return self.db.scalars(
                select(User).where(User.email == email.lower()).limit(1)
            ).first()

    def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        with self._guard("get_tenant"):
            return self.db.get(Tenant, tenant_id)

    def get_tenant_by_subdomain(self, subdomain: str) -> Optional[Tenant]:
        with self._guard("get_tenant_by_subdomain"):
            return self.db.scalars(
                select(Tenant).where(Tenant.subdomain == subdomain).limit(1)
            ).first()

    def get_tenant_access(self, user_id: str, tenant_id: str) -> Optional[UserTenantAccess]:
        with self._guard("get_tenant_access"):
            return self.db.scalars(
                select(UserTenantAccess)
                .where(
                    UserTenantAccess.user_id == user_id,
                    UserTenantAccess.tenant_id == tenant_id,
                )
                .limit(1)
            ).first()

    def list_tenant_access(self, user_id: str) -> list[tuple[UserTenantAccess, Tenant]]:
        """All tenants a user holds an access row for, oldest grant first."""
        with self._guard("list_tenant_access"):
            rows = self.db.execute(
                select(UserTenantAccess, Tenant)
                .join(Tenant, UserTenantAccess.tenant_id == Tenant.id)
                .where(UserTenantAccess.user_id == user_id)
                .order_by(UserTenantAccess.created_at.asc())
            ).all()
            return [(access, tenant) for access, tenant in rows]

    def add_session(self, session: UserSession) -> UserSession:
        with self._guard("add_session"):
            self.db.add(session)
            self.db.commit()
            return session

    def delete_session_by_token(self, token: str) -> int:
        """Delete a session row (logout). Returns number of rows removed."""
        with self._guard("delete_session_by_token"):
            result = self.db.execute(delete(UserSession).where(UserSession.token == token))
            self.db.commit()
            return result.rowcount or 0

    # ------------------------------------------------------------------
    # Login completion
    # ------------------------------------------------------------------

    def get_pending_invite(self, email: str) -> Optional[Invite]:
        with self._guard("get_pending_invite"):
            return self.db.scalars(
                select(Invite)
                .where(Invite.email == email.lower(), Invite.status == "pending")
                .order_by(Invite.created_at.desc())
                .limit(1)
            ).first()

    def accept_invite(self, invite: Invite, user: User, role: str) -> User:
        """Create the invited user, its access row, and mark the invite accepted.

        Runs as one transaction.
        """
        with self._guard("accept_invite"):
            self.db.add(user)
            self.db.flush()
            self.db.add(
                UserTenantAccess(
                    user_id=user.id,
                    tenant_id=invite.tenant_id,
                    role=role,
                )
            )
            now = utc_now()
            invite.status = "accepted"
            invite.accepted_at = now
            invite.updated_at = now
            self.db.commit()
            return user

    def save_user(self, user: User) -> User:
        with self._guard("save_user"):
            self.db.add(user)
            self.db.commit()
            return user

    # ------------------------------------------------------------------
    # Usage ledger
    # ------------------------------------------------------------------

    def count_usage(self, tenant_id: str, action_type: str, since: datetime) -> int:
        with self._guard("count_usage"):
            count = self.db.scalar(
                select(func.count())
                .select_from(RateLimitUsage)
                .where(
                    RateLimitUsage.tenant_id == tenant_id,
                    RateLimitUsage.action_type == action_type,
                    RateLimitUsage.created_at >= since,
                )
            )
            return int(count or 0)

    def add_usage(self, tenant_id: str, action_type: str, created_at: datetime) -> None:
        with self._guard("add_usage"):
            self.db.add(
                RateLimitUsage(
                    tenant_id=tenant_id,
                    action_type=action_type,
                    created_at=created_at,
                )
            )
            self.db.commit()
