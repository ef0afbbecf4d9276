"""Persistence port consumed by the gate components.

AuthResolver and the rate limit components each depend on the narrowest
protocol they need. GateRepository implements all of them.
"""

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from xpt_api.db.models import Tenant, User, UserSession, UserTenantAccess


@runtime_checkable
class AuthStore(Protocol):
    def get_session_by_token(self, token: str) -> Optional[UserSession]: ...

    def get_user(self, user_id: str) -> Optional[User]: ...

    def get_tenant_by_subdomain(self, subdomain: str) -> Optional[Tenant]: ...

    def get_tenant_access(self, user_id: str, tenant_id: str) -> Optional[UserTenantAccess]: ...


@runtime_checkable
class UsageStore(Protocol):
    def count_usage(self, tenant_id: str, action_type: str, since: datetime) -> int: ...

    def add_usage(self, tenant_id: str, action_type: str, created_at: datetime) -> None: ...
