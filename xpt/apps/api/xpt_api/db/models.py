"""SQLAlchemy ORM models for the request gate."""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BOOLEAN, TEXT, TIMESTAMP, Index, String, TypeDecorator, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC timestamp on every backend.

    PostgreSQL stores TIMESTAMPTZ natively. SQLite has no timezone support,
    so values are normalized to naive UTC on write and re-tagged on read.
    """

    impl = TIMESTAMP
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Tenant(Base):
    """Organizational workspace. Identity is immutable once created."""

    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subdomain: Mapped[str] = mapped_column(String(63), nullable=False, unique=True)

    # Branding (white-label)
    logo_url: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    primary_color: Mapped[Optional[str]] = mapped_column(String(7), nullable=True, default="#2A9D8F")
    app_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    is_active: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )


class User(Base):
    """Identity record.

    tenant_id is the optional primary tenant; super admins and accountants
    may exist above tenant scope with tenant_id NULL.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)  # FK to tenants

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    email_verified: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=False)
    google_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Role within the PRIMARY tenant; per-tenant roles live in user_tenant_access
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="viewer")

    is_super_admin: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=False)
    is_accountant: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_users_email", "email"),)


class UserTenantAccess(Base):
    """Grant of a role for one user within one tenant."""

    __tablename__ = "user_tenant_access"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)  # FK to users
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)  # FK to tenants

    # 'owner' | 'admin' | 'editor' | 'data_entry' | 'viewer' | 'accountant'
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    can_edit: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, default=False)
    invited_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        # One access record per (user, tenant)
        UniqueConstraint("user_id", "tenant_id", name="user_tenant_unique"),
    )


class UserSession(Base):
    """Opaque bearer session. Read-only after creation; never renewed in place."""

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)  # FK to users
    tenant_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    token: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True), nullable=False)

    user_agent: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)  # IPv6 length

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (Index("idx_sessions_user", "user_id"),)


class RateLimitUsage(Base):
    """Append-only ledger of rate-limited actions. Never updated or deleted here."""

    __tablename__ = "rate_limit_usage"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("idx_rate_limit_usage_window", "tenant_id", "action_type", "created_at"),
    )


class Invite(Base):
    """Pending invitation that lets a first-time login create a user."""

    __tablename__ = "invites"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False)
    role: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # 'pending' | 'accepted' | 'revoked'
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True), nullable=False)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (Index("idx_invites_email_status", "email", "status"),)
