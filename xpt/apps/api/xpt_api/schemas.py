"""Pydantic schemas for API requests/responses."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Errors
# ============================================================================


class ProblemDetail(BaseModel):
    """RFC 9457 Problem Details for HTTP API errors.

    Extension members (reason, limit_hit, retry_after_seconds, ...) are
    allowed and serialized next to the standard fields.
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(..., description="URI reference identifying the problem type")
    title: str = Field(..., description="Short, human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: str | dict[str, Any] = Field(..., description="Human-readable explanation or structured error details")
    instance: Optional[str] = Field(None, description="URI reference identifying the specific occurrence")


# ============================================================================
# GET /health
# ============================================================================


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    timestamp: datetime
    services: dict[str, str]


# ============================================================================
# GET /v1/auth/me, POST /v1/auth/logout
# ============================================================================


class TenantSummary(BaseModel):
    id: str
    name: str
    subdomain: str
    logo_url: Optional[str] = None
    primary_color: Optional[str] = None
    app_name: Optional[str] = None


class TenantAccessEntry(BaseModel):
    """One tenant the user may act in."""

    tenant_id: str
    role: str
    can_edit: bool
    tenant: TenantSummary


class MeUser(BaseModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    tenant_id: Optional[str] = None
    role: str
    is_super_admin: bool
    is_accountant: bool
    primary_tenant: Optional[TenantSummary] = None
    tenant_access: list[TenantAccessEntry] = Field(default_factory=list)


class MeResponse(BaseModel):
    """Response for GET /v1/auth/me."""

    user: MeUser


class LogoutResponse(BaseModel):
    success: bool = True


# ============================================================================
# GET /v1/tenant
# ============================================================================


class TenantResponse(TenantSummary):
    """Tenant resolved by the auth gate."""

    is_active: bool


# ============================================================================
# Receipts
# ============================================================================


class ReceiptScanRequest(BaseModel):
    """Request body for POST /v1/receipts/scan."""

    blob_url: str = Field(..., min_length=1, description="URL of the uploaded receipt file")


class ReceiptScanResponse(BaseModel):
    success: bool = True
    data: dict[str, Any]


class WindowUsageEntry(BaseModel):
    name: str
    seconds: int
    limit: int
    current: int
    remaining: int


class ReceiptUsageResponse(BaseModel):
    """Response for GET /v1/receipts/usage."""

    action_type: str
    windows: list[WindowUsageEntry]
