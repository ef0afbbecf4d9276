"""Tenant endpoint."""

from fastapi import APIRouter, Depends

from xpt_api.auth.session_auth import AuthResult, get_gate_repository, require_tenant_auth
from xpt_api.db.repository import GateRepository
from xpt_api.errors import MissingContextError
from xpt_api.schemas import TenantResponse

router = APIRouter(prefix="/v1", tags=["tenant"])


@router.get("/tenant", response_model=TenantResponse)
def get_tenant(
    auth: AuthResult = Depends(require_tenant_auth),
    repo: GateRepository = Depends(get_gate_repository),
) -> TenantResponse:
    """Branding and status of the tenant selected with ?tenant=."""
    tenant = repo.get_tenant(auth.tenant_id)
    if tenant is None:
        # Deleted between the gate and this read
        raise MissingContextError(reason="unknown_tenant", detail="Tenant no longer exists.")

    return TenantResponse(
        id=tenant.id,
        name=tenant.name,
        subdomain=tenant.subdomain,
        logo_url=tenant.logo_url,
        primary_color=tenant.primary_color,
        app_name=tenant.app_name,
        is_active=bool(tenant.is_active),
    )
