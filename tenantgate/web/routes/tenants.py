"""Current-tenant routes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from tenantgate.audit.logger import audit
from tenantgate.tenancy.tenant_settings import effective_settings
from tenantgate.web.auth.rbac import require_admin, require_viewer
from tenantgate.web.dependencies import get_tenant_repo
from tenantgate.web.tenant_context import RequestContext

if TYPE_CHECKING:
    from tenantgate.models.domain import Tenant

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/tenant", tags=["tenant"])


class UpdateSettingsRequest(BaseModel):
    settings: dict[str, Any]


class TenantResponse(BaseModel):
    id: str
    name: str
    primary_domain: str
    custom_domain: str | None = None
    plan: str
    subscription_status: str
    settings: dict[str, Any]


def _to_response(tenant: Tenant) -> TenantResponse:
    return TenantResponse(
        id=tenant.id,
        name=tenant.name,
        primary_domain=tenant.primary_domain,
        custom_domain=tenant.custom_domain,
        plan=tenant.plan,
        subscription_status=tenant.subscription_status,
        settings=effective_settings(tenant),
    )


@router.get("/current", response_model=TenantResponse)
async def current_tenant(context: RequestContext = Depends(require_viewer)) -> TenantResponse:
    return _to_response(context.tenant)


@router.patch("/settings", response_model=TenantResponse)
async def update_settings(
    body: UpdateSettingsRequest,
    request: Request,
    context: RequestContext = Depends(require_admin),
    tenants: Any = Depends(get_tenant_repo),
) -> TenantResponse:
    tenant = await tenants.update_settings(context.tenant.id, body.settings)
    principal_id = context.principal.id if context.principal else ""
    await audit(
        tenant_id=tenant.id,
        user_id=principal_id,
        action="tenant.settings_updated",
        resource_type="tenant",
        resource_id=tenant.id,
        details={"keys": sorted(body.settings)},
        request_id=request.headers.get("x-request-id", ""),
    )
    return _to_response(tenant)
