"""Role-based access control dependencies for tenant-scoped routes."""

from __future__ import annotations

import structlog
from fastapi import Depends, HTTPException, Request

from tenantgate.audit.logger import audit
from tenantgate.models.domain import Deny
from tenantgate.tenancy.guard import guard
from tenantgate.types import DenyReason, Role
from tenantgate.web.dependencies import get_request_context
from tenantgate.web.tenant_context import RequestContext

logger = structlog.get_logger(__name__)

_DENY_RESPONSES: dict[DenyReason, tuple[int, str]] = {
    DenyReason.UNAUTHENTICATED: (401, "Authentication required"),
    DenyReason.CROSS_TENANT: (403, "Not a member of this tenant"),
    DenyReason.INSUFFICIENT_ROLE: (403, "Insufficient role"),
}


async def _enforce(request: Request, context: RequestContext, required: Role) -> RequestContext:
    decision = guard(context.tenant, context.principal, required)
    if isinstance(decision, Deny):
        principal_id = context.principal.id if context.principal else ""
        logger.warning(
            "guard_denied",
            reason=decision.reason.value,
            required_role=required.value,
            principal_id=principal_id,
        )
        await audit(
            tenant_id=context.tenant.id,
            user_id=principal_id,
            action="authz.denied",
            resource_type="route",
            resource_id=request.url.path,
            details={"reason": decision.reason.value, "required_role": required.value},
            ip_address=request.client.host if request.client else "",
            request_id=request.headers.get("x-request-id", ""),
        )
        status_code, detail = _DENY_RESPONSES[decision.reason]
        raise HTTPException(status_code=status_code, detail=detail)
    return context


async def require_viewer(
    request: Request,
    context: RequestContext = Depends(get_request_context),
) -> RequestContext:
    """Require at least viewer role."""
    return await _enforce(request, context, Role.VIEWER)


async def require_editor(
    request: Request,
    context: RequestContext = Depends(get_request_context),
) -> RequestContext:
    """Require at least editor role (blocks viewers)."""
    return await _enforce(request, context, Role.EDITOR)


async def require_admin(
    request: Request,
    context: RequestContext = Depends(get_request_context),
) -> RequestContext:
    """Require admin role."""
    return await _enforce(request, context, Role.ADMIN)
