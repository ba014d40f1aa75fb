"""Bind a request to exactly one active tenant, failing closed."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import structlog

from tenantgate.exceptions import DirectoryUnavailable
from tenantgate.models.domain import ResolutionFailure
from tenantgate.storage.repositories.tenants import strip_port
from tenantgate.types import ResolutionFailureKind

if TYPE_CHECKING:
    from tenantgate.models.domain import Tenant

logger = structlog.get_logger(__name__)


class TenantDirectory(Protocol):
    async def find_by_domain(self, domain: str) -> Tenant | None: ...

    async def find_by_id(self, tenant_id: str) -> Tenant | None: ...


async def resolve_tenant(
    directory: TenantDirectory,
    host: str | None,
    explicit_tenant_id: str | None = None,
) -> Tenant | ResolutionFailure:
    """Resolve the tenant for a request.

    ``explicit_tenant_id`` comes from a trusted upstream proxy; when present
    the host is ignored and only the existence and active checks run.
    Returns the tenant or a ResolutionFailure, never a partial match.
    """
    try:
        if explicit_tenant_id:
            tenant = await directory.find_by_id(explicit_tenant_id)
            lookup = explicit_tenant_id
        else:
            lookup = strip_port((host or "").strip())
            tenant = await directory.find_by_domain(lookup) if lookup else None
    except DirectoryUnavailable as exc:
        logger.error("tenant_resolution_unavailable", host=host, error=str(exc))
        return ResolutionFailure(ResolutionFailureKind.RESOLUTION_UNAVAILABLE, str(exc))

    if tenant is None:
        logger.info("tenant_not_found", lookup=lookup)
        return ResolutionFailure(ResolutionFailureKind.NO_TENANT_FOR_REQUEST, lookup)

    if not tenant.is_active:
        logger.warning("tenant_inactive", tenant_id=tenant.id)
        return ResolutionFailure(ResolutionFailureKind.TENANT_INACTIVE, tenant.id)

    logger.debug("tenant_resolved", tenant_id=tenant.id, lookup=lookup)
    return tenant
