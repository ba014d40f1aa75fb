"""Cross-tenant guard: tenant affiliation first, role second."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tenantgate.auth.roles import authorize
from tenantgate.models.domain import Allow, Deny
from tenantgate.types import DenyReason

if TYPE_CHECKING:
    from tenantgate.models.domain import Decision, Principal, Tenant
    from tenantgate.types import Role


def guard(tenant: Tenant, principal: Principal | None, required_role: Role) -> Decision:
    """Decide whether ``principal`` may perform a ``required_role`` operation in ``tenant``.

    The affiliation check runs before the role check: an admin of one tenant
    holds no privilege in another. Principals without a tenant (platform
    level) skip the affiliation check but not the role check.
    """
    if principal is None:
        return Deny(DenyReason.UNAUTHENTICATED)
    if principal.tenant_id is not None and principal.tenant_id != tenant.id:
        return Deny(DenyReason.CROSS_TENANT)
    if not authorize(principal.role, required_role):
        return Deny(DenyReason.INSUFFICIENT_ROLE)
    return Allow()
