"""Resolved request context: the resolved tenant paired with the principal."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tenantgate.models.domain import Principal, Tenant


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Immutable per-request context.

    Built only by ``web.dependencies.get_request_context`` so the tenant and
    principal always come from the same request.
    """

    tenant: Tenant
    principal: Principal | None = None
