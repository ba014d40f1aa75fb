"""Domain models for tenant resolution and authorization results."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tenantgate.types import DenyReason, ResolutionFailureKind, Role


@dataclass(frozen=True, slots=True)
class Tenant:
    """One customer organization, as read from the tenant directory."""

    id: str
    name: str
    primary_domain: str
    custom_domain: str | None = None
    is_active: bool = True
    settings: dict[str, Any] = field(default_factory=dict, hash=False)
    plan: str = "free"  # free | pro | enterprise
    subscription_status: str = "active"  # active | cancelled | past_due


@dataclass(frozen=True, slots=True)
class Principal:
    """Normalized view of the authenticated actor.

    ``tenant_id`` is None for platform-level principals that belong to no
    tenant; it never means "every tenant".
    """

    id: str
    email: str
    role: Role
    tenant_id: str | None
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class ResolutionFailure:
    """Why a request could not be bound to a tenant."""

    kind: ResolutionFailureKind
    detail: str = ""

    @property
    def is_fatal(self) -> bool:
        """True when the request cannot be served at all (infrastructure failure)."""
        return self.kind is ResolutionFailureKind.RESOLUTION_UNAVAILABLE


@dataclass(frozen=True, slots=True)
class Allow:
    """Guard decision permitting the operation."""

    allowed: bool = field(default=True, init=False)


@dataclass(frozen=True, slots=True)
class Deny:
    """Guard decision rejecting the operation."""

    reason: DenyReason
    allowed: bool = field(default=False, init=False)


Decision = Allow | Deny
