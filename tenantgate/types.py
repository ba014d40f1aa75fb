"""Enums for tenantgate."""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    """Closed set of principal roles, ordered by privilege."""

    VIEWER = "viewer"
    EDITOR = "editor"
    ADMIN = "admin"


class ResolutionFailureKind(StrEnum):
    NO_TENANT_FOR_REQUEST = "no_tenant_for_request"
    TENANT_INACTIVE = "tenant_inactive"
    RESOLUTION_UNAVAILABLE = "resolution_unavailable"


class DenyReason(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    CROSS_TENANT = "cross_tenant"
    INSUFFICIENT_ROLE = "insufficient_role"
