"""Normalize loosely-typed upstream user records into a Principal.

Upstream records come from the session store or from identity-provider
token claims and may be dicts or attribute objects with missing, misspelt or
corrupt fields. ``normalize_principal`` maps every such input to a fully
defined Principal (or None) with these defaults:

- no usable ``id``: None, the caller is unauthenticated;
- role missing or not exactly one of the known role values: ``viewer``;
- tenant affiliation missing or blank: ``tenant_id=None`` (no tenant);
- ``is_active`` missing: True; any non-boolean value: False.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import structlog

from tenantgate.models.domain import Principal
from tenantgate.types import Role

logger = structlog.get_logger(__name__)

DEFAULT_ROLE = Role.VIEWER

_ROLES_BY_VALUE: dict[str, Role] = {role.value: role for role in Role}
_MISSING = object()


@dataclass(frozen=True, slots=True)
class RequestCredentials:
    """Credentials presented with a request."""

    session_token: str | None = None
    bearer_token: str | None = None


class UpstreamIdentityProvider(Protocol):
    async def get_upstream_user_record(self, credentials: RequestCredentials) -> Any | None: ...


def _field(raw: Any, *names: str) -> Any:
    for name in names:
        if isinstance(raw, Mapping):
            value = raw.get(name, _MISSING)
        else:
            value = getattr(raw, name, _MISSING)
        if value is not _MISSING and value is not None:
            return value
    return None


def _identifier(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (str, int, uuid.UUID)):
        text = str(value).strip()
        return text or None
    return None


def normalize_role(value: Any) -> Role:
    """Map an untrusted role value to a Role, never above ``viewer`` by default."""
    if isinstance(value, str):
        return _ROLES_BY_VALUE.get(value, DEFAULT_ROLE)
    return DEFAULT_ROLE


def normalize_principal(raw: Any | None) -> Principal | None:
    """Build a Principal from an upstream user record."""
    if raw is None:
        return None
    principal_id = _identifier(_field(raw, "id", "user_id"))
    if principal_id is None:
        return None

    email = _field(raw, "email")
    is_active = _field(raw, "is_active", "isActive")
    return Principal(
        id=principal_id,
        email=email if isinstance(email, str) else "",
        role=normalize_role(_field(raw, "role")),
        tenant_id=_identifier(_field(raw, "tenant_id", "tenantId")),
        is_active=True if is_active is None else is_active is True,
    )


async def current_principal(
    credentials: RequestCredentials,
    provider: UpstreamIdentityProvider,
) -> Principal | None:
    """Resolve the authenticated principal for a request, or None.

    Inactive principals are treated as unauthenticated.
    """
    raw = await provider.get_upstream_user_record(credentials)
    principal = normalize_principal(raw)
    if principal is None:
        return None
    if not principal.is_active:
        logger.info("principal_inactive", principal_id=principal.id)
        return None
    return principal
