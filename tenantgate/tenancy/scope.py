"""Tenant-scoped execution context.

A tenant id is bound to the current unit of work through a ``ContextVar``:
each asyncio task (and each thread) sees only its own binding, and tasks
spawned inside a scope inherit it. The binding is released when the scope
exits, whether the enclosed operation returns, raises or is cancelled.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, TypeVar

import structlog

from tenantgate.exceptions import NestedTenantMismatch, TenantScopeRequired

if TYPE_CHECKING:
    from tenantgate.storage.tenant_binding import TenantBinding

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_current_tenant: ContextVar[str | None] = ContextVar("tenantgate_current_tenant", default=None)


def current_tenant_id() -> str | None:
    """Return the tenant id bound to the running unit of work, if any."""
    return _current_tenant.get()


def require_current_tenant() -> str:
    """Return the bound tenant id or raise TenantScopeRequired."""
    tenant_id = _current_tenant.get()
    if tenant_id is None:
        msg = "No tenant scope is active"
        raise TenantScopeRequired(msg)
    return tenant_id


@asynccontextmanager
async def tenant_scope(
    tenant_id: str,
    binding: TenantBinding | None = None,
) -> AsyncIterator[str]:
    """Bind ``tenant_id`` for the duration of the ``async with`` block.

    Re-entering with the same tenant id is allowed and leaves the outer
    binding in place; a different tenant id raises NestedTenantMismatch.
    A storage ``binding``, when given, is set on entry and cleared on exit.
    """
    if not tenant_id:
        msg = "tenant_id must be a non-empty string"
        raise ValueError(msg)

    active = _current_tenant.get()
    if active is not None and active != tenant_id:
        logger.error("nested_tenant_mismatch", active_tenant_id=active, tenant_id=tenant_id)
        raise NestedTenantMismatch(active, tenant_id)

    token = _current_tenant.set(tenant_id) if active is None else None
    try:
        if binding is not None:
            await binding.set_current_tenant(tenant_id)
        yield tenant_id
    finally:
        if token is not None:
            _current_tenant.reset(token)
        if binding is not None:
            await binding.clear_current_tenant()


async def with_tenant(
    tenant_id: str,
    operation: Callable[[], Awaitable[T]],
    binding: TenantBinding | None = None,
) -> T:
    """Run ``operation`` inside a tenant scope and return its result."""
    async with tenant_scope(tenant_id, binding):
        return await operation()
