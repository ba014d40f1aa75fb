"""Async database engine and tenant-bound sessions."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from tenantgate.config.settings import get_settings
from tenantgate.storage.tenant_binding import SessionTenantBinding
from tenantgate.tenancy.scope import require_current_tenant, tenant_scope


@lru_cache
def get_engine() -> AsyncEngine:
    """Return a cached async database engine (singleton per process)."""
    settings = get_settings()
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


@asynccontextmanager
async def tenant_session(engine: AsyncEngine | None = None) -> AsyncIterator[AsyncSession]:
    """Open a session whose transactions are bound to the current tenant.

    Must be called inside a tenant scope. On PostgreSQL every transaction the
    session begins sets ``app.current_tenant_id`` for row-level security.
    """
    tenant_id = require_current_tenant()
    engine = engine or get_engine()
    async with AsyncSession(engine) as session:
        binding = SessionTenantBinding(session) if engine.dialect.name == "postgresql" else None
        async with tenant_scope(tenant_id, binding):
            yield session

