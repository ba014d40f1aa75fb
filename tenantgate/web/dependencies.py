"""FastAPI dependency injection and per-app shared state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from fastapi import Depends, Request

from tenantgate.auth.identity import RequestCredentials, current_principal
from tenantgate.config.settings import get_settings
from tenantgate.models.domain import Principal, Tenant
from tenantgate.storage.repositories.tenants import InMemoryTenantRepository
from tenantgate.storage.repositories.users import InMemoryUserRepository
from tenantgate.web.auth.session import SESSION_COOKIE, SessionAuth, SessionIdentityProvider
from tenantgate.web.tenant_context import RequestContext

if TYPE_CHECKING:
    from tenantgate.auth.identity import UpstreamIdentityProvider

logger = structlog.get_logger(__name__)


def create_tenant_repo() -> InMemoryTenantRepository | Any:
    """Create the appropriate tenant repository based on settings."""
    settings = get_settings()
    if settings.use_database:
        from tenantgate.storage.database import get_engine
        from tenantgate.storage.repositories.tenants import DatabaseTenantRepository

        return DatabaseTenantRepository(get_engine())
    return InMemoryTenantRepository()


def create_user_repo() -> InMemoryUserRepository | Any:
    """Create the appropriate user repository based on settings."""
    settings = get_settings()
    if settings.use_database:
        from tenantgate.storage.database import get_engine
        from tenantgate.storage.repositories.users import DatabaseUserRepository

        return DatabaseUserRepository(get_engine())
    return InMemoryUserRepository()


def create_identity_provider(session_auth: SessionAuth, user_repo: Any) -> UpstreamIdentityProvider:
    settings = get_settings()
    if settings.auth_mode == "clerk":
        from tenantgate.web.auth.clerk import ClerkIdentityProvider

        return ClerkIdentityProvider()
    return SessionIdentityProvider(session_auth, user_repo)


def get_tenant_repo(request: Request) -> Any:
    return request.app.state.tenant_repo


def get_user_repo(request: Request) -> Any:
    return request.app.state.user_repo


def get_session_auth(request: Request) -> SessionAuth:
    return request.app.state.session_auth


def credentials_from_request(request: Request) -> RequestCredentials:
    auth_header = request.headers.get("authorization", "")
    bearer = auth_header[7:] if auth_header.startswith("Bearer ") else None
    return RequestCredentials(
        session_token=request.cookies.get(SESSION_COOKIE),
        bearer_token=bearer or None,
    )


async def get_resolved_tenant(request: Request) -> Tenant:
    """Return the tenant bound by TenantResolutionMiddleware."""
    tenant: Tenant | None = getattr(request.state, "tenant", None)
    if tenant is None:
        msg = "TenantResolutionMiddleware did not run for this route"
        raise RuntimeError(msg)
    return tenant


async def get_principal(request: Request) -> Principal | None:
    provider: UpstreamIdentityProvider = request.app.state.identity_provider
    return await current_principal(credentials_from_request(request), provider)


async def get_request_context(
    tenant: Tenant = Depends(get_resolved_tenant),
    principal: Principal | None = Depends(get_principal),
) -> RequestContext:
    """Pair the resolved tenant with the request's principal."""
    return RequestContext(tenant=tenant, principal=principal)
