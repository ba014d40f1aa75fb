"""Shared test fixtures."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel

from tenantgate.config.settings import get_settings
from tenantgate.models.domain import Tenant
from tenantgate.storage.repositories.tenants import InMemoryTenantRepository
from tenantgate.web.app import create_app


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch: pytest.MonkeyPatch):
    """Fresh settings per test, in-memory repositories and session auth."""
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("USE_DATABASE", "false")
    monkeypatch.setenv("AUTH_MODE", "session")
    monkeypatch.delenv("DEBUG", raising=False)
    monkeypatch.delenv("TRUST_TENANT_HEADER", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def acme() -> Tenant:
    return Tenant(
        id="acme",
        name="Acme",
        primary_domain="acme.io",
        custom_domain="mail.acme.com",
        settings={"branding": {"primary_color": "#ff0000"}},
    )


@pytest.fixture()
def beta() -> Tenant:
    return Tenant(id="beta", name="Beta", primary_domain="beta.io")


@pytest.fixture()
def dormant() -> Tenant:
    return Tenant(id="dormant", name="Dormant", primary_domain="dormant.io", is_active=False)


@pytest.fixture()
def tenant_repo(acme: Tenant, beta: Tenant, dormant: Tenant) -> InMemoryTenantRepository:
    return InMemoryTenantRepository([acme, beta, dormant])


@pytest.fixture()
def app(tenant_repo: InMemoryTenantRepository):
    """A fresh app whose tenant directory holds acme, beta and dormant."""
    application = create_app()
    application.state.tenant_repo = tenant_repo
    return application


@pytest.fixture()
async def acme_client(app):
    """An AsyncClient whose requests carry Host: acme.io."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="https://acme.io") as client:
        yield client


@pytest.fixture()
async def async_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()
