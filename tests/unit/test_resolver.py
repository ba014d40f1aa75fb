from __future__ import annotations

import pytest

from tenantgate.exceptions import DirectoryUnavailable
from tenantgate.models.domain import ResolutionFailure, Tenant
from tenantgate.storage.repositories.tenants import InMemoryTenantRepository
from tenantgate.tenancy.resolver import resolve_tenant
from tenantgate.types import ResolutionFailureKind


class _CountingDirectory:
    """Wraps a directory and records every lookup."""

    def __init__(self, inner: InMemoryTenantRepository) -> None:
        self._inner = inner
        self.domain_lookups: list[str] = []
        self.id_lookups: list[str] = []

    async def find_by_domain(self, domain: str) -> Tenant | None:
        self.domain_lookups.append(domain)
        return await self._inner.find_by_domain(domain)

    async def find_by_id(self, tenant_id: str) -> Tenant | None:
        self.id_lookups.append(tenant_id)
        return await self._inner.find_by_id(tenant_id)


class _BrokenDirectory:
    async def find_by_domain(self, domain: str) -> Tenant | None:
        raise DirectoryUnavailable("connection refused")

    async def find_by_id(self, tenant_id: str) -> Tenant | None:
        raise DirectoryUnavailable("connection refused")


@pytest.mark.unit
class TestResolveTenant:
    async def test_primary_domain(self, tenant_repo: InMemoryTenantRepository, acme: Tenant) -> None:
        result = await resolve_tenant(tenant_repo, "acme.io")
        assert isinstance(result, Tenant)
        assert result.id == acme.id

    async def test_every_active_tenant_resolves_by_primary_domain(
        self, tenant_repo: InMemoryTenantRepository
    ) -> None:
        for tenant in await tenant_repo.list_active():
            result = await resolve_tenant(tenant_repo, tenant.primary_domain)
            assert isinstance(result, Tenant)
            assert result.id == tenant.id

    async def test_custom_domain(self, tenant_repo: InMemoryTenantRepository) -> None:
        result = await resolve_tenant(tenant_repo, "mail.acme.com")
        assert isinstance(result, Tenant)
        assert result.id == "acme"

    @pytest.mark.parametrize("host", ["acme.io:8443", "ACME.io", "Acme.IO:80"])
    async def test_port_and_case_ignored(
        self, tenant_repo: InMemoryTenantRepository, host: str
    ) -> None:
        result = await resolve_tenant(tenant_repo, host)
        assert isinstance(result, Tenant)
        assert result.id == "acme"

    @pytest.mark.parametrize("host", ["unknown.io", "io", "", None, "   "])
    async def test_unknown_host(self, tenant_repo: InMemoryTenantRepository, host: str | None) -> None:
        result = await resolve_tenant(tenant_repo, host)
        assert isinstance(result, ResolutionFailure)
        assert result.kind is ResolutionFailureKind.NO_TENANT_FOR_REQUEST
        assert not result.is_fatal

    async def test_inactive_tenant(self, tenant_repo: InMemoryTenantRepository) -> None:
        result = await resolve_tenant(tenant_repo, "dormant.io")
        assert isinstance(result, ResolutionFailure)
        assert result.kind is ResolutionFailureKind.TENANT_INACTIVE

    async def test_inactive_tenant_by_explicit_id(
        self, tenant_repo: InMemoryTenantRepository
    ) -> None:
        result = await resolve_tenant(tenant_repo, "acme.io", explicit_tenant_id="dormant")
        assert isinstance(result, ResolutionFailure)
        assert result.kind is ResolutionFailureKind.TENANT_INACTIVE

    async def test_directory_unavailable(self) -> None:
        result = await resolve_tenant(_BrokenDirectory(), "acme.io")
        assert isinstance(result, ResolutionFailure)
        assert result.kind is ResolutionFailureKind.RESOLUTION_UNAVAILABLE
        assert result.is_fatal

    async def test_directory_unavailable_by_id(self) -> None:
        result = await resolve_tenant(_BrokenDirectory(), None, explicit_tenant_id="acme")
        assert isinstance(result, ResolutionFailure)
        assert result.kind is ResolutionFailureKind.RESOLUTION_UNAVAILABLE

    async def test_explicit_id_skips_domain_lookup(
        self, tenant_repo: InMemoryTenantRepository
    ) -> None:
        directory = _CountingDirectory(tenant_repo)
        result = await resolve_tenant(directory, "acme.io", explicit_tenant_id="beta")
        assert isinstance(result, Tenant)
        assert result.id == "beta"
        assert directory.domain_lookups == []
        assert directory.id_lookups == ["beta"]

    async def test_explicit_unknown_id(self, tenant_repo: InMemoryTenantRepository) -> None:
        result = await resolve_tenant(tenant_repo, "acme.io", explicit_tenant_id="nope")
        assert isinstance(result, ResolutionFailure)
        assert result.kind is ResolutionFailureKind.NO_TENANT_FOR_REQUEST

    async def test_idempotent(self, tenant_repo: InMemoryTenantRepository) -> None:
        directory = _CountingDirectory(tenant_repo)
        first = await resolve_tenant(directory, "acme.io")
        second = await resolve_tenant(directory, "acme.io")
        assert first == second
        assert directory.domain_lookups == ["acme.io", "acme.io"]
        assert await tenant_repo.find_by_id("acme") == first

    async def test_primary_domain_wins_over_custom_domain(self) -> None:
        # Data error: one tenant's custom domain equals another's primary domain
        repo = InMemoryTenantRepository([Tenant(id="a", name="A", primary_domain="shared.io")])
        repo._tenants["b"] = Tenant(
            id="b", name="B", primary_domain="b.io", custom_domain="shared.io"
        )
        result = await resolve_tenant(repo, "shared.io")
        assert isinstance(result, Tenant)
        assert result.id == "a"
