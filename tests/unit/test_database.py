import pytest
from sqlalchemy import text

from tenantgate.exceptions import TenantScopeRequired
from tenantgate.storage.database import tenant_session
from tenantgate.tenancy.scope import current_tenant_id, tenant_scope


@pytest.mark.unit
class TestTenantSession:
    async def test_requires_tenant_scope(self, async_engine) -> None:
        with pytest.raises(TenantScopeRequired):
            async with tenant_session(async_engine):
                pytest.fail("session must not open outside a tenant scope")

    async def test_runs_inside_current_scope(self, async_engine) -> None:
        async with tenant_scope("acme"):
            async with tenant_session(async_engine) as session:
                assert current_tenant_id() == "acme"
                assert (await session.execute(text("SELECT 1"))).scalar() == 1
            assert current_tenant_id() == "acme"
        assert current_tenant_id() is None

    async def test_no_session_binding_off_postgres(self, async_engine) -> None:
        # SQLite has no set_config; a bound session would fail on first query
        async with tenant_scope("acme"), tenant_session(async_engine) as session:
            await session.execute(text("SELECT 1"))
