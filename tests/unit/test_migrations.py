import importlib
from unittest.mock import MagicMock

import pytest

MIGRATION = "tenantgate.storage.migrations.versions.a1b2c3d4e5f6_create_tenants_users_audit"


@pytest.fixture()
def recorded_sql(monkeypatch: pytest.MonkeyPatch):
    module = importlib.import_module(MIGRATION)
    op = MagicMock()
    monkeypatch.setattr(module, "op", op)

    def executed() -> list[str]:
        return [" ".join(str(c.args[0]).split()) for c in op.execute.call_args_list]

    return module, executed


@pytest.mark.unit
class TestUsersRowLevelSecurity:
    def test_policy_applies_to_table_owner(self, recorded_sql) -> None:
        module, executed = recorded_sql
        module.upgrade()
        statements = executed()
        assert "ALTER TABLE users ENABLE ROW LEVEL SECURITY" in statements
        assert "ALTER TABLE users FORCE ROW LEVEL SECURITY" in statements
        policy = next(s for s in statements if s.startswith("CREATE POLICY users_tenant_isolation"))
        assert "current_setting('app.current_tenant_id', true)" in policy

    def test_downgrade_releases_force(self, recorded_sql) -> None:
        module, executed = recorded_sql
        module.downgrade()
        statements = executed()
        assert "ALTER TABLE users NO FORCE ROW LEVEL SECURITY" in statements
        assert statements[0] == "DROP POLICY IF EXISTS users_tenant_isolation ON users"
