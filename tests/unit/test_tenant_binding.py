from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy import event, text
from sqlmodel.ext.asyncio.session import AsyncSession

from tenantgate.exceptions import StorageError
from tenantgate.storage.tenant_binding import CURRENT_TENANT_SETTING, SessionTenantBinding


@pytest.mark.unit
class TestSessionTenantBinding:
    async def test_listener_registered_for_scope(self, async_engine) -> None:
        async with AsyncSession(async_engine) as session:
            binding = SessionTenantBinding(session)
            await binding.set_current_tenant("acme")
            assert event.contains(session.sync_session, "after_begin", binding._after_begin)

            await binding.clear_current_tenant()
            assert not event.contains(session.sync_session, "after_begin", binding._after_begin)

    async def test_clear_without_set_is_noop(self, async_engine) -> None:
        async with AsyncSession(async_engine) as session:
            binding = SessionTenantBinding(session)
            await binding.clear_current_tenant()
            assert not event.contains(session.sync_session, "after_begin", binding._after_begin)

    def test_after_begin_sets_transaction_local_value(self) -> None:
        binding = SessionTenantBinding(MagicMock())
        binding._tenant_id = "acme"
        connection = MagicMock()

        binding._after_begin(MagicMock(), MagicMock(), connection)

        connection.execute.assert_called_once()
        statement, params = connection.execute.call_args.args
        assert "set_config" in str(statement)
        assert "true" in str(statement)
        assert params == {"name": CURRENT_TENANT_SETTING, "value": "acme"}

    def test_after_begin_without_tenant_does_nothing(self) -> None:
        binding = SessionTenantBinding(MagicMock())
        connection = MagicMock()
        binding._after_begin(MagicMock(), MagicMock(), connection)
        connection.execute.assert_not_called()

    async def test_open_transaction_bound_immediately(
        self, async_engine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        executed: list[str] = []

        async def fake_execute(value: str) -> None:
            executed.append(value)

        async with AsyncSession(async_engine) as session:
            await session.execute(text("SELECT 1"))
            binding = SessionTenantBinding(session)
            monkeypatch.setattr(binding, "_execute", fake_execute)

            await binding.set_current_tenant("acme")
            await binding.clear_current_tenant()

        assert executed == ["acme", ""]

    async def test_storage_failure_wrapped(self, async_engine) -> None:
        # SQLite has no set_config, so the statement fails like a broken connection would
        async with AsyncSession(async_engine) as session:
            await session.execute(text("SELECT 1"))
            binding = SessionTenantBinding(session)
            with pytest.raises(StorageError, match=CURRENT_TENANT_SETTING):
                await binding.set_current_tenant("acme")
