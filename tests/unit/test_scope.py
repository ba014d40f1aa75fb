from __future__ import annotations

import asyncio

import pytest

from tenantgate.exceptions import NestedTenantMismatch, TenantScopeRequired
from tenantgate.tenancy.scope import (
    current_tenant_id,
    require_current_tenant,
    tenant_scope,
    with_tenant,
)


class _RecordingBinding:
    def __init__(self) -> None:
        self.events: list[tuple[str, str | None]] = []

    async def set_current_tenant(self, tenant_id: str) -> None:
        self.events.append(("set", tenant_id))

    async def clear_current_tenant(self) -> None:
        self.events.append(("clear", None))


@pytest.mark.unit
class TestWithTenant:
    async def test_operation_sees_tenant(self) -> None:
        async def op() -> str | None:
            return current_tenant_id()

        assert await with_tenant("acme", op) == "acme"

    async def test_unset_after_return(self) -> None:
        async def op() -> int:
            return 42

        assert await with_tenant("acme", op) == 42
        assert current_tenant_id() is None

    async def test_unset_after_error(self) -> None:
        async def op() -> None:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await with_tenant("acme", op)
        assert current_tenant_id() is None

    async def test_unset_after_cancellation(self) -> None:
        entered = asyncio.Event()
        binding = _RecordingBinding()
        observed: list[str | None] = []

        async def op() -> None:
            entered.set()
            await asyncio.sleep(10)

        async def unit_of_work() -> None:
            try:
                await with_tenant("acme", op, binding)
            finally:
                observed.append(current_tenant_id())

        task = asyncio.create_task(unit_of_work())
        await entered.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert observed == [None]
        assert binding.events == [("set", "acme"), ("clear", None)]

    async def test_binding_set_and_cleared(self) -> None:
        binding = _RecordingBinding()

        async def op() -> None:
            binding.events.append(("op", current_tenant_id()))

        await with_tenant("acme", op, binding)
        assert binding.events == [("set", "acme"), ("op", "acme"), ("clear", None)]

    async def test_binding_cleared_on_error(self) -> None:
        binding = _RecordingBinding()

        async def op() -> None:
            raise ValueError("bad")

        with pytest.raises(ValueError, match="bad"):
            await with_tenant("acme", op, binding)
        assert binding.events[-1] == ("clear", None)

    async def test_empty_tenant_id_rejected(self) -> None:
        async def op() -> None:
            return None

        with pytest.raises(ValueError, match="non-empty"):
            await with_tenant("", op)


@pytest.mark.unit
class TestNesting:
    async def test_different_tenant_fails_fast(self) -> None:
        async with tenant_scope("acme"):
            with pytest.raises(NestedTenantMismatch) as excinfo:
                async with tenant_scope("beta"):
                    pytest.fail("inner scope must not be entered")
            assert excinfo.value.active_tenant_id == "acme"
            assert excinfo.value.requested_tenant_id == "beta"
            assert current_tenant_id() == "acme"
        assert current_tenant_id() is None

    async def test_same_tenant_reentry_keeps_outer_binding(self) -> None:
        async with tenant_scope("acme"):
            async with tenant_scope("acme"):
                assert current_tenant_id() == "acme"
            assert current_tenant_id() == "acme"
        assert current_tenant_id() is None

    async def test_reentry_applies_inner_storage_binding(self) -> None:
        binding = _RecordingBinding()
        async with tenant_scope("acme"):
            async with tenant_scope("acme", binding):
                pass
            assert binding.events == [("set", "acme"), ("clear", None)]
            assert current_tenant_id() == "acme"


@pytest.mark.unit
class TestIsolation:
    async def test_concurrent_units_do_not_share_binding(self) -> None:
        barrier = asyncio.Barrier(2)

        async def unit(tenant_id: str) -> list[str | None]:
            async def op() -> list[str | None]:
                seen = [current_tenant_id()]
                await barrier.wait()
                seen.append(current_tenant_id())
                return seen

            return await with_tenant(tenant_id, op)

        acme_seen, beta_seen = await asyncio.gather(unit("acme"), unit("beta"))
        assert acme_seen == ["acme", "acme"]
        assert beta_seen == ["beta", "beta"]
        assert current_tenant_id() is None

    async def test_child_tasks_inherit_scope(self) -> None:
        async with tenant_scope("acme"):
            assert await asyncio.create_task(_read_tenant()) == "acme"

    async def test_task_started_outside_scope_sees_nothing(self) -> None:
        started = asyncio.Event()
        release = asyncio.Event()

        async def outsider() -> str | None:
            started.set()
            await release.wait()
            return current_tenant_id()

        task = asyncio.create_task(outsider())
        await started.wait()
        async with tenant_scope("acme"):
            release.set()
            assert await task is None


async def _read_tenant() -> str | None:
    return current_tenant_id()


@pytest.mark.unit
class TestRequireCurrentTenant:
    def test_outside_scope_raises(self) -> None:
        with pytest.raises(TenantScopeRequired):
            require_current_tenant()

    async def test_inside_scope(self) -> None:
        async with tenant_scope("beta") as tenant_id:
            assert tenant_id == "beta"
            assert require_current_tenant() == "beta"
