"""Per-transaction "current tenant" setting read by row-level security policies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog
from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError

from tenantgate.exceptions import StorageError

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection
    from sqlalchemy.orm import Session
    from sqlmodel.ext.asyncio.session import AsyncSession

logger = structlog.get_logger(__name__)

CURRENT_TENANT_SETTING = "app.current_tenant_id"
_SET_TENANT = text("SELECT set_config(:name, :value, true)")


class TenantBinding(Protocol):
    """Something that can pin a tenant id to a storage connection."""

    async def set_current_tenant(self, tenant_id: str) -> None: ...

    async def clear_current_tenant(self) -> None: ...


class SessionTenantBinding:
    """Binds the tenant id to every transaction an AsyncSession opens.

    The setting is transaction-local (``set_config(..., true)``), so it is
    gone when the transaction ends and never survives on a pooled connection.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._tenant_id: str | None = None

    async def set_current_tenant(self, tenant_id: str) -> None:
        self._tenant_id = tenant_id
        event.listen(self._session.sync_session, "after_begin", self._after_begin)
        if self._session.in_transaction():
            await self._execute(tenant_id)
        logger.debug("connection_tenant_set", tenant_id=tenant_id)

    async def clear_current_tenant(self) -> None:
        if self._tenant_id is None:
            return
        self._tenant_id = None
        event.remove(self._session.sync_session, "after_begin", self._after_begin)
        if self._session.in_transaction():
            await self._execute("")
        logger.debug("connection_tenant_cleared")

    def _after_begin(self, _session: Session, _transaction: Any, connection: Connection) -> None:
        if self._tenant_id is not None:
            connection.execute(
                _SET_TENANT, {"name": CURRENT_TENANT_SETTING, "value": self._tenant_id}
            )

    async def _execute(self, value: str) -> None:
        try:
            await self._session.execute(
                _SET_TENANT, {"name": CURRENT_TENANT_SETTING, "value": value}
            )
        except SQLAlchemyError as exc:
            msg = f"Failed to set {CURRENT_TENANT_SETTING}"
            raise StorageError(msg) from exc
