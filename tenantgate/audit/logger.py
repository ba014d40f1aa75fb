"""Audit logger: immutable, insert-only audit trail.

Uses its own connection so audit entries survive transaction rollbacks.
Details are sanitized (sensitive fields stripped, 10KB max).
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import insert

from tenantgate.models.database import AuditLog, _new_uuid, _utc_now

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

_SENSITIVE_FIELDS = frozenset(
    {
        "password",
        "secret",
        "token",
        "api_key",
        "apikey",
        "secret_key",
        "authorization",
        "cookie",
        "session",
    }
)

_MAX_DETAILS_BYTES = 10_240  # 10KB


def _sanitize_details(details: dict[str, Any]) -> str:
    """Strip sensitive fields and enforce size limit."""
    sanitized = {k: v for k, v in details.items() if k.lower() not in _SENSITIVE_FIELDS}
    encoded = json.dumps(sanitized, default=str)
    if len(encoded) > _MAX_DETAILS_BYTES:
        encoded = encoded[:_MAX_DETAILS_BYTES]
    return encoded


class AuditLogger:
    """Insert-only audit logger with its own connection."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def log(
        self,
        *,
        tenant_id: str | None,
        user_id: str,
        action: str,
        resource_type: str = "",
        resource_id: str = "",
        details: dict[str, Any] | None = None,
        ip_address: str = "",
        request_id: str = "",
    ) -> None:
        """Write an audit log entry."""
        try:
            async with self._engine.begin() as conn:
                await conn.execute(
                    insert(AuditLog).values(
                        id=_new_uuid(),
                        tenant_id=tenant_id,
                        user_id=user_id,
                        action=action,
                        resource_type=resource_type,
                        resource_id=resource_id,
                        details_json=_sanitize_details(details or {}),
                        ip_address=ip_address,
                        request_id=request_id,
                        created_at=_utc_now(),
                    )
                )
        except Exception:
            # Audit must never break the request
            logger.exception("audit_log_failed", action=action, tenant_id=tenant_id)


async def audit(
    *,
    tenant_id: str | None,
    user_id: str,
    action: str,
    resource_type: str = "",
    resource_id: str = "",
    details: dict[str, Any] | None = None,
    ip_address: str = "",
    request_id: str = "",
) -> None:
    """Log an audit entry if the database is enabled.

    No-op when USE_DATABASE=false.
    """
    from tenantgate.config.settings import get_settings

    settings = get_settings()
    if not settings.use_database:
        return

    from tenantgate.storage.database import get_engine

    await AuditLogger(get_engine()).log(
        tenant_id=tenant_id,
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        details=details,
        ip_address=ip_address,
        request_id=request_id,
    )
