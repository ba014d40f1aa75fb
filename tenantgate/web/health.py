"""Liveness report for ``GET /api/health``.

The route is exempt from tenant resolution, so the report never mentions a
tenant. With ``USE_DATABASE=true`` it also probes the database.
"""

from __future__ import annotations

from typing import Literal

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tenantgate.config.settings import get_settings

logger = structlog.get_logger(__name__)

DatabaseState = Literal["disabled", "connected", "unavailable"]


async def _database_state() -> DatabaseState:
    if not get_settings().use_database:
        return "disabled"

    from tenantgate.storage.database import get_engine

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("health_database_unavailable", error=str(exc))
        return "unavailable"
    return "connected"


async def check_health() -> dict[str, object]:
    database = await _database_state()
    return {
        "status": "degraded" if database == "unavailable" else "healthy",
        "version": "0.1.0",
        "auth_mode": get_settings().auth_mode,
        "database": database,
    }
