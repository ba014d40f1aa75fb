"""FastAPI application factory."""

from __future__ import annotations

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tenantgate.config.logging import setup_logging
from tenantgate.config.settings import get_settings
from tenantgate.web.auth.session import SessionAuth
from tenantgate.web.dependencies import (
    create_identity_provider,
    create_tenant_repo,
    create_user_repo,
)
from tenantgate.web.middleware import RequestIDMiddleware, TenantResolutionMiddleware
from tenantgate.web.routes.auth import router as auth_router
from tenantgate.web.routes.tenants import router as tenants_router
from tenantgate.web.routes.users import router as users_router

logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)

    app = FastAPI(
        title="tenantgate",
        description="Tenant resolution and role-gated authorization",
        version="0.1.0",
    )

    app.state.tenant_repo = create_tenant_repo()
    app.state.user_repo = create_user_repo()
    app.state.session_auth = SessionAuth(settings.secret_key, max_age=settings.session_max_age)
    app.state.identity_provider = create_identity_provider(
        app.state.session_auth, app.state.user_repo
    )

    # Middleware (order matters: last added runs first)
    app.add_middleware(TenantResolutionMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    app.add_middleware(RequestIDMiddleware)

    # Health check (exempt from tenant resolution)
    @app.get("/api/health")
    async def health_check() -> dict[str, object]:
        from tenantgate.web.health import check_health

        return await check_health()

    app.include_router(auth_router)
    app.include_router(tenants_router)
    app.include_router(users_router)

    logger.info("app_created", auth_mode=settings.auth_mode)
    return app
