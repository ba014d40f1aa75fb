"""Middleware: request ID injection and per-request tenant resolution."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse

from tenantgate.config.settings import get_settings
from tenantgate.models.domain import ResolutionFailure
from tenantgate.tenancy.resolver import resolve_tenant
from tenantgate.tenancy.scope import tenant_scope
from tenantgate.types import ResolutionFailureKind

if TYPE_CHECKING:
    from starlette.responses import Response
    from starlette.types import ASGIApp, Receive, Scope, Send

logger = structlog.get_logger(__name__)

_FAILURE_RESPONSES: dict[ResolutionFailureKind, tuple[int, str]] = {
    ResolutionFailureKind.NO_TENANT_FOR_REQUEST: (404, "Domain not recognized"),
    ResolutionFailureKind.TENANT_INACTIVE: (403, "Tenant suspended"),
    ResolutionFailureKind.RESOLUTION_UNAVAILABLE: (503, "Tenant directory unavailable"),
}


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Adds a unique X-Request-ID header to every response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response


class TenantResolutionMiddleware:
    """Resolve the request's tenant and run the rest of the app inside its scope.

    Written as plain ASGI so the scope spans the whole response, streaming
    bodies included. Requests that cannot be bound to an active tenant are
    answered here and never reach a route.
    """

    def __init__(self, app: ASGIApp, exempt_paths: tuple[str, ...] = ("/api/health",)) -> None:
        self.app = app
        self._exempt_paths = exempt_paths

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] in self._exempt_paths:
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        settings = get_settings()
        explicit_tenant_id = (
            request.headers.get(settings.tenant_header) if settings.trust_tenant_header else None
        )
        result = await resolve_tenant(
            request.app.state.tenant_repo,
            request.headers.get("host"),
            explicit_tenant_id,
        )

        if isinstance(result, ResolutionFailure):
            status_code, detail = _FAILURE_RESPONSES[result.kind]
            log = logger.error if result.is_fatal else logger.info
            log("tenant_resolution_rejected", code=result.kind.value, path=scope["path"])
            response = JSONResponse(
                {"detail": detail, "code": result.kind.value}, status_code=status_code
            )
            await response(scope, receive, send)
            return

        scope.setdefault("state", {})["tenant"] = result
        structlog.contextvars.bind_contextvars(tenant_id=result.id)
        try:
            async with tenant_scope(result.id):
                await self.app(scope, receive, send)
        finally:
            structlog.contextvars.unbind_contextvars("tenant_id")
