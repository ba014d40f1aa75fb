"""Authentication routes: password login, logout, current principal."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, Field

from tenantgate.audit.logger import audit
from tenantgate.auth.passwords import verify_password
from tenantgate.config.settings import get_settings
from tenantgate.models.domain import Tenant
from tenantgate.web.auth.rbac import require_viewer
from tenantgate.web.auth.session import SESSION_COOKIE, SessionAuth
from tenantgate.web.dependencies import get_resolved_tenant, get_session_auth, get_user_repo
from tenantgate.web.tenant_context import RequestContext

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1)


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    tenant: Tenant = Depends(get_resolved_tenant),
    users: Any = Depends(get_user_repo),
    auth: SessionAuth = Depends(get_session_auth),
) -> dict[str, str]:
    """Create a session for a user of the resolved tenant or a platform user.

    The password is checked against the account's own hash. Accounts without
    a password can only sign in while DEBUG is on.
    """
    settings = get_settings()
    if settings.auth_mode != "session":
        raise HTTPException(status_code=400, detail="Password login is disabled")

    user = await users.get_by_email(body.email, tenant.id)
    if user is None:
        user = await users.get_by_email(body.email, None)
    if user is None or user.get("is_active") is False:
        logger.info("login_rejected", tenant_id=tenant.id, reason="unknown_or_inactive")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    password_hash = await users.get_password_hash(user["id"])
    if password_hash is None:
        if not settings.debug:
            logger.warning("login_rejected", tenant_id=tenant.id, reason="no_password")
            raise HTTPException(status_code=401, detail="Invalid credentials")
        logger.warning("login_without_password", user_id=user["id"], tenant_id=tenant.id)
    elif not verify_password(body.password, password_hash):
        logger.info("login_rejected", tenant_id=tenant.id, reason="bad_password")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = auth.create_session(user["id"])
    await users.record_login(user["id"])
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=not settings.debug,
        samesite="lax",
        max_age=settings.session_max_age,
    )
    await audit(
        tenant_id=tenant.id,
        user_id=user["id"],
        action="auth.login",
        ip_address=request.client.host if request.client else "",
        request_id=request.headers.get("x-request-id", ""),
    )
    logger.info("user_logged_in", user_id=user["id"], tenant_id=tenant.id)
    return {"status": "ok", "user_id": user["id"]}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    auth: SessionAuth = Depends(get_session_auth),
) -> dict[str, str]:
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        auth.destroy_session(token)
    response.delete_cookie(SESSION_COOKIE)
    return {"status": "ok"}


@router.get("/me")
async def me(context: RequestContext = Depends(require_viewer)) -> dict[str, Any]:
    """Return the authenticated principal as seen by this tenant."""
    principal = context.principal
    if principal is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return {
        "id": principal.id,
        "email": principal.email,
        "role": principal.role.value,
        "tenant_id": principal.tenant_id,
        "resolved_tenant_id": context.tenant.id,
    }
