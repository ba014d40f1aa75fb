"""Tenant user management routes.

The user repository reads the tenant from the active tenant scope, so these
handlers never pass a tenant id to it.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from tenantgate.audit.logger import audit
from tenantgate.types import Role
from tenantgate.web.auth.rbac import require_admin, require_editor
from tenantgate.web.dependencies import get_user_repo
from tenantgate.web.tenant_context import RequestContext

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


class InviteUserRequest(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    name: str = Field(min_length=2, max_length=200)
    role: Role = Role.VIEWER
    password: str | None = Field(default=None, min_length=8, max_length=256)


class UpdateRoleRequest(BaseModel):
    role: Role


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    role: str | None = None
    tenant_id: str | None = None
    is_active: bool = True


@router.get("", response_model=list[UserResponse])
async def list_users(
    _context: RequestContext = Depends(require_editor),
    users: Any = Depends(get_user_repo),
) -> list[dict[str, Any]]:
    return await users.list_for_current_tenant()


@router.post("", status_code=201, response_model=UserResponse)
async def invite_user(
    body: InviteUserRequest,
    request: Request,
    context: RequestContext = Depends(require_admin),
    users: Any = Depends(get_user_repo),
) -> dict[str, Any]:
    if await users.find_in_current_tenant(body.email):
        raise HTTPException(status_code=409, detail="User already exists in this workspace")
    user = await users.invite(
        email=body.email, name=body.name, role=body.role, password=body.password
    )
    await audit(
        tenant_id=context.tenant.id,
        user_id=context.principal.id if context.principal else "",
        action="user.invited",
        resource_type="user",
        resource_id=user["id"],
        details={"role": body.role.value},
        request_id=request.headers.get("x-request-id", ""),
    )
    return user


@router.patch("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: str,
    body: UpdateRoleRequest,
    request: Request,
    context: RequestContext = Depends(require_admin),
    users: Any = Depends(get_user_repo),
) -> dict[str, Any]:
    user = await users.update_role(user_id, body.role)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    await audit(
        tenant_id=context.tenant.id,
        user_id=context.principal.id if context.principal else "",
        action="user.role_updated",
        resource_type="user",
        resource_id=user_id,
        details={"role": body.role.value},
        request_id=request.headers.get("x-request-id", ""),
    )
    return user
