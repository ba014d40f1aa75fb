"""User records: the upstream identity store behind session authentication.

Records are returned as plain dicts and may carry any role string; turning
them into a Principal is the job of ``auth.identity.normalize_principal``.
Lookups used to authenticate a request are global. Listing and mutating
users is confined to the tenant bound by the active tenant scope. Password
hashes never appear in records; login reads them with ``get_password_hash``.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from tenantgate.auth.passwords import hash_password
from tenantgate.models.database import UserRow, _utc_now
from tenantgate.storage.database import tenant_session
from tenantgate.tenancy.scope import require_current_tenant

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from tenantgate.types import Role

logger = structlog.get_logger(__name__)


class InMemoryUserRepository:
    """In-memory user store. Replaced by the database repository in production."""

    def __init__(self) -> None:
        self._users: dict[str, dict[str, Any]] = {}
        self._password_hashes: dict[str, str] = {}

    async def create(
        self,
        email: str,
        name: str = "",
        role: str | None = "viewer",
        tenant_id: str | None = None,
        is_active: bool = True,
        password: str | None = None,
    ) -> dict[str, Any]:
        user_id = str(uuid.uuid4())
        now = datetime.now(UTC).isoformat()
        user: dict[str, Any] = {
            "id": user_id,
            "email": email,
            "name": name or email,
            "role": role,
            "tenant_id": tenant_id,
            "is_active": is_active,
            "email_verified": False,
            "last_login_at": None,
            "created_at": now,
            "updated_at": now,
        }
        self._users[user_id] = user
        if password:
            self._password_hashes[user_id] = hash_password(password)
        logger.info("user_created", user_id=user_id, tenant_id=tenant_id, role=role)
        return dict(user)

    async def get_upstream_user_record(self, user_id: str) -> dict[str, Any] | None:
        user = self._users.get(user_id)
        return dict(user) if user else None

    async def get_password_hash(self, user_id: str) -> str | None:
        return self._password_hashes.get(user_id)

    async def get_by_email(self, email: str, tenant_id: str | None) -> dict[str, Any] | None:
        for user in self._users.values():
            if user["email"] == email and user["tenant_id"] == tenant_id:
                return dict(user)
        return None

    async def record_login(self, user_id: str) -> None:
        user = self._users.get(user_id)
        if user:
            user["last_login_at"] = datetime.now(UTC).isoformat()

    async def list_for_current_tenant(self) -> list[dict[str, Any]]:
        tenant_id = require_current_tenant()
        return [dict(u) for u in self._users.values() if u["tenant_id"] == tenant_id]

    async def find_in_current_tenant(self, email: str) -> dict[str, Any] | None:
        return await self.get_by_email(email, require_current_tenant())

    async def invite(
        self, email: str, name: str, role: Role, password: str | None = None
    ) -> dict[str, Any]:
        return await self.create(
            email=email,
            name=name,
            role=role.value,
            tenant_id=require_current_tenant(),
            password=password,
        )

    async def update_role(self, user_id: str, role: Role) -> dict[str, Any] | None:
        tenant_id = require_current_tenant()
        user = self._users.get(user_id)
        if not user or user["tenant_id"] != tenant_id:
            return None
        user["role"] = role.value
        user["updated_at"] = datetime.now(UTC).isoformat()
        logger.info("user_role_updated", user_id=user_id, tenant_id=tenant_id, role=role.value)
        return dict(user)


class DatabaseUserRepository:
    """PostgreSQL-backed user store."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @staticmethod
    def _to_dict(user: UserRow) -> dict[str, Any]:
        return {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "role": user.role,
            "tenant_id": user.tenant_id,
            "is_active": user.is_active,
            "email_verified": user.email_verified,
            "last_login_at": user.last_login_at.isoformat() if user.last_login_at else None,
            "created_at": user.created_at.isoformat(),
            "updated_at": user.updated_at.isoformat(),
        }

    async def create(
        self,
        email: str,
        name: str = "",
        role: str | None = "viewer",
        tenant_id: str | None = None,
        is_active: bool = True,
        password: str | None = None,
    ) -> dict[str, Any]:
        async with AsyncSession(self._engine) as session:
            user = UserRow(
                email=email,
                name=name or email,
                role=role,
                tenant_id=tenant_id,
                is_active=is_active,
                password_hash=hash_password(password) if password else None,
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
            logger.info("user_created", user_id=user.id, tenant_id=tenant_id, role=role)
            return self._to_dict(user)

    async def get_upstream_user_record(self, user_id: str) -> dict[str, Any] | None:
        async with AsyncSession(self._engine) as session:
            user = await session.get(UserRow, user_id)
            return self._to_dict(user) if user else None

    async def get_password_hash(self, user_id: str) -> str | None:
        async with AsyncSession(self._engine) as session:
            user = await session.get(UserRow, user_id)
            return user.password_hash if user else None

    async def get_by_email(self, email: str, tenant_id: str | None) -> dict[str, Any] | None:
        async with AsyncSession(self._engine) as session:
            stmt = select(UserRow).where(col(UserRow.email) == email)
            if tenant_id is None:
                stmt = stmt.where(col(UserRow.tenant_id).is_(None))
            else:
                stmt = stmt.where(col(UserRow.tenant_id) == tenant_id)
            result = await session.execute(stmt)
            user = result.scalars().first()
            return self._to_dict(user) if user else None

    async def record_login(self, user_id: str) -> None:
        async with AsyncSession(self._engine) as session:
            user = await session.get(UserRow, user_id)
            if user:
                user.last_login_at = _utc_now()
                session.add(user)
                await session.commit()

    async def list_for_current_tenant(self) -> list[dict[str, Any]]:
        tenant_id = require_current_tenant()
        async with tenant_session(self._engine) as session:
            stmt = (
                select(UserRow)
                .where(col(UserRow.tenant_id) == tenant_id)
                .order_by(col(UserRow.created_at))
            )
            result = await session.execute(stmt)
            return [self._to_dict(u) for u in result.scalars().all()]

    async def find_in_current_tenant(self, email: str) -> dict[str, Any] | None:
        return await self.get_by_email(email, require_current_tenant())

    async def invite(
        self, email: str, name: str, role: Role, password: str | None = None
    ) -> dict[str, Any]:
        tenant_id = require_current_tenant()
        async with tenant_session(self._engine) as session:
            user = UserRow(
                email=email,
                name=name or email,
                role=role.value,
                tenant_id=tenant_id,
                password_hash=hash_password(password) if password else None,
            )
            session.add(user)
            await session.commit()
            await session.refresh(user)
            logger.info("user_invited", user_id=user.id, tenant_id=tenant_id, role=role.value)
            return self._to_dict(user)

    async def update_role(self, user_id: str, role: Role) -> dict[str, Any] | None:
        tenant_id = require_current_tenant()
        async with tenant_session(self._engine) as session:
            stmt = select(UserRow).where(
                col(UserRow.id) == user_id, col(UserRow.tenant_id) == tenant_id
            )
            result = await session.execute(stmt)
            user = result.scalars().first()
            if not user:
                return None
            user.role = role.value
            user.updated_at = _utc_now()
            session.add(user)
            await session.commit()
            await session.refresh(user)
            logger.info("user_role_updated", user_id=user_id, tenant_id=tenant_id, role=role.value)
            return self._to_dict(user)
