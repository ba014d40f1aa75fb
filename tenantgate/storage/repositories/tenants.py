"""Tenant directory: lookups by domain or id, plus provisioning writes.

Lookups return None when nothing matches and raise DirectoryUnavailable when
storage cannot be read. The two outcomes are never conflated.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import replace
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col, or_, select
from sqlmodel.ext.asyncio.session import AsyncSession

from tenantgate.exceptions import DirectoryUnavailable, DomainConflictError, TenantNotFoundError
from tenantgate.models.database import TenantRow, _utc_now
from tenantgate.models.domain import Tenant

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://")


def strip_port(host: str) -> str:
    """Remove a ``:port`` suffix, keeping bracketed IPv6 literals intact."""
    if host.startswith("["):
        end = host.find("]")
        return host[: end + 1] if end != -1 else host
    name, sep, port = host.rpartition(":")
    if sep and port.isdigit():
        return name
    return host


def normalize_hostname(value: str) -> str:
    """Canonical form used for both storing and looking up hostnames.

    Lower-cases, drops a URL scheme, path, port, trailing dot and ``www.``.
    """
    host = value.strip().lower()
    host = _SCHEME_RE.sub("", host)
    host = host.split("/", 1)[0]
    host = strip_port(host).rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    return host


def _to_tenant(row: TenantRow) -> Tenant:
    return Tenant(
        id=row.id,
        name=row.name,
        primary_domain=row.domain,
        custom_domain=row.custom_domain,
        is_active=row.is_active,
        settings=dict(row.settings or {}),
        plan=row.plan,
        subscription_status=row.subscription_status,
    )


class InMemoryTenantRepository:
    """In-memory tenant store for single-process deployments and tests."""

    def __init__(self, tenants: list[Tenant] | None = None) -> None:
        self._tenants: dict[str, Tenant] = {}
        for tenant in tenants or []:
            self.add(tenant)

    def add(self, tenant: Tenant) -> Tenant:
        """Insert an already-built tenant, enforcing hostname uniqueness."""
        tenant = replace(
            tenant,
            primary_domain=normalize_hostname(tenant.primary_domain),
            custom_domain=normalize_hostname(tenant.custom_domain) if tenant.custom_domain else None,
        )
        self._check_available(tenant.primary_domain, tenant.custom_domain, exclude_id=tenant.id)
        self._tenants[tenant.id] = tenant
        return tenant

    async def find_by_domain(self, domain: str) -> Tenant | None:
        host = normalize_hostname(domain)
        if not host:
            return None
        for tenant in self._tenants.values():
            if tenant.primary_domain == host:
                return tenant
        for tenant in self._tenants.values():
            if tenant.custom_domain == host:
                return tenant
        return None

    async def find_by_id(self, tenant_id: str) -> Tenant | None:
        return self._tenants.get(tenant_id)

    async def create(
        self,
        name: str,
        primary_domain: str,
        custom_domain: str | None = None,
        settings: dict[str, Any] | None = None,
        plan: str = "free",
    ) -> Tenant:
        tenant = self.add(
            Tenant(
                id=str(uuid.uuid4()),
                name=name,
                primary_domain=primary_domain,
                custom_domain=custom_domain,
                settings=dict(settings or {}),
                plan=plan,
            )
        )
        logger.info("tenant_created", tenant_id=tenant.id, domain=tenant.primary_domain)
        return tenant

    async def update_settings(self, tenant_id: str, settings: dict[str, Any]) -> Tenant:
        tenant = self._get(tenant_id)
        updated = replace(tenant, settings={**tenant.settings, **settings})
        self._tenants[tenant_id] = updated
        logger.info("tenant_settings_updated", tenant_id=tenant_id, keys=sorted(settings))
        return updated

    async def set_custom_domain(self, tenant_id: str, custom_domain: str | None) -> Tenant:
        tenant = self._get(tenant_id)
        host = normalize_hostname(custom_domain) if custom_domain else None
        if host:
            self._check_available(host, exclude_id=tenant_id)
        updated = replace(tenant, custom_domain=host)
        self._tenants[tenant_id] = updated
        logger.info("tenant_custom_domain_set", tenant_id=tenant_id, custom_domain=host)
        return updated

    async def deactivate(self, tenant_id: str) -> Tenant:
        updated = replace(self._get(tenant_id), is_active=False)
        self._tenants[tenant_id] = updated
        logger.info("tenant_deactivated", tenant_id=tenant_id)
        return updated

    async def list_active(self, limit: int = 50, offset: int = 0) -> list[Tenant]:
        active = [t for t in self._tenants.values() if t.is_active]
        return active[offset : offset + limit]

    def _get(self, tenant_id: str) -> Tenant:
        tenant = self._tenants.get(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        return tenant

    def _check_available(self, *hosts: str | None, exclude_id: str | None = None) -> None:
        wanted = {h for h in hosts if h}
        for tenant in self._tenants.values():
            if tenant.id == exclude_id:
                continue
            taken = wanted & {tenant.primary_domain, tenant.custom_domain}
            if taken:
                msg = f"Domain already claimed: {', '.join(sorted(taken))}"
                raise DomainConflictError(msg)


class DatabaseTenantRepository:
    """PostgreSQL-backed tenant store using SQLModel."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def find_by_domain(self, domain: str) -> Tenant | None:
        host = normalize_hostname(domain)
        if not host:
            return None
        try:
            async with AsyncSession(self._engine) as session:
                result = await session.execute(
                    select(TenantRow).where(col(TenantRow.domain) == host)
                )
                row = result.scalars().first()
                if row is None:
                    result = await session.execute(
                        select(TenantRow).where(col(TenantRow.custom_domain) == host)
                    )
                    row = result.scalars().first()
        except (SQLAlchemyError, OSError) as exc:
            logger.error("tenant_directory_unavailable", lookup="domain", error=str(exc))
            msg = "Tenant directory unavailable"
            raise DirectoryUnavailable(msg) from exc
        return _to_tenant(row) if row else None

    async def find_by_id(self, tenant_id: str) -> Tenant | None:
        try:
            async with AsyncSession(self._engine) as session:
                row = await session.get(TenantRow, tenant_id)
        except (SQLAlchemyError, OSError) as exc:
            logger.error("tenant_directory_unavailable", lookup="id", error=str(exc))
            msg = "Tenant directory unavailable"
            raise DirectoryUnavailable(msg) from exc
        return _to_tenant(row) if row else None

    async def create(
        self,
        name: str,
        primary_domain: str,
        custom_domain: str | None = None,
        settings: dict[str, Any] | None = None,
        plan: str = "free",
    ) -> Tenant:
        domain = normalize_hostname(primary_domain)
        custom = normalize_hostname(custom_domain) if custom_domain else None
        async with AsyncSession(self._engine) as session:
            await self._check_available(session, domain, custom)
            row = TenantRow(
                name=name,
                domain=domain,
                custom_domain=custom,
                settings=dict(settings or {}),
                plan=plan,
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            logger.info("tenant_created", tenant_id=row.id, domain=domain)
            return _to_tenant(row)

    async def update_settings(self, tenant_id: str, settings: dict[str, Any]) -> Tenant:
        async with AsyncSession(self._engine) as session:
            row = await self._get(session, tenant_id)
            row.settings = {**(row.settings or {}), **settings}
            row.updated_at = _utc_now()
            session.add(row)
            await session.commit()
            await session.refresh(row)
            logger.info("tenant_settings_updated", tenant_id=tenant_id, keys=sorted(settings))
            return _to_tenant(row)

    async def set_custom_domain(self, tenant_id: str, custom_domain: str | None) -> Tenant:
        host = normalize_hostname(custom_domain) if custom_domain else None
        async with AsyncSession(self._engine) as session:
            row = await self._get(session, tenant_id)
            if host:
                await self._check_available(session, host, exclude_id=tenant_id)
            row.custom_domain = host
            row.updated_at = _utc_now()
            session.add(row)
            await session.commit()
            await session.refresh(row)
            logger.info("tenant_custom_domain_set", tenant_id=tenant_id, custom_domain=host)
            return _to_tenant(row)

    async def deactivate(self, tenant_id: str) -> Tenant:
        async with AsyncSession(self._engine) as session:
            row = await self._get(session, tenant_id)
            row.is_active = False
            row.updated_at = _utc_now()
            session.add(row)
            await session.commit()
            await session.refresh(row)
            logger.info("tenant_deactivated", tenant_id=tenant_id)
            return _to_tenant(row)

    async def list_active(self, limit: int = 50, offset: int = 0) -> list[Tenant]:
        async with AsyncSession(self._engine) as session:
            stmt = (
                select(TenantRow)
                .where(col(TenantRow.is_active).is_(True))
                .order_by(col(TenantRow.created_at))
                .offset(offset)
                .limit(limit)
            )
            result = await session.execute(stmt)
            return [_to_tenant(row) for row in result.scalars().all()]

    @staticmethod
    async def _get(session: AsyncSession, tenant_id: str) -> TenantRow:
        row = await session.get(TenantRow, tenant_id)
        if row is None:
            raise TenantNotFoundError(tenant_id)
        return row

    @staticmethod
    async def _check_available(
        session: AsyncSession, *hosts: str | None, exclude_id: str | None = None
    ) -> None:
        wanted = [h for h in hosts if h]
        if not wanted:
            return
        stmt = select(TenantRow.id).where(
            or_(col(TenantRow.domain).in_(wanted), col(TenantRow.custom_domain).in_(wanted))
        )
        if exclude_id is not None:
            stmt = stmt.where(col(TenantRow.id) != exclude_id)
        result = await session.execute(stmt)
        if result.first() is not None:
            msg = f"Domain already claimed: {', '.join(sorted(wanted))}"
            raise DomainConflictError(msg)
