"""SQLModel database table models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


def _utc_now() -> datetime:
    """Return current UTC time as naive datetime for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def _new_uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Tenants
# ---------------------------------------------------------------------------


class TenantRow(SQLModel, table=True):
    __tablename__ = "tenants"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    name: str
    domain: str = Field(unique=True, index=True)  # primary domain, lower-case
    custom_domain: str | None = Field(default=None, unique=True, index=True)
    settings: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    plan: str = Field(default="free")  # free | pro | enterprise
    subscription_status: str = Field(default="active")  # active | cancelled | past_due
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


# ---------------------------------------------------------------------------
# Upstream identity records
# ---------------------------------------------------------------------------


class UserRow(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    email: str = Field(index=True)
    name: str = ""
    role: str | None = Field(default="viewer")  # not validated here; see auth.identity
    password_hash: str | None = None  # argon2id; None means no password login
    tenant_id: str | None = Field(default=None, foreign_key="tenants.id", index=True)
    is_active: bool = Field(default=True)
    email_verified: bool = Field(default=False)
    last_login_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    tenant_id: str | None = Field(default=None, index=True)
    user_id: str = ""
    action: str = Field(index=True)
    resource_type: str = ""
    resource_id: str = ""
    details_json: str = "{}"
    ip_address: str = ""
    request_id: str = ""
    created_at: datetime = Field(default_factory=_utc_now)
