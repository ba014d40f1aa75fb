"""Effective tenant settings: the stored blob merged over platform defaults."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tenantgate.models.domain import Tenant

DEFAULT_PRIMARY_COLOR = "#3b82f6"
DEFAULT_SECONDARY_COLOR = "#64748b"
DEFAULT_AI_MODEL = "gpt-4"
DEFAULT_RETENTION_DAYS = 365


def _section(settings: dict[str, Any], key: str) -> dict[str, Any]:
    value = settings.get(key)
    return value if isinstance(value, dict) else {}


def effective_settings(tenant: Tenant) -> dict[str, Any]:
    """Return the tenant's settings with every known section filled in."""
    stored = tenant.settings or {}
    branding = _section(stored, "branding")
    email = _section(stored, "email_settings")
    ai = _section(stored, "ai_settings")
    analytics = _section(stored, "analytics_settings")

    return {
        **stored,
        "branding": {
            "logo": branding.get("logo") or "",
            "primary_color": branding.get("primary_color") or DEFAULT_PRIMARY_COLOR,
            "secondary_color": branding.get("secondary_color") or DEFAULT_SECONDARY_COLOR,
        },
        "email_settings": {
            "from_name": email.get("from_name") or tenant.name,
            "from_email": email.get("from_email") or f"noreply@{tenant.primary_domain}",
            "reply_to": email.get("reply_to") or f"support@{tenant.primary_domain}",
        },
        "ai_settings": {
            "enabled": ai.get("enabled", True) is not False,
            "model": ai.get("model") or DEFAULT_AI_MODEL,
        },
        "analytics_settings": {
            "retention_days": analytics.get("retention_days") or DEFAULT_RETENTION_DAYS,
        },
    }
