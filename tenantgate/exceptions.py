"""Exception hierarchy for tenantgate.

Expected outcomes (an unknown host, a denied request) are returned as typed
results, not raised. These exceptions cover infrastructure failures and
programming errors.
"""


class TenantGateError(Exception):
    """Base exception for all tenantgate errors."""


class StorageError(TenantGateError):
    """Raised when storage operations fail."""


class DirectoryUnavailable(StorageError):
    """Raised when the tenant directory cannot be read.

    Distinct from a lookup that finds nothing, which returns None.
    """


class DomainConflictError(StorageError):
    """Raised when a hostname is already claimed by another tenant."""


class TenantNotFoundError(StorageError):
    """Raised when a write targets a tenant id that does not exist."""


class ScopeError(TenantGateError):
    """Raised when the tenant scope is misused."""


class NestedTenantMismatch(ScopeError):
    """Raised when a scope for one tenant is opened inside a scope for another."""

    def __init__(self, active_tenant_id: str, requested_tenant_id: str) -> None:
        self.active_tenant_id = active_tenant_id
        self.requested_tenant_id = requested_tenant_id
        super().__init__(
            f"tenant scope {requested_tenant_id!r} opened inside active scope "
            f"{active_tenant_id!r}"
        )


class TenantScopeRequired(ScopeError):
    """Raised when tenant-scoped storage is used outside any tenant scope."""


class ConfigError(TenantGateError):
    """Raised when configuration is invalid."""
