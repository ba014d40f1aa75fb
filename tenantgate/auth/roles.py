"""Role hierarchy and the single authorization decision."""

from __future__ import annotations

from typing import TYPE_CHECKING, assert_never

from tenantgate.types import Role

if TYPE_CHECKING:
    from tenantgate.models.domain import Principal


def rank(role: Role) -> int:
    """Privilege rank of a role: viewer=1, editor=2, admin=3."""
    match role:
        case Role.VIEWER:
            return 1
        case Role.EDITOR:
            return 2
        case Role.ADMIN:
            return 3
        case _:
            assert_never(role)


def authorize(principal_role: Role | None, required_role: Role) -> bool:
    """True iff the principal's role ranks at or above the required role.

    A missing principal role (unauthenticated caller) never satisfies any
    requirement.
    """
    if principal_role is None:
        return False
    return rank(principal_role) >= rank(required_role)


def has_role(principal: Principal | None, required_role: Role) -> bool:
    if principal is None:
        return False
    return authorize(principal.role, required_role)


def is_admin(principal: Principal | None) -> bool:
    return has_role(principal, Role.ADMIN)


def is_editor(principal: Principal | None) -> bool:
    """Editor or higher."""
    return has_role(principal, Role.EDITOR)


def can_view(principal: Principal | None) -> bool:
    return has_role(principal, Role.VIEWER)
