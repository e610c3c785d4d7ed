"""Role-based capabilities.

Every role maps each resource to the capabilities it grants; routes declare
the capability they need with ``require_permission`` instead of branching on
the role themselves.
"""
from __future__ import annotations

from typing import Callable

from fastapi import Depends

from commissiondesk.auth import User
from commissiondesk.errors import AuthorizationDenied
from commissiondesk.dependencies import get_current_user

CAPABILITIES = ("create", "edit", "delete", "view_all", "view_own")
RESOURCES = ("users", "campaigns", "orders", "dashboard", "analytics", "activities", "exports")

ROLE_PERMISSIONS: dict[str, dict[str, frozenset[str]]] = {
    "admin": {
        "users": frozenset({"create", "edit", "delete", "view_all"}),
        "campaigns": frozenset({"create", "edit", "delete", "view_all"}),
        "orders": frozenset({"create", "edit", "delete", "view_all"}),
        "dashboard": frozenset({"view_all"}),
        "analytics": frozenset({"view_all", "view_own"}),
        "activities": frozenset({"view_all"}),
        "exports": frozenset({"view_all"}),
    },
    "sales_person": {
        "campaigns": frozenset({"view_own"}),
        "orders": frozenset({"create", "view_own"}),
        "dashboard": frozenset({"view_own"}),
        "analytics": frozenset({"view_own"}),
    },
}


def has_permission(user: User, resource: str, capability: str) -> bool:
    return capability in ROLE_PERMISSIONS.get(user.role, {}).get(resource, frozenset())


def can_view(user: User, resource: str) -> bool:
    return has_permission(user, resource, "view_all") or has_permission(user, resource, "view_own")


def sees_all(user: User, resource: str) -> bool:
    """True when the user is not restricted to records they own."""
    return has_permission(user, resource, "view_all")


def require_permission(resource: str, capability: str) -> Callable[..., User]:
    """FastAPI dependency factory returning the current user when allowed."""

    def dependency(user: User = Depends(get_current_user)) -> User:
        if not has_permission(user, resource, capability):
            raise AuthorizationDenied("You do not have permission to perform this action.")
        return user

    return dependency


def require_view(resource: str) -> Callable[..., User]:
    def dependency(user: User = Depends(get_current_user)) -> User:
        if not can_view(user, resource):
            raise AuthorizationDenied("You do not have permission to perform this action.")
        return user

    return dependency


def ensure_owner(user: User, resource: str, owner_id: int | None) -> None:
    """Raise unless ``user`` sees every record or owns this one."""
    if sees_all(user, resource):
        return
    if owner_id is None or owner_id != user.id:
        raise AuthorizationDenied("Access denied.")
