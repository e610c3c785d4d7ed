from types import SimpleNamespace

import pytest

from commissiondesk.errors import AuthorizationDenied
from commissiondesk.permissions import ROLE_PERMISSIONS, can_view, ensure_owner, has_permission, sees_all

ADMIN = SimpleNamespace(id=1, role="admin")
SELLER = SimpleNamespace(id=2, role="sales_person")


@pytest.mark.parametrize(
    "resource, capability",
    [("users", "create"), ("campaigns", "delete"), ("orders", "edit"), ("exports", "view_all")],
)
def test_admin_capabilities(resource, capability):
    assert has_permission(ADMIN, resource, capability)


def test_sales_person_is_limited_to_own_records():
    assert has_permission(SELLER, "orders", "create")
    assert not has_permission(SELLER, "orders", "edit")
    assert not has_permission(SELLER, "campaigns", "create")
    assert not can_view(SELLER, "users")
    assert can_view(SELLER, "campaigns")
    assert not sees_all(SELLER, "campaigns")


def test_unknown_role_has_no_permissions():
    ghost = SimpleNamespace(id=3, role="auditor")

    assert not any(has_permission(ghost, resource, "view_all") for resource in ROLE_PERMISSIONS["admin"])


def test_ensure_owner():
    ensure_owner(ADMIN, "campaigns", owner_id=99)
    ensure_owner(SELLER, "campaigns", owner_id=2)

    with pytest.raises(AuthorizationDenied):
        ensure_owner(SELLER, "campaigns", owner_id=99)
    with pytest.raises(AuthorizationDenied):
        ensure_owner(SELLER, "campaigns", owner_id=None)
