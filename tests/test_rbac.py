import pytest

from unasys_crm.exceptions import NotAuthenticatedError, PermissionDeniedError
from unasys_crm.principal import Principal
from unasys_crm.rbac import ensure_permission, has_permission


def make_principal(role, permissions=None):
    return Principal(
        user_id="u1",
        email="u1@example.com",
        company_id="c1",
        role=role,
        permissions=permissions or {},
    )


@pytest.mark.parametrize("role, module, action, expected", [
    ("admin", "clients", "delete", True),
    ("manager", "proposals", "update", True),
    ("manager", "proposals", "delete", False),
    ("user", "tasks", "create", True),
    ("user", "sales", "create", False),
    ("user", "reports", "read", True),
    ("viewer", "clients", "read", True),
    ("viewer", "clients", "create", False),
    ("unknown", "clients", "read", False),
])
def test_role_defaults(role, module, action, expected):
    assert has_permission(make_principal(role), module, action) is expected


def test_profile_override_wins():
    principal = make_principal("viewer", {"clients": {"create": True}})

    assert has_permission(principal, "clients", "create") is True
    # Actions missing from the override fall back to the role
    assert has_permission(principal, "clients", "delete") is False


def test_override_can_revoke():
    principal = make_principal("admin", {"reports": {"delete": False}})
    assert has_permission(principal, "reports", "delete") is False


def test_ensure_permission_requires_principal():
    with pytest.raises(NotAuthenticatedError):
        ensure_permission(None, "clients", "read")


def test_ensure_permission_denied():
    with pytest.raises(PermissionDeniedError) as exc_info:
        ensure_permission(make_principal("viewer"), "tasks", "update")

    assert exc_info.value.module == "tasks"
    assert "modifier" in str(exc_info.value)
