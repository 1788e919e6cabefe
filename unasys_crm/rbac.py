"""RBAC helpers: module permissions for the current profile role."""

from __future__ import annotations

from typing import Optional

from .exceptions import NotAuthenticatedError, PermissionDeniedError
from .principal import Principal

MODULES = ["clients", "proposals", "tasks", "sales", "messages", "reports"]
ACTIONS = ["create", "read", "update", "delete"]


def _grant(create: bool, read: bool, update: bool, delete: bool) -> dict[str, bool]:
    return {"create": create, "read": read, "update": update, "delete": delete}


FULL = _grant(True, True, True, True)
EDITOR = _grant(True, True, True, False)
READ_ONLY = _grant(False, True, False, False)

# Defaults applied when a profile carries no override for a module.
ROLE_DEFAULTS: dict[str, dict[str, dict[str, bool]]] = {
    "admin": {module: FULL for module in MODULES},
    "manager": {module: EDITOR for module in MODULES},
    "user": {
        "clients": EDITOR,
        "proposals": EDITOR,
        "tasks": EDITOR,
        "sales": READ_ONLY,
        "messages": EDITOR,
        "reports": READ_ONLY,
    },
    "viewer": {module: READ_ONLY for module in MODULES},
}

# Permissions written on the profile created for the demo company.
DEMO_ADMIN_PERMISSIONS = {
    "clients": FULL,
    "proposals": FULL,
    "tasks": FULL,
    "reports": _grant(True, True, True, False),
}


def has_permission(principal: Principal, module: str, action: str) -> bool:
    """
    Return True if the principal may perform ``action`` in ``module``.

    A profile override for the module wins over the role default.
    """
    override = principal.permissions.get(module)
    if override is not None and action in override:
        return bool(override[action])
    defaults = ROLE_DEFAULTS.get(principal.role, {})
    return bool(defaults.get(module, {}).get(action, False))


def ensure_permission(principal: Optional[Principal], module: str, action: str) -> None:
    """
    Ensure that the principal may perform ``action`` in ``module``.

    Raises:
        NotAuthenticatedError: If principal is None.
        PermissionDeniedError: If permission is missing.
    """
    if principal is None:
        raise NotAuthenticatedError()

    if not has_permission(principal, module, action):
        raise PermissionDeniedError(module, action)
