"""
Permission checks.

A user holds a set of permission keys ("area:action"). The admin role passes
every check; a missing user (no session) fails every check. Keys are compared
as opaque strings so unknown keys simply never match.
"""
from typing import Iterable, List, Optional, Union

from ..schemas.auth import Permission, UserRole
from ..errors import ValidationError


PermissionLike = Union[Permission, str]

CATALOG = frozenset(p.value for p in Permission)


def _key(permission: PermissionLike) -> str:
    return permission.value if isinstance(permission, Permission) else str(permission)


def is_admin(user) -> bool:
    """Check if user has admin role."""
    if user is None:
        return False
    role = getattr(user, "role", None)
    role = role.value if isinstance(role, UserRole) else role
    return (role or "").lower() == UserRole.admin.value


def user_permissions(user) -> frozenset:
    if user is None:
        return frozenset()
    return frozenset(getattr(user, "permissions", None) or [])


def has_permission(user, permission: PermissionLike) -> bool:
    if user is None:
        return False
    if is_admin(user):
        return True
    return _key(permission) in user_permissions(user)


def has_any(user, permissions: Iterable[PermissionLike]) -> bool:
    return any(has_permission(user, p) for p in permissions)


def has_all(user, permissions: Iterable[PermissionLike]) -> bool:
    if user is None:
        return False
    return all(has_permission(user, p) for p in permissions)


def normalize_permissions(permissions: Iterable[str]) -> List[str]:
    """
    Validate a permission list against the catalog and collapse duplicates.

    Raises ValidationError listing every unknown key.
    """
    keys = [str(p).strip() for p in permissions]
    unknown = sorted({k for k in keys if k not in CATALOG})
    if unknown:
        raise ValidationError(
            "Unknown permissions",
            errors=[{"field": "permissions", "message": f"unknown permission '{k}'"} for k in unknown],
        )
    return sorted(set(keys))
