from types import SimpleNamespace

import pytest

from cargotrack.errors import ValidationError
from cargotrack.schemas.auth import Permission
from cargotrack.services.permissions import (
    CATALOG,
    has_permission,
    has_any,
    has_all,
    is_admin,
    normalize_permissions,
)


def _user(role="viewer", permissions=None):
    return SimpleNamespace(role=role, permissions=permissions)


def test_missing_user_has_nothing():
    assert has_permission(None, Permission.dashboard_view) is False
    assert has_any(None, [Permission.dashboard_view, Permission.logs_view]) is False
    assert has_all(None, [Permission.dashboard_view]) is False
    assert is_admin(None) is False


def test_admin_passes_every_check():
    admin = _user(role="admin", permissions=[])
    assert has_permission(admin, Permission.logs_view)
    assert has_permission(admin, "not:in-catalog")
    assert has_all(admin, list(Permission))


def test_role_comparison_ignores_case():
    assert is_admin(_user(role="Admin"))


def test_membership_of_held_keys():
    viewer = _user(permissions=["dashboard:view", "report:view"])
    assert has_permission(viewer, Permission.dashboard_view)
    assert has_permission(viewer, "report:view")
    assert not has_permission(viewer, Permission.dashboard_edit)


def test_null_permission_list_is_empty():
    assert not has_permission(_user(permissions=None), Permission.dashboard_view)


def test_any_and_all():
    user = _user(permissions=["report:view"])
    assert has_any(user, [Permission.report_export, Permission.report_view])
    assert not has_all(user, [Permission.report_export, Permission.report_view])
    assert has_all(user, [Permission.report_view])


def test_unknown_keys_never_match():
    user = _user(permissions=["reports:everything"])
    assert not has_any(user, list(Permission))


def test_catalog_is_closed():
    assert len(CATALOG) == 14
    assert "register:perms" in CATALOG


def test_normalize_collapses_duplicates():
    assert normalize_permissions(["report:view", "dashboard:view", "report:view"]) == [
        "dashboard:view",
        "report:view",
    ]


def test_normalize_rejects_unknown_keys():
    with pytest.raises(ValidationError) as exc:
        normalize_permissions(["dashboard:view", "admin:everything", "bogus"])
    fields = [e["message"] for e in exc.value.errors]
    assert fields == ["unknown permission 'admin:everything'", "unknown permission 'bogus'"]
