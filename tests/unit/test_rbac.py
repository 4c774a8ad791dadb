"""Tests for RBAC permission system."""

from uuid import uuid4

import pytest

from changequeue.core.rbac.permissions import (
    Action,
    Permission,
    Resource,
    is_valid_permission,
)
from changequeue.core.rbac.checker import PermissionChecker, has_permission
from changequeue.core.rbac.roles import (
    DEFAULT_ROLES,
    EXPORTER_PERMISSIONS,
    REQUESTER_PERMISSIONS,
    REVIEWER_PERMISSIONS,
    SEVIS_OFFICER_PERMISSIONS,
)
from changequeue.db.models import Role, User


class TestPermissionModel:
    """Test permission definitions."""

    def test_permission_string_format(self):
        assert str(Permission(Resource.CHANGE_ITEMS, Action.APPROVE)) == "change_items:approve"

    def test_is_valid_permission(self):
        assert is_valid_permission("change_requests:withdraw")
        assert is_valid_permission("exports:export")
        assert is_valid_permission("change_items:*")
        assert is_valid_permission("*:*")
        assert not is_valid_permission("sevis:reject")
        assert not is_valid_permission("students:*")

    def test_wildcard_on_unknown_action_refused(self):
        assert not is_valid_permission("*:approve")


class TestPermissionChecker:
    """Test PermissionChecker class."""

    def test_exact_match(self):
        checker = PermissionChecker(["change_items:read"])
        assert checker.has_permission("change_items:read")
        assert not checker.has_permission("change_items:approve")

    def test_resource_wildcard(self):
        checker = PermissionChecker(["change_items:*"])
        assert checker.has_permission("change_items:approve")
        assert not checker.has_permission("sevis:approve")

    def test_global_wildcard(self):
        checker = PermissionChecker(["*:*"])
        assert checker.has_permission("sevis:approve")
        assert checker.has_permission(Permission(Resource.EXPORTS, Action.EXPORT))

    def test_any_and_all(self):
        checker = PermissionChecker(["change_items:approve"])
        assert checker.has_any_permission(["sevis:approve", "change_items:approve"])
        assert not checker.has_all_permissions(["sevis:approve", "change_items:approve"])


class TestDefaultRoles:
    """Test role templates."""

    def test_only_sevis_officer_holds_elevated_permission(self):
        assert "sevis:approve" in SEVIS_OFFICER_PERMISSIONS
        assert "sevis:approve" not in REVIEWER_PERMISSIONS
        assert "sevis:approve" not in REQUESTER_PERMISSIONS

    def test_requester_cannot_decide(self):
        assert "change_items:approve" not in REQUESTER_PERMISSIONS
        assert "change_requests:create" in REQUESTER_PERMISSIONS

    def test_exporter(self):
        assert "exports:export" in EXPORTER_PERMISSIONS
        assert "change_items:approve" not in EXPORTER_PERMISSIONS

    def test_every_template_is_valid(self):
        for role in DEFAULT_ROLES.values():
            for perm in role["permissions"]:
                assert is_valid_permission(perm), perm

    def test_admin_holds_global_wildcard(self):
        assert DEFAULT_ROLES["admin"]["permissions"] == ["*:*"]


class TestHasPermission:
    """Test the user-level permission check."""

    def _user(self, permissions, is_active=True):
        return User(id=uuid4(), email="x@example.org", is_active=is_active, role=Role(name="r", permissions=permissions))

    def test_active_user(self):
        assert has_permission(self._user(["change_items:*"]), "change_items:reject")

    def test_inactive_user_has_nothing(self):
        assert not has_permission(self._user(["*:*"], is_active=False), "change_items:read")

    def test_missing_user(self):
        assert not has_permission(None, "change_items:read")
