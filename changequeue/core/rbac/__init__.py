"""RBAC (Role-Based Access Control) module for the change queue.

This module defines the permission model, role templates, and access control utilities.
"""

from .permissions import Permission, Resource, Action, PERMISSION_DEFINITIONS
from .checker import (
    PermissionChecker,
    RoleAuthorizationProvider,
    has_permission,
    require_permission,
)

__all__ = [
    "Permission",
    "Resource",
    "Action",
    "PERMISSION_DEFINITIONS",
    "PermissionChecker",
    "RoleAuthorizationProvider",
    "has_permission",
    "require_permission",
]
