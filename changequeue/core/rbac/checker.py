"""Permission checking utilities for the change queue.

``PermissionChecker`` evaluates permission strings with wildcard support;
``RoleAuthorizationProvider`` answers ``has_permission(actor_id, permission)``
from the roles stored in the database.
"""

from functools import wraps
from typing import Callable, Iterable, List, Optional, Union
from uuid import UUID

from sqlalchemy.orm import Session

from changequeue.core.errors import AuthorizationError
from changequeue.db.models import User
from .permissions import Permission


class PermissionChecker:
    """Evaluates permission strings against the grants of one role.

    A grant matches exactly, or through ``resource:*`` or ``*:*``.
    """

    def __init__(self, granted: Iterable[str]):
        self.permissions = frozenset(granted)

    def has_permission(self, permission: Union[str, Permission]) -> bool:
        perm_str = str(permission)
        resource, _, _ = perm_str.partition(":")
        return not self.permissions.isdisjoint((perm_str, f"{resource}:*", "*:*"))

    def has_any_permission(self, permissions: List[Union[str, Permission]]) -> bool:
        """Check if user has any of the given permissions."""
        return any(self.has_permission(p) for p in permissions)

    def has_all_permissions(self, permissions: List[Union[str, Permission]]) -> bool:
        """Check if user has all of the given permissions."""
        return all(self.has_permission(p) for p in permissions)


def has_permission(user: Optional[User], permission: Union[str, Permission]) -> bool:
    """
    Check if a user has a specific permission.

    Inactive users and users without a role hold no permissions.
    """
    if not user or not user.is_active or not user.role:
        return False

    checker = PermissionChecker(user.role.permissions or [])
    return checker.has_permission(permission)


class RoleAuthorizationProvider:
    """Authorization provider backed by the users and roles tables."""

    def __init__(self, db: Session):
        self.db = db

    def get_actor(self, actor_id: UUID) -> Optional[User]:
        return self.db.get(User, actor_id)

    def has_permission(self, actor_id: Optional[UUID], permission: Union[str, Permission]) -> bool:
        if actor_id is None:
            return False
        return has_permission(self.get_actor(actor_id), permission)


def require_permission(*permissions: Union[str, Permission], require_all: bool = False):
    """
    Decorator factory for FastAPI endpoints requiring specific permissions.

    The endpoint must take the acting user as a ``current_user`` keyword.

    Usage:
        @router.get("/change-requests")
        @require_permission("change_requests:list")
        async def list_change_requests(current_user: User = Depends(get_current_user)):
            ...
    """
    perm_strs = [str(p) if isinstance(p, Permission) else p for p in permissions]

    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            current_user = kwargs.get("current_user")
            if not current_user or not current_user.is_active or not current_user.role:
                raise AuthorizationError(perm_strs[0], "User has no assigned role")

            checker = PermissionChecker(current_user.role.permissions or [])
            if require_all:
                has_access = checker.has_all_permissions(perm_strs)
            else:
                has_access = checker.has_any_permission(perm_strs)

            if not has_access:
                raise AuthorizationError(
                    perm_strs[0],
                    f"Insufficient permissions. Required: {', '.join(perm_strs)}",
                )

            return await func(*args, **kwargs)

        return wrapper
    return decorator
