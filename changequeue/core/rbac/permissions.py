"""Permission model for the change queue.

Uses a matrix approach: permissions = actions × resources.

Permission string format: "resource:action"
Examples:
  - change_requests:create
  - change_items:approve
  - sevis:approve     (elevated approval of SEVIS-related items)
  - exports:export
"""

from enum import Enum
from typing import NamedTuple, FrozenSet


class Resource(str, Enum):
    """Resources that can be protected by permissions."""

    CHANGE_REQUESTS = "change_requests"   # Batches of proposed edits
    CHANGE_ITEMS = "change_items"         # Individual field edits
    SEVIS = "sevis"                       # SEVIS-gated approvals
    EXPORTS = "exports"                   # Batch exporter surface


class Action(str, Enum):
    """Actions that can be performed on resources."""

    CREATE = "create"
    READ = "read"
    LIST = "list"
    APPROVE = "approve"
    REJECT = "reject"
    COMMENT = "comment"
    WITHDRAW = "withdraw"
    EXPORT = "export"


class Permission(NamedTuple):
    """A permission is a combination of resource and action."""
    resource: Resource
    action: Action

    def __str__(self) -> str:
        return f"{self.resource.value}:{self.action.value}"


PERMISSION_MATRIX: dict[Resource, FrozenSet[Action]] = {
    Resource.CHANGE_REQUESTS: frozenset([
        Action.CREATE, Action.READ, Action.LIST, Action.WITHDRAW,
    ]),
    Resource.CHANGE_ITEMS: frozenset([
        Action.READ, Action.APPROVE, Action.REJECT, Action.COMMENT,
    ]),
    Resource.SEVIS: frozenset([
        Action.APPROVE,
    ]),
    Resource.EXPORTS: frozenset([
        Action.EXPORT,
    ]),
}


# "resource:action" -> Permission for every cell of the matrix
PERMISSION_DEFINITIONS: dict[str, Permission] = {
    str(Permission(resource, action)): Permission(resource, action)
    for resource, actions in PERMISSION_MATRIX.items()
    for action in actions
}


def is_valid_permission(perm_str: str) -> bool:
    """True for a matrix permission or a wildcard grant (``resource:*``, ``*:*``)."""
    resource, _, action = perm_str.partition(":")
    if action == "*":
        return resource == "*" or resource in {r.value for r in Resource}
    return perm_str in PERMISSION_DEFINITIONS
