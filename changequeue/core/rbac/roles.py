"""Default role templates for the change queue.

1. Requester - Proposes changes and follows them up
2. Reviewer - Resolves ordinary (non-SEVIS) change items
3. SEVIS Officer - Reviewer who may also approve SEVIS-related items
4. Exporter - Batch exporter service account
5. Admin - Full access
"""

from typing import Dict, List
from .permissions import Resource, Action, Permission


def _build_permissions(*perms: tuple) -> List[str]:
    """Build permission strings from (Resource, Action) tuples."""
    return [str(Permission(r, a)) for r, a in perms]


ADMIN_PERMISSIONS = [
    "*:*"  # Global wildcard - all permissions
]

REQUESTER_PERMISSIONS = _build_permissions(
    (Resource.CHANGE_REQUESTS, Action.CREATE),
    (Resource.CHANGE_REQUESTS, Action.READ),
    (Resource.CHANGE_REQUESTS, Action.LIST),
    (Resource.CHANGE_REQUESTS, Action.WITHDRAW),
    (Resource.CHANGE_ITEMS, Action.READ),
    (Resource.CHANGE_ITEMS, Action.COMMENT),
)

REVIEWER_PERMISSIONS = REQUESTER_PERMISSIONS + _build_permissions(
    (Resource.CHANGE_ITEMS, Action.APPROVE),
    (Resource.CHANGE_ITEMS, Action.REJECT),
)

SEVIS_OFFICER_PERMISSIONS = REVIEWER_PERMISSIONS + _build_permissions(
    (Resource.SEVIS, Action.APPROVE),
)

EXPORTER_PERMISSIONS = _build_permissions(
    (Resource.CHANGE_ITEMS, Action.READ),
    (Resource.EXPORTS, Action.EXPORT),
)

DEFAULT_ROLES: Dict[str, Dict] = {
    "admin": {
        "description": "Full access to the change queue",
        "permissions": ADMIN_PERMISSIONS,
    },
    "requester": {
        "description": "Coordinators and host families proposing changes",
        "permissions": REQUESTER_PERMISSIONS,
    },
    "reviewer": {
        "description": "Staff resolving ordinary change items",
        "permissions": REVIEWER_PERMISSIONS,
    },
    "sevis_officer": {
        "description": "Staff allowed to approve SEVIS-related changes",
        "permissions": SEVIS_OFFICER_PERMISSIONS,
    },
    "exporter": {
        "description": "SEVIS batch exporter service account",
        "permissions": EXPORTER_PERMISSIONS,
    },
}
