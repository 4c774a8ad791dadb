"""SEVIS gate.

Approving a change item whose field requires elevated approval (every
SEVIS-related field does) needs a permission distinct from ordinary
approval. The gate is consulted before anything is mutated, and marks
approved SEVIS-related items as ready for the batch exporter.
"""

from typing import Callable, Optional
from uuid import UUID

from changequeue.core.approval.states import ApprovalLevel
from changequeue.core.errors import AuthorizationError
from changequeue.core.logger import get_logger
from changequeue.core.rbac.permissions import is_valid_permission
from changequeue.db.models import ChangeItem


logger = get_logger("sevis_gate")


class SevisGate:
    """Elevated-approval check and export marking for SEVIS-related items."""

    def __init__(
        self,
        has_permission: Callable[[Optional[UUID], str], bool],
        *,
        elevated_permission: str = "sevis:approve",
    ):
        """
        Args:
            has_permission: Authorization provider predicate ``(actor_id, permission)``
            elevated_permission: Permission required for elevated approvals

        Raises:
            ValueError: If ``elevated_permission`` is not a known permission
        """
        if not is_valid_permission(elevated_permission):
            raise ValueError(f"Unknown elevated permission: {elevated_permission!r}")
        self.has_permission = has_permission
        self.elevated_permission = elevated_permission

    def required_permission(self, item: ChangeItem) -> Optional[str]:
        """Extra permission needed to approve ``item``, if any."""
        if item.is_sevis_related or item.required_approval_level == ApprovalLevel.ELEVATED.value:
            return self.elevated_permission
        return None

    def authorize_approval(self, item: ChangeItem, actor_id: Optional[UUID]) -> None:
        """
        Raises:
            AuthorizationError: If the actor may not approve this item
        """
        permission = self.required_permission(item)
        if permission is None:
            return
        if not self.has_permission(actor_id, permission):
            logger.warning(
                "Refused elevated approval of item %s (%s) by actor %s",
                item.id, item.field_path, actor_id,
            )
            raise AuthorizationError(
                permission,
                f"Approving {item.field_path} requires {permission}",
            )

    @staticmethod
    def mark_approved(item: ChangeItem) -> None:
        """Queue an approved SEVIS-related item for export."""
        if item.is_sevis_related:
            item.export_ready = True
            item.exported_at = None

