"""Change item state machine.

Validates a single decision against the transition rules: the item must be
pending, the actor must hold the rule's permission and rejections must carry
a reason. The machine never touches the database.
"""

from typing import Any, Callable, Dict, Optional
from uuid import UUID
import uuid

from changequeue.core.errors import (
    AlreadyResolvedError,
    AuthorizationError,
    FieldIssue,
    ValidationError,
)
from changequeue.core.time import utcnow
from .states import (
    Decision,
    ItemStatus,
    TERMINAL_STATUSES,
    can_transition,
    get_transition_rule,
)


class ChangeItemStateMachine:
    """
    State machine for one change item.

    Manages the transition out of PENDING with:
    - Rejection of decisions on terminal items
    - Permission checking through the authorization provider
    - Mandatory, non-blank reasons for rejections
    - A transition record for the audit trail
    """

    def __init__(
        self,
        item_id: UUID,
        current_status: ItemStatus,
        *,
        has_permission: Callable[[str], bool],
        field_path: str = "",
    ):
        """
        Initialize the state machine.

        Args:
            item_id: ID of the change item
            current_status: Status currently stored for the item
            has_permission: Predicate answering whether the acting user holds a permission
            field_path: Field the item changes (used in error details)
        """
        self.item_id = item_id
        self._status = ItemStatus(current_status)
        self.has_permission = has_permission
        self.field_path = field_path

    @property
    def status(self) -> ItemStatus:
        return self._status

    @property
    def is_terminal(self) -> bool:
        return self._status in TERMINAL_STATUSES

    def decide(
        self,
        decision: Decision,
        *,
        actor_id: Optional[UUID] = None,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Apply a decision.

        Returns:
            The transition record

        Raises:
            AlreadyResolvedError: If the item is no longer pending
            AuthorizationError: If the actor lacks the rule's permission
            ValidationError: If a required reason is missing or blank
        """
        decision = Decision(decision)
        if not can_transition(self._status, decision):
            raise AlreadyResolvedError(self.item_id, self._status.value)

        rule = get_transition_rule(self._status, decision)

        if rule.requires_permission and not self.has_permission(rule.requires_permission):
            raise AuthorizationError(rule.requires_permission)

        reason = reason.strip() if reason else None
        if rule.requires_reason and not reason:
            raise ValidationError(
                f"Decision {decision.value} requires a reason",
                [FieldIssue(0, self.field_path, "reason_required", "A non-empty reason is required")],
            )

        record = {
            "id": uuid.uuid4(),
            "item_id": self.item_id,
            "from_status": self._status.value,
            "to_status": rule.to_status.value,
            "decision": decision.value,
            "actor_id": actor_id,
            "reason": reason,
            "metadata": metadata or {},
            "timestamp": utcnow(),
        }
        self._status = rule.to_status
        return record

