"""Change item states, decisions and the request rollup.

State Machine Diagram (per change item):

    ┌──────────┐
    │ PENDING  │ ← Initial state (item submitted)
    └────┬─────┘
         │
         ├─────────────────────┐
         │ approve             │ reject (reason required)
    ┌────▼─────┐         ┌─────▼────┐
    │ APPROVED │         │ REJECTED │
    └──────────┘         └──────────┘

Both outcomes are terminal. Re-proposing a rejected field needs a new item.

The request status is never a state of its own: it is ``rollup_status`` of
its items, or CANCELLED once the requester withdrew it.
"""

from enum import Enum
from typing import Dict, Iterable, NamedTuple, Optional, Set


class EntityType(str, Enum):
    """Kinds of managed entities."""

    STUDENT = "student"
    HOST_FAMILY = "host_family"
    COORDINATOR = "coordinator"


class ChangeKind(str, Enum):
    """Kind of mutation a change item proposes."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ApprovalLevel(str, Enum):
    """Approval level a field requires."""

    STANDARD = "standard"   # Ordinary reviewer approval
    ELEVATED = "elevated"   # SEVIS-gated approval


class ItemStatus(str, Enum):
    """States of a single change item."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RequestStatus(str, Enum):
    """Derived status of a change request."""

    PENDING = "pending"
    PARTIALLY_APPROVED = "partially_approved"
    FULLY_APPROVED = "fully_approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"  # Withdrawn by the requester


class Decision(str, Enum):
    """Reviewer decisions on a pending item."""

    APPROVE = "approve"
    REJECT = "reject"


class TransitionRule(NamedTuple):
    """Defines a valid item transition."""
    from_status: ItemStatus
    to_status: ItemStatus
    decision: Decision
    requires_permission: Optional[str] = None
    requires_reason: bool = False


TRANSITION_RULES: list[TransitionRule] = [
    TransitionRule(ItemStatus.PENDING, ItemStatus.APPROVED, Decision.APPROVE,
                   "change_items:approve"),
    TransitionRule(ItemStatus.PENDING, ItemStatus.REJECTED, Decision.REJECT,
                   "change_items:reject", requires_reason=True),
]

TRANSITION_TARGETS: Dict[tuple[ItemStatus, Decision], TransitionRule] = {
    (rule.from_status, rule.decision): rule for rule in TRANSITION_RULES
}

TERMINAL_STATUSES: Set[ItemStatus] = {
    ItemStatus.APPROVED,
    ItemStatus.REJECTED,
}


def can_transition(from_status: ItemStatus, decision: Decision) -> bool:
    """Check if a decision is valid from the given item status."""
    return (from_status, decision) in TRANSITION_TARGETS


def get_transition_rule(from_status: ItemStatus, decision: Decision) -> Optional[TransitionRule]:
    """Get the transition rule for a status/decision combination."""
    return TRANSITION_TARGETS.get((from_status, decision))


def rollup_status(statuses: Iterable) -> RequestStatus:
    """Derive a request status from the statuses of its items.

    While items are pending the request is pending, unless some item was
    already approved, which makes it partially approved. Once nothing is
    pending the request is fully approved if every item was approved,
    rejected if every item was rejected, and partially approved for any mix.
    """
    seen = {ItemStatus(s) for s in statuses}
    if not seen:
        raise ValueError("A change request needs at least one item")
    if ItemStatus.PENDING in seen:
        if ItemStatus.APPROVED in seen:
            return RequestStatus.PARTIALLY_APPROVED
        return RequestStatus.PENDING
    if seen == {ItemStatus.APPROVED}:
        return RequestStatus.FULLY_APPROVED
    if seen == {ItemStatus.REJECTED}:
        return RequestStatus.REJECTED
    return RequestStatus.PARTIALLY_APPROVED

