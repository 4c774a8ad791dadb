"""Change item workflow: states, transition rules and the state machine."""

from .states import (
    ItemStatus,
    RequestStatus,
    Decision,
    ChangeKind,
    Priority,
    ApprovalLevel,
    EntityType,
    rollup_status,
)
from .machine import ChangeItemStateMachine

__all__ = [
    "ItemStatus",
    "RequestStatus",
    "Decision",
    "ChangeKind",
    "Priority",
    "ApprovalLevel",
    "EntityType",
    "rollup_status",
    "ChangeItemStateMachine",
]
