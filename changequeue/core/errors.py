"""Error taxonomy for the change queue.

Every error raised by the approval engine, the SEVIS gate and the export
queue derives from ``ChangeQueueError`` and carries a stable ``code`` so the
API layer can map it to a response without string matching.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class FieldIssue:
    """One offending item in a submitted batch."""
    index: int
    field_path: str
    rule: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ChangeQueueError(Exception):
    """Base class for change queue errors."""

    code = "change_queue_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ChangeQueueError):
    """Raised when a submitted batch or a decision payload is invalid.

    ``issues`` lists every offending item, not just the first one.
    """

    code = "validation_error"

    def __init__(self, message: str, issues: Optional[List[FieldIssue]] = None):
        super().__init__(message)
        self.issues = list(issues or [])


class NotFoundError(ChangeQueueError):
    """Raised when an id does not resolve to a record."""

    code = "not_found"

    def __init__(self, kind: str, identifier: Any):
        super().__init__(f"{kind} {identifier} not found")
        self.kind = kind
        self.identifier = identifier


class AlreadyResolvedError(ChangeQueueError):
    """Raised when deciding an item that is no longer pending.

    This is an expected race outcome: someone else already decided it.
    """

    code = "already_resolved"

    def __init__(self, item_id: Any, status: str, kind: str = "Change item"):
        super().__init__(f"{kind} {item_id} is already {status}")
        self.item_id = item_id
        self.status = status


class AuthorizationError(ChangeQueueError):
    """Raised when the actor lacks the permission an action requires."""

    code = "authorization_error"

    def __init__(self, required_permission: str, message: Optional[str] = None):
        super().__init__(message or f"Permission denied: requires {required_permission}")
        self.required_permission = required_permission


class ConsistencyError(ChangeQueueError):
    """Raised when stored records contradict each other.

    Fatal: never retried and never repaired automatically.
    """

    code = "consistency_error"
