"""Database models for the change queue."""

from changequeue.db.models.role import Role
from changequeue.db.models.user import User
from changequeue.db.models.entity import ManagedEntity, AppliedFieldWrite
from changequeue.db.models.change import (
    ChangeRequest,
    ChangeItem,
    ChangeComment,
    ChangeItemHistory,
)
from changequeue.db.models.sevis_batch import SevisBatch, SevisBatchResult

__all__ = [
    "Role",
    "User",
    "ManagedEntity",
    "AppliedFieldWrite",
    "ChangeRequest",
    "ChangeItem",
    "ChangeComment",
    "ChangeItemHistory",
    "SevisBatch",
    "SevisBatchResult",
]
