"""Services of the change queue: approval engine, entity store and export queue."""

from .change_queue import ChangeQueueService, ChangeRequestPage, ProposedChange
from .entity_store import EntityStore
from .export_queue import ClaimedBatch, ExportQueue

__all__ = [
    "ChangeQueueService",
    "ChangeRequestPage",
    "ProposedChange",
    "EntityStore",
    "ClaimedBatch",
    "ExportQueue",
]
