"""Schemas for the change request and change item endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from .common import PaginatedResponse


EntityTypeName = Literal["student", "host_family", "coordinator"]
PriorityName = Literal["low", "medium", "high", "urgent"]
ChangeKindName = Literal["create", "update", "delete"]


class ProposedChangeIn(BaseModel):
    field_path: str
    new_value: Any = None
    change_kind: Optional[ChangeKindName] = None
    field_label: Optional[str] = None


class ChangeRequestCreate(BaseModel):
    """Payload for proposing edits to one entity."""
    entity_type: EntityTypeName
    entity_id: UUID
    items: List[ProposedChangeIn] = Field(min_length=1)
    priority: PriorityName = "medium"
    change_kind: ChangeKindName = "update"
    description: Optional[str] = None
    source: Optional[str] = None
    urgency_reason: Optional[str] = None

    def metadata(self) -> Dict[str, str]:
        return {
            key: value
            for key, value in (("source", self.source), ("urgency_reason", self.urgency_reason))
            if value
        }


class DecisionIn(BaseModel):
    decision: Literal["approve", "reject"]
    reason: Optional[str] = None

    @field_validator("reason", mode="before")
    @classmethod
    def normalize_reason(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or None
        return value


class CommentCreate(BaseModel):
    content: str
    is_internal: bool = False


class WithdrawIn(BaseModel):
    reason: Optional[str] = None


class CommentResponse(BaseModel):
    id: UUID
    author_id: Optional[UUID]
    author_name: str
    content: str
    is_internal: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ChangeItemResponse(BaseModel):
    id: UUID
    request_id: UUID
    field_path: str
    field_label: str
    previous_value: Any = None
    new_value: Any = None
    change_kind: str
    is_sevis_related: bool
    required_approval_level: str
    status: str
    requested_by: Optional[UUID]
    requested_at: Optional[datetime]
    resolved_by: Optional[UUID] = None
    resolved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    export_ready: bool
    exported_at: Optional[datetime] = None
    sevis_batch_id: Optional[UUID] = None
    comments: List[CommentResponse] = []

    class Config:
        from_attributes = True


class ChangeRequestResponse(BaseModel):
    id: UUID
    entity_type: str
    entity_id: UUID
    record_name: Optional[str]
    change_kind: str
    priority: str
    description: Optional[str]
    status: str
    requested_by: Optional[UUID]
    withdrawn_by: Optional[UUID] = None
    withdrawn_at: Optional[datetime] = None
    extra_data: Dict[str, Any] = {}
    items: List[ChangeItemResponse]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ChangeRequestListResponse(PaginatedResponse[ChangeRequestResponse]):
    pass


class QueueSummaryResponse(BaseModel):
    pending_requests: int
    pending_items: int
    sevis_pending_items: int
    export_ready_items: int
