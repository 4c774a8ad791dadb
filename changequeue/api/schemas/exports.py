"""Schemas for the batch exporter endpoints."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .change_requests import ChangeItemResponse


class ClaimRequest(BaseModel):
    limit: int = Field(100, ge=1)


class SevisBatchResponse(BaseModel):
    id: UUID
    batch_number: str
    status: str
    number_of_items: int
    successful_records: int
    failed_records: int
    claimed_by: str
    created_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClaimResponse(BaseModel):
    batch: Optional[SevisBatchResponse] = None
    items: List[ChangeItemResponse] = []


class ItemResultIn(BaseModel):
    item_id: UUID
    success: bool
    message: Optional[str] = None


class BatchResultsIn(BaseModel):
    results: List[ItemResultIn]
