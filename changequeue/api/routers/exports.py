"""Batch exporter endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends

from changequeue.api.deps import get_current_user, get_export_queue
from changequeue.api.schemas.change_requests import ChangeItemResponse
from changequeue.api.schemas.exports import (
    BatchResultsIn,
    ClaimRequest,
    ClaimResponse,
    SevisBatchResponse,
)
from changequeue.core.rbac import require_permission
from changequeue.db.models import User
from changequeue.services import ExportQueue

router = APIRouter(prefix="/exports", tags=["exports"])


@router.post("/claim", response_model=ClaimResponse)
@require_permission("exports:export")
async def claim_exportable(
    payload: ClaimRequest,
    current_user: User = Depends(get_current_user),
    export_queue: ExportQueue = Depends(get_export_queue),
):
    """Claim approved SEVIS items into a new batch."""
    claimed = export_queue.claim_exportable(payload.limit, claimed_by=str(current_user.id))
    if claimed.batch is None:
        return ClaimResponse()
    return ClaimResponse(
        batch=SevisBatchResponse.model_validate(claimed.batch),
        items=[ChangeItemResponse.model_validate(i) for i in claimed.items],
    )


@router.get("/batches/{batch_id}", response_model=SevisBatchResponse)
@require_permission("exports:export")
async def get_batch(
    batch_id: UUID,
    current_user: User = Depends(get_current_user),
    export_queue: ExportQueue = Depends(get_export_queue),
):
    return SevisBatchResponse.model_validate(export_queue.get_batch(batch_id))


@router.post("/batches/{batch_id}/results", response_model=SevisBatchResponse)
@require_permission("exports:export")
async def record_export_results(
    batch_id: UUID,
    payload: BatchResultsIn,
    current_user: User = Depends(get_current_user),
    export_queue: ExportQueue = Depends(get_export_queue),
):
    """Report per-item outcomes; failed items return to the queue."""
    batch = export_queue.record_export_results(
        batch_id,
        {r.item_id: (r.success, r.message) for r in payload.results},
    )
    return SevisBatchResponse.model_validate(batch)
