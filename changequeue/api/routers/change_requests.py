"""Change request endpoints: submission, listing, detail and withdrawal."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from changequeue.api.deps import get_change_queue, get_current_user
from changequeue.api.schemas.change_requests import (
    ChangeRequestCreate,
    ChangeRequestListResponse,
    ChangeRequestResponse,
    QueueSummaryResponse,
    WithdrawIn,
)
from changequeue.core.rbac import require_permission
from changequeue.db.models import User
from changequeue.services import ChangeQueueService

router = APIRouter(prefix="/change-requests", tags=["change-requests"])


@router.get("", response_model=ChangeRequestListResponse)
@require_permission("change_requests:list")
async def list_change_requests(
    current_user: User = Depends(get_current_user),
    service: ChangeQueueService = Depends(get_change_queue),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    status: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[UUID] = None,
    priority: Optional[str] = None,
    sevis_pending: Optional[bool] = None,
):
    """List change requests, most recently updated first."""
    result = service.list_change_requests(
        status=status,
        entity_type=entity_type,
        entity_id=entity_id,
        priority=priority,
        sevis_pending=sevis_pending,
        page=page,
        per_page=per_page,
    )
    return ChangeRequestListResponse.from_page(
        result,
        [ChangeRequestResponse.model_validate(r) for r in result.items],
    )


@router.get("/summary", response_model=QueueSummaryResponse)
@require_permission("change_requests:list")
async def queue_summary(
    current_user: User = Depends(get_current_user),
    service: ChangeQueueService = Depends(get_change_queue),
):
    """Dashboard counters."""
    return QueueSummaryResponse(**service.queue_summary())


@router.get("/{request_id}", response_model=ChangeRequestResponse)
@require_permission("change_requests:read")
async def get_change_request(
    request_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ChangeQueueService = Depends(get_change_queue),
):
    return ChangeRequestResponse.model_validate(service.get_change_request(request_id))


@router.post("", response_model=ChangeRequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_change_request(
    payload: ChangeRequestCreate,
    current_user: User = Depends(get_current_user),
    service: ChangeQueueService = Depends(get_change_queue),
):
    """Propose field edits to one entity; every item starts pending."""
    request = service.submit(
        payload.entity_type,
        payload.entity_id,
        [item.model_dump() for item in payload.items],
        requested_by=current_user.id,
        priority=payload.priority,
        change_kind=payload.change_kind,
        description=payload.description,
        metadata=payload.metadata(),
    )
    return ChangeRequestResponse.model_validate(service.get_change_request(request.id))


@router.post("/{request_id}/withdraw", response_model=ChangeRequestResponse)
async def withdraw_change_request(
    request_id: UUID,
    payload: Optional[WithdrawIn] = None,
    current_user: User = Depends(get_current_user),
    service: ChangeQueueService = Depends(get_change_queue),
):
    """Withdraw a request before any of its items has been decided."""
    service.withdraw(
        request_id,
        actor_id=current_user.id,
        reason=payload.reason if payload else None,
    )
    return ChangeRequestResponse.model_validate(service.get_change_request(request_id))
