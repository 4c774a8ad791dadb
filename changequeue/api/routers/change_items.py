"""Per-item endpoints: detail, decision and comments."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from changequeue.api.deps import get_change_queue, get_current_user
from changequeue.api.schemas.change_requests import (
    ChangeItemResponse,
    CommentCreate,
    CommentResponse,
    DecisionIn,
)
from changequeue.core.rbac import require_permission
from changequeue.db.models import User
from changequeue.services import ChangeQueueService

router = APIRouter(prefix="/change-items", tags=["change-items"])


@router.get("/{item_id}", response_model=ChangeItemResponse)
@require_permission("change_items:read")
async def get_change_item(
    item_id: UUID,
    current_user: User = Depends(get_current_user),
    service: ChangeQueueService = Depends(get_change_queue),
):
    return ChangeItemResponse.model_validate(service.get_change_item(item_id))


@router.post("/{item_id}/decision", response_model=ChangeItemResponse)
async def decide_change_item(
    item_id: UUID,
    payload: DecisionIn,
    current_user: User = Depends(get_current_user),
    service: ChangeQueueService = Depends(get_change_queue),
):
    """Approve or reject one pending item. A rejection needs a reason."""
    item = service.decide(
        item_id,
        payload.decision,
        actor_id=current_user.id,
        reason=payload.reason,
    )
    return ChangeItemResponse.model_validate(item)


@router.post("/{item_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def add_comment(
    item_id: UUID,
    payload: CommentCreate,
    current_user: User = Depends(get_current_user),
    service: ChangeQueueService = Depends(get_change_queue),
):
    comment = service.add_comment(
        item_id,
        current_user.id,
        payload.content,
        is_internal=payload.is_internal,
    )
    return CommentResponse.model_validate(comment)
