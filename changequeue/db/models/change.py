"""Change queue database models.

Stores change requests, their per-field change items, comments and the
item state transition history.
"""

import uuid
from sqlalchemy import (
    Column, String, DateTime, JSON, ForeignKey, Text, Boolean, Integer, Uuid,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from changequeue.core.time import utcnow
from changequeue.db.base import Base


class ChangeRequest(Base):
    """
    A batch of proposed field edits against one managed entity.

    ``status`` is written only by the rollup recomputation in the approval
    service; it is never set directly.
    """
    __tablename__ = "change_requests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Target entity
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(Uuid, ForeignKey("managed_entities.id"), nullable=False, index=True)
    record_name = Column(String(255), nullable=True)

    change_kind = Column(String(20), nullable=False, default="update")  # create, update, delete
    priority = Column(String(20), nullable=False, default="medium", index=True)
    description = Column(Text, nullable=True)

    # Derived rollup status
    status = Column(String(50), nullable=False, default="pending", index=True)

    requested_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Withdrawal tracking
    withdrawn_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    withdrawn_at = Column(DateTime, nullable=True)

    # Additional data (source, urgency_reason)
    extra_data = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, index=True)

    # Relationships
    entity = relationship("ManagedEntity")
    requester = relationship("User", foreign_keys=[requested_by])
    items = relationship(
        "ChangeItem",
        back_populates="request",
        order_by="ChangeItem.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<ChangeRequest {self.entity_type}:{self.entity_id} [{self.status}]>"


class ChangeItem(Base):
    """
    One proposed edit to one field, reviewed independently of its siblings.
    """
    __tablename__ = "change_items"
    __table_args__ = (
        UniqueConstraint("request_id", "field_path", name="uq_change_items_request_field"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    request_id = Column(Uuid, ForeignKey("change_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    # Proposed mutation
    field_path = Column(String(255), nullable=False)
    field_label = Column(String(255), nullable=False)
    previous_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    change_kind = Column(String(20), nullable=False, default="update")

    # Fixed at creation from the policy table
    is_sevis_related = Column(Boolean, nullable=False, default=False, index=True)
    required_approval_level = Column(String(20), nullable=False, default="standard")

    # Review state
    status = Column(String(20), nullable=False, default="pending", index=True)
    requested_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    requested_at = Column(DateTime, default=utcnow)
    resolved_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # Export queue
    export_ready = Column(Boolean, nullable=False, default=False, index=True)
    exported_at = Column(DateTime, nullable=True, index=True)
    sevis_batch_id = Column(Uuid, ForeignKey("sevis_batches.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    request = relationship("ChangeRequest", back_populates="items")
    resolver = relationship("User", foreign_keys=[resolved_by])
    comments = relationship(
        "ChangeComment",
        back_populates="item",
        order_by="ChangeComment.created_at",
        cascade="all, delete-orphan",
    )
    history = relationship(
        "ChangeItemHistory",
        back_populates="item",
        order_by="ChangeItemHistory.created_at",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<ChangeItem {self.field_path} [{self.status}]>"


class ChangeComment(Base):
    """An append-only comment on a change item."""
    __tablename__ = "change_comments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    item_id = Column(Uuid, ForeignKey("change_items.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    author_name = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    is_internal = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, index=True)

    item = relationship("ChangeItem", back_populates="comments")

    def __repr__(self) -> str:
        return f"<ChangeComment by {self.author_name}>"


class ChangeItemHistory(Base):
    """
    Records all state transitions for change items.

    Provides a complete audit trail of the review workflow.
    """
    __tablename__ = "change_item_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    item_id = Column(Uuid, ForeignKey("change_items.id", ondelete="CASCADE"), nullable=False, index=True)

    # Transition details
    from_status = Column(String(20), nullable=False)
    to_status = Column(String(20), nullable=False)
    decision = Column(String(20), nullable=False)

    # Actor
    actor_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Required for rejections
    reason = Column(Text, nullable=True)

    extra_data = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=utcnow, index=True)

    item = relationship("ChangeItem", back_populates="history")

    def __repr__(self) -> str:
        return f"<ChangeItemHistory {self.from_status} -> {self.to_status}>"
