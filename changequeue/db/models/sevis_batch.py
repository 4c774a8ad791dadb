"""SEVIS export batch models.

A batch groups the change items one exporter claimed together; results
record what the government system said about each of them.
"""

import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Integer, Uuid
from sqlalchemy.orm import relationship

from changequeue.core.time import utcnow
from changequeue.db.base import Base


class SevisBatch(Base):
    __tablename__ = "sevis_batches"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    batch_number = Column(String(64), unique=True, nullable=False)
    status = Column(String(30), nullable=False, default="claimed", index=True)

    number_of_items = Column(Integer, nullable=False, default=0)
    successful_records = Column(Integer, nullable=False, default=0)
    failed_records = Column(Integer, nullable=False, default=0)

    claimed_by = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime, nullable=True)

    results = relationship(
        "SevisBatchResult",
        back_populates="batch",
        order_by="SevisBatchResult.created_at",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<SevisBatch {self.batch_number} [{self.status}]>"


class SevisBatchResult(Base):
    __tablename__ = "sevis_batch_results"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    batch_id = Column(Uuid, ForeignKey("sevis_batches.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Uuid, ForeignKey("change_items.id", ondelete="CASCADE"), nullable=False, index=True)
    result = Column(String(20), nullable=False)  # success, failed
    message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    batch = relationship("SevisBatch", back_populates="results")

    def __repr__(self) -> str:
        return f"<SevisBatchResult {self.item_id} [{self.result}]>"
