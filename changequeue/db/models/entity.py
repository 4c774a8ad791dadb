"""Managed entity models.

Students, host families and coordinators whose fields change only through
approved change items.
"""

import uuid
from sqlalchemy import Column, String, DateTime, JSON, ForeignKey, Uuid
from sqlalchemy.orm import relationship

from changequeue.core.time import utcnow
from changequeue.db.base import Base


class ManagedEntity(Base):
    """
    A student, host family or coordinator record.

    ``fields`` maps field paths (as declared in the policy table) to values.
    """
    __tablename__ = "managed_entities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    entity_type = Column(String(50), nullable=False, index=True)  # student, host_family, coordinator
    display_name = Column(String(255), nullable=True)
    fields = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    applied_writes = relationship("AppliedFieldWrite", back_populates="entity")

    def __repr__(self) -> str:
        return f"<ManagedEntity {self.entity_type}:{self.id}>"


class AppliedFieldWrite(Base):
    """
    Ledger of entity writes performed on behalf of approved change items.

    Keyed by item id so replaying an approval never applies it twice.
    """
    __tablename__ = "applied_field_writes"

    item_id = Column(Uuid, primary_key=True)
    entity_id = Column(Uuid, ForeignKey("managed_entities.id"), nullable=False, index=True)
    field_path = Column(String(255), nullable=False)
    value = Column(JSON, nullable=True)
    applied_at = Column(DateTime, default=utcnow)

    entity = relationship("ManagedEntity", back_populates="applied_writes")

    def __repr__(self) -> str:
        return f"<AppliedFieldWrite {self.field_path} by item {self.item_id}>"
