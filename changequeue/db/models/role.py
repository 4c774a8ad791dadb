import uuid
from sqlalchemy import Column, String, DateTime, JSON, Boolean, Uuid
from sqlalchemy.orm import relationship

from changequeue.core.time import utcnow
from changequeue.db.base import Base


class Role(Base):
    __tablename__ = "roles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), unique=True, nullable=False)
    permissions = Column(JSON, nullable=False, default=list)
    is_system = Column(Boolean, default=False)
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    users = relationship("User", back_populates="role")
