"""Entity store adapter.

Reads managed entities and applies single-field writes on behalf of approved
change items. Writes are idempotent by item id: the ledger row and the field
write land in the caller's transaction, so a replayed approval finds the
ledger row and does nothing.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from changequeue.core.approval.states import EntityType
from changequeue.core.errors import ConsistencyError, NotFoundError
from changequeue.core.logger import get_logger
from changequeue.core.time import utcnow
from changequeue.db.models import AppliedFieldWrite, ManagedEntity


logger = get_logger("entity_store")


class EntityStore:
    """SQLAlchemy-backed store of students, host families and coordinators."""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        entity_type,
        fields: Optional[Dict[str, Any]] = None,
        *,
        display_name: Optional[str] = None,
    ) -> ManagedEntity:
        entity = ManagedEntity(
            entity_type=EntityType(entity_type).value,
            display_name=display_name,
            fields=dict(fields or {}),
        )
        self.db.add(entity)
        self.db.flush()
        return entity

    def get(self, entity_type, entity_id: UUID, *, for_update: bool = False) -> Optional[ManagedEntity]:
        """Get an entity of the given type, or None."""
        query = (
            select(ManagedEntity)
            .where(
                ManagedEntity.id == entity_id,
                ManagedEntity.entity_type == EntityType(entity_type).value,
            )
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        return self.db.execute(query).scalar_one_or_none()

    def read(self, entity_type, entity_id: UUID) -> Dict[str, Any]:
        """
        Get a copy of an entity's fields.

        Raises:
            NotFoundError: If the entity does not exist
        """
        entity = self.get(entity_type, entity_id)
        if entity is None:
            raise NotFoundError(EntityType(entity_type).value, entity_id)
        return dict(entity.fields or {})

    def write_field(
        self,
        entity_type,
        entity_id: UUID,
        field_path: str,
        value: Any,
        item_id: UUID,
    ) -> bool:
        """
        Write one field on behalf of a change item.

        A value of None removes the field. Does not commit.

        Returns:
            True if the write was applied now, False if ``item_id`` was already applied

        Raises:
            NotFoundError: If the entity does not exist
            ConsistencyError: If the ledger holds a different write for ``item_id``
        """
        applied = self.db.get(AppliedFieldWrite, item_id)
        if applied is not None:
            if applied.entity_id != entity_id or applied.field_path != field_path:
                logger.error(
                    "Ledger entry for item %s targets %s.%s, not %s.%s",
                    item_id, applied.entity_id, applied.field_path, entity_id, field_path,
                )
                raise ConsistencyError(
                    f"Item {item_id} was already applied to a different field"
                )
            logger.info("Write for item %s already applied, skipping", item_id)
            return False

        entity = self.get(entity_type, entity_id, for_update=True)
        if entity is None:
            raise NotFoundError(EntityType(entity_type).value, entity_id)

        fields = dict(entity.fields or {})
        if value is None:
            fields.pop(field_path, None)
        else:
            fields[field_path] = value
        # Reassign so the JSON column is flagged dirty
        entity.fields = fields
        entity.updated_at = utcnow()

        self.db.add(AppliedFieldWrite(
            item_id=item_id,
            entity_id=entity_id,
            field_path=field_path,
            value=value,
        ))
        self.db.flush()
        return True
