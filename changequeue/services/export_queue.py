"""SEVIS export queue.

The batch exporter claims approved SEVIS-related items, submits them to the
government system and reports a result per item. Claims are conditional
updates on ``exported_at IS NULL``, so concurrent exporters never receive the
same item twice.
"""

from contextlib import contextmanager
import uuid
from dataclasses import dataclass, field
from typing import Iterator, List, Mapping, Optional, Tuple, Union
from uuid import UUID

from sqlalchemy import and_, select, update
from sqlalchemy.orm import Session

from changequeue.core.approval.states import ItemStatus
from changequeue.core.config import get_settings
from changequeue.core.errors import (
    AlreadyResolvedError,
    FieldIssue,
    NotFoundError,
    ValidationError,
)
from changequeue.core.logger import get_logger
from changequeue.core.time import utcnow
from changequeue.db.models import ChangeItem, SevisBatch, SevisBatchResult


logger = get_logger("export")


BATCH_CLAIMED = "claimed"
BATCH_COMPLETED = "completed"
BATCH_PARTIALLY_FAILED = "partially_failed"
BATCH_FAILED = "failed"


@dataclass
class ClaimedBatch:
    """Items handed to one exporter, grouped under a SEVIS batch."""
    batch: Optional[SevisBatch]
    items: List[ChangeItem] = field(default_factory=list)


ExportOutcome = Union[bool, Tuple[bool, Optional[str]]]


class ExportQueue:
    """Claim surface of the batch exporter."""

    def __init__(self, db: Session, *, max_claim: Optional[int] = None):
        self.db = db
        self.max_claim = max_claim or get_settings().export_claim_max

    @contextmanager
    def _unit_of_work(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def claim_exportable(self, limit: int, *, claimed_by: str) -> ClaimedBatch:
        """
        Claim up to ``limit`` export-ready items into a new SEVIS batch.

        Returns an empty ``ClaimedBatch`` (no batch) when nothing is ready.

        Raises:
            ValidationError: If ``limit`` is out of range or ``claimed_by`` is blank
        """
        issues = []
        if not isinstance(limit, int) or isinstance(limit, bool) or not 1 <= limit <= self.max_claim:
            issues.append(FieldIssue(-1, "limit", "invalid_limit", f"limit must be between 1 and {self.max_claim}"))
        if not claimed_by or not claimed_by.strip():
            issues.append(FieldIssue(-1, "claimed_by", "missing_claimant", "claimed_by is required"))
        if issues:
            raise ValidationError("Invalid export claim", issues)

        with self._unit_of_work():
            candidates = self.db.execute(
                select(ChangeItem.id)
                .where(and_(
                    ChangeItem.status == ItemStatus.APPROVED.value,
                    ChangeItem.is_sevis_related.is_(True),
                    ChangeItem.export_ready.is_(True),
                    ChangeItem.exported_at.is_(None),
                ))
                .order_by(ChangeItem.resolved_at, ChangeItem.id)
                .limit(limit)
                .with_for_update(skip_locked=True)
            ).scalars().all()
            if not candidates:
                return ClaimedBatch(batch=None)

            now = utcnow()
            batch_id = uuid.uuid4()
            batch = SevisBatch(
                id=batch_id,
                batch_number=self._batch_number(batch_id, now),
                status=BATCH_CLAIMED,
                claimed_by=claimed_by.strip(),
                created_at=now,
            )
            self.db.add(batch)
            self.db.flush()

            claimed: List[UUID] = []
            for item_id in candidates:
                result = self.db.execute(
                    update(ChangeItem)
                    .where(and_(ChangeItem.id == item_id, ChangeItem.exported_at.is_(None)))
                    .values(exported_at=now, sevis_batch_id=batch.id)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    claimed.append(item_id)

            if not claimed:
                self.db.delete(batch)
                logger.info("Claim by %s lost every candidate to another exporter", claimed_by)
                return ClaimedBatch(batch=None)

            batch.number_of_items = len(claimed)
            items = self.db.execute(
                select(ChangeItem)
                .where(ChangeItem.id.in_(claimed))
                .order_by(ChangeItem.resolved_at, ChangeItem.id)
                .execution_options(populate_existing=True)
            ).scalars().all()

        logger.info("Batch %s claimed %d item(s) for %s", batch.batch_number, len(items), claimed_by)
        return ClaimedBatch(batch=batch, items=list(items))

    def record_export_results(
        self,
        batch_id: UUID,
        results: Mapping[UUID, ExportOutcome],
    ) -> SevisBatch:
        """
        Record the outcome of every item of a claimed batch.

        Failed items are released (``exported_at`` cleared) so the next claim
        retries them.

        Raises:
            NotFoundError: If the batch does not exist
            AlreadyResolvedError: If results were already recorded for it
            ValidationError: If results are missing or name items outside the batch
        """
        with self._unit_of_work():
            batch = self.db.execute(
                select(SevisBatch)
                .where(SevisBatch.id == batch_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if batch is None:
                raise NotFoundError("SEVIS batch", batch_id)
            if batch.status != BATCH_CLAIMED:
                raise AlreadyResolvedError(batch.id, batch.status, kind="SEVIS batch")

            items = self.db.execute(
                select(ChangeItem)
                .where(ChangeItem.sevis_batch_id == batch.id)
                .order_by(ChangeItem.resolved_at, ChangeItem.id)
                .execution_options(populate_existing=True)
            ).scalars().all()
            by_id = {item.id: item for item in items}

            issues = []
            for index, item in enumerate(items):
                if item.id not in results:
                    issues.append(FieldIssue(index, item.field_path, "missing_result", f"No result for item {item.id}"))
            for item_id in results:
                if item_id not in by_id:
                    issues.append(FieldIssue(-1, "", "unknown_item", f"Item {item_id} is not part of this batch"))
            if issues:
                raise ValidationError("Incomplete export results", issues)

            now = utcnow()
            succeeded = failed = 0
            for item in items:
                ok, message = self._unpack(results[item.id])
                self.db.add(SevisBatchResult(
                    batch_id=batch.id,
                    item_id=item.id,
                    result="success" if ok else "failed",
                    message=message,
                    created_at=now,
                ))
                if ok:
                    succeeded += 1
                else:
                    failed += 1
                    item.exported_at = None
                    item.sevis_batch_id = None

            batch.successful_records = succeeded
            batch.failed_records = failed
            if failed == 0:
                batch.status = BATCH_COMPLETED
            elif succeeded == 0:
                batch.status = BATCH_FAILED
            else:
                batch.status = BATCH_PARTIALLY_FAILED
            batch.completed_at = now
            self.db.flush()

        if failed:
            logger.warning(
                "Batch %s: %d of %d item(s) failed and were released",
                batch.batch_number, failed, len(items),
            )
        else:
            logger.info("Batch %s completed with %d item(s)", batch.batch_number, succeeded)
        return batch

    def get_batch(self, batch_id: UUID) -> SevisBatch:
        batch = self.db.get(SevisBatch, batch_id)
        if batch is None:
            raise NotFoundError("SEVIS batch", batch_id)
        return batch

    @staticmethod
    def _unpack(outcome: ExportOutcome) -> Tuple[bool, Optional[str]]:
        if isinstance(outcome, tuple):
            ok, message = outcome
            return bool(ok), message
        return bool(outcome), None

    @staticmethod
    def _batch_number(batch_id: UUID, now) -> str:
        return f"SB-{now:%Y%m%d}-{batch_id.hex[:8].upper()}"
