"""Change queue service.

High-level API of the approval engine: submitting change requests, deciding
individual change items, commenting, withdrawing and querying. Every public
mutation is one short transaction that commits on success and rolls back on
any error, so callers never observe a half-applied decision.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union
from uuid import UUID

from sqlalchemy import and_, exists, func, select, update
from sqlalchemy.orm import Session, selectinload

from changequeue.core.approval.machine import ChangeItemStateMachine
from changequeue.core.approval.states import (
    ChangeKind,
    Decision,
    EntityType,
    ItemStatus,
    Priority,
    RequestStatus,
    rollup_status,
)
from changequeue.core.config import get_settings
from changequeue.core.errors import (
    AlreadyResolvedError,
    AuthorizationError,
    ConsistencyError,
    FieldIssue,
    NotFoundError,
    ValidationError,
)
from changequeue.core.logger import get_logger
from changequeue.core.policy.table import PolicyTable
from changequeue.core.sevis.gate import SevisGate
from changequeue.core.time import utcnow
from changequeue.db.models import (
    ChangeComment,
    ChangeItem,
    ChangeItemHistory,
    ChangeRequest,
    User,
)
from changequeue.services.entity_store import EntityStore


logger = get_logger("approval")


@dataclass
class ProposedChange:
    """One field edit as submitted by an actor."""
    field_path: str
    new_value: Any = None
    change_kind: Optional[str] = None
    field_label: Optional[str] = None

    @classmethod
    def coerce(cls, value: Union["ProposedChange", Mapping[str, Any]]) -> "ProposedChange":
        """
        Raises:
            TypeError: If ``value`` is neither a ProposedChange nor a mapping
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, Mapping):
            raise TypeError(f"Expected a mapping, got {type(value).__name__}")
        return cls(
            field_path=value.get("field_path") or "",
            new_value=value.get("new_value"),
            change_kind=value.get("change_kind"),
            field_label=value.get("field_label"),
        )


@dataclass
class ChangeRequestPage:
    """One page of the dashboard listing."""
    items: List[ChangeRequest]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        return (self.total + self.per_page - 1) // self.per_page if self.per_page > 0 else 0


class ChangeQueueService:
    """
    Approval engine for field-level change requests.

    Handles:
    - Validating and persisting change requests (all items pending)
    - Deciding items one by one, applying approved values to the entity store
    - Keeping each request's status equal to the rollup of its items
    - Gating elevated (SEVIS) approvals and queueing them for export
    - Append-only comments and withdrawal by the requester
    """

    def __init__(
        self,
        db: Session,
        policy_table: PolicyTable,
        authorization,
        *,
        entity_store: Optional[EntityStore] = None,
        elevated_permission: Optional[str] = None,
    ):
        """
        Initialize the service.

        Args:
            db: Database session
            policy_table: Field schema and approval policy per entity type
            authorization: Provider exposing ``has_permission(actor_id, permission)``
            entity_store: Entity store adapter (defaults to one on ``db``)
            elevated_permission: Permission gating SEVIS approvals (from settings by default)
        """
        self.db = db
        self.policy_table = policy_table
        self.authorization = authorization
        self.entity_store = entity_store or EntityStore(db)
        self.gate = SevisGate(
            authorization.has_permission,
            elevated_permission=elevated_permission or get_settings().elevated_permission,
        )

    @contextmanager
    def _unit_of_work(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _require_permission(self, actor_id: Optional[UUID], permission: str) -> None:
        if not self.authorization.has_permission(actor_id, permission):
            logger.warning("Actor %s lacks %s", actor_id, permission)
            raise AuthorizationError(permission)

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    def submit(
        self,
        entity_type,
        entity_id: UUID,
        items: Iterable[Union[ProposedChange, Mapping[str, Any]]],
        *,
        requested_by: UUID,
        priority=Priority.MEDIUM,
        change_kind=ChangeKind.UPDATE,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ChangeRequest:
        """
        Create a change request with every item pending.

        The whole batch is rejected if any item is invalid; the error lists
        every offending item.

        Raises:
            AuthorizationError: If the actor may not create change requests
            ValidationError: If the entity, the request or any item is invalid
        """
        self._require_permission(requested_by, "change_requests:create")

        proposed: List[Optional[ProposedChange]] = []
        item_issues: List[FieldIssue] = []
        for index, raw in enumerate(items):
            try:
                proposed.append(ProposedChange.coerce(raw))
            except TypeError as exc:
                proposed.append(None)
                item_issues.append(FieldIssue(index, "", "invalid_item", str(exc)))
        header_issues: List[FieldIssue] = []

        try:
            entity_type = EntityType(entity_type)
        except ValueError:
            raise ValidationError(
                f"Unknown entity type {entity_type!r}",
                [FieldIssue(-1, "", "unknown_entity_type", f"{entity_type!r} is not a managed entity type")],
            )
        try:
            priority = Priority(priority)
        except ValueError:
            header_issues.append(FieldIssue(-1, "", "invalid_priority", f"{priority!r} is not a priority"))
        try:
            change_kind = ChangeKind(change_kind)
        except ValueError:
            header_issues.append(FieldIssue(-1, "", "invalid_change_kind", f"{change_kind!r} is not a change kind"))
            change_kind = ChangeKind.UPDATE

        entity = self.entity_store.get(entity_type, entity_id)
        if entity is None:
            header_issues.append(FieldIssue(
                -1, "", "unknown_entity", f"No {entity_type.value} with id {entity_id}",
            ))
        if not proposed:
            header_issues.append(FieldIssue(-1, "", "empty_batch", "A change request needs at least one item"))

        current = dict(entity.fields or {}) if entity is not None else {}
        issues = header_issues + item_issues + self._validate_items(entity_type, proposed, current, change_kind)
        if issues:
            logger.info(
                "Rejected change request for %s %s: %d issue(s)",
                entity_type.value, entity_id, len(issues),
            )
            raise ValidationError(f"Change request has {len(issues)} invalid item(s)", issues)

        with self._unit_of_work():
            now = utcnow()
            request = ChangeRequest(
                entity_type=entity_type.value,
                entity_id=entity_id,
                record_name=entity.display_name,
                change_kind=change_kind.value,
                priority=priority.value,
                description=description,
                requested_by=requested_by,
                extra_data=dict(metadata or {}),
                created_at=now,
                updated_at=now,
            )
            for position, change in enumerate(proposed):
                policy = self.policy_table.lookup(entity_type, change.field_path)
                request.items.append(ChangeItem(
                    position=position,
                    field_path=change.field_path,
                    field_label=change.field_label or policy.label,
                    previous_value=current.get(change.field_path),
                    new_value=change.new_value,
                    change_kind=(change.change_kind or change_kind.value),
                    is_sevis_related=policy.is_sevis_related,
                    required_approval_level=policy.required_approval_level.value,
                    status=ItemStatus.PENDING.value,
                    requested_by=requested_by,
                    requested_at=now,
                ))
            self.db.add(request)
            self.db.flush()
            self._refresh_rollup(request)

        logger.info(
            "Submitted change request %s for %s %s with %d item(s)",
            request.id, entity_type.value, entity_id, len(request.items),
        )
        return request

    def _validate_items(
        self,
        entity_type: EntityType,
        proposed: List[Optional[ProposedChange]],
        current: Dict[str, Any],
        default_kind: ChangeKind,
    ) -> List[FieldIssue]:
        """Collect every problem in the batch rather than stopping at the first."""
        issues: List[FieldIssue] = []

        positions: Dict[str, List[int]] = {}
        for index, change in enumerate(proposed):
            if change is None:
                continue
            positions.setdefault(change.field_path, []).append(index)

        for index, change in enumerate(proposed):
            if change is None:
                continue
            path = change.field_path

            others = [i for i in positions.get(path, []) if i != index]
            if path and others:
                issues.append(FieldIssue(
                    index, path, "duplicate_field",
                    f"{path} is also changed by item(s) {', '.join(map(str, others))}",
                ))

            policy = self.policy_table.lookup(entity_type, path) if path else None
            if policy is None:
                issues.append(FieldIssue(
                    index, path, "unknown_field",
                    f"{path or '<empty>'} is not a {entity_type.value} field",
                ))
                continue

            try:
                kind = ChangeKind(change.change_kind or default_kind)
            except ValueError:
                issues.append(FieldIssue(
                    index, path, "invalid_change_kind", f"{change.change_kind!r} is not a change kind",
                ))
                continue

            present = current.get(path) is not None

            if kind is ChangeKind.DELETE:
                if change.new_value is not None:
                    issues.append(FieldIssue(index, path, "delete_with_value", "A delete carries no new value"))
                if policy.required:
                    issues.append(FieldIssue(index, path, "required_field", f"{policy.label} cannot be removed"))
                elif not present:
                    issues.append(FieldIssue(index, path, "field_not_set", f"{policy.label} has no value to remove"))
                continue

            if change.new_value is None:
                issues.append(FieldIssue(index, path, "missing_value", f"{kind.value} needs a new value"))
                continue

            problem = policy.check_value(change.new_value)
            if problem:
                issues.append(FieldIssue(index, path, "type_mismatch", f"{policy.label}: {problem}"))
                continue

            if kind is ChangeKind.CREATE and present:
                issues.append(FieldIssue(index, path, "field_already_set", f"{policy.label} already has a value"))
            elif kind is ChangeKind.UPDATE and present and current[path] == change.new_value:
                issues.append(FieldIssue(index, path, "no_change", f"{policy.label} already has this value"))

        return issues

    # ------------------------------------------------------------------
    # Decide
    # ------------------------------------------------------------------

    def decide(
        self,
        item_id: UUID,
        decision,
        *,
        actor_id: UUID,
        reason: Optional[str] = None,
    ) -> ChangeItem:
        """
        Approve or reject one pending change item.

        On approval the item status, the entity field write and the parent
        rollup are committed together or not at all.

        Raises:
            NotFoundError: If the item does not exist
            AlreadyResolvedError: If the item was already decided or its request withdrawn
            AuthorizationError: If the actor lacks the (elevated) permission
            ValidationError: If a rejection has no reason
            ConsistencyError: If the item's parent request is missing
        """
        try:
            decision = Decision(decision)
        except ValueError:
            raise ValidationError(
                f"Unknown decision {decision!r}",
                [FieldIssue(0, "", "invalid_decision", "Decision must be approve or reject")],
            )

        with self._unit_of_work():
            item = self._load_item(item_id, for_update=True)
            request = self._load_parent(item)

            if request.withdrawn_at is not None:
                raise AlreadyResolvedError(item.id, RequestStatus.CANCELLED.value)

            machine = ChangeItemStateMachine(
                item.id,
                ItemStatus(item.status),
                has_permission=lambda permission: self.authorization.has_permission(actor_id, permission),
                field_path=item.field_path,
            )
            if machine.is_terminal:
                raise AlreadyResolvedError(item.id, item.status)
            if decision is Decision.APPROVE:
                self.gate.authorize_approval(item, actor_id)

            record = machine.decide(decision, actor_id=actor_id, reason=reason)
            now = record["timestamp"]

            values = {
                "status": record["to_status"],
                "resolved_by": actor_id,
                "resolved_at": now,
            }
            if decision is Decision.REJECT:
                values["rejection_reason"] = record["reason"]

            result = self.db.execute(
                update(ChangeItem)
                .where(and_(
                    ChangeItem.id == item.id,
                    ChangeItem.status == ItemStatus.PENDING.value,
                ))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                logger.warning("Lost decision race on item %s", item.id)
                raise AlreadyResolvedError(item.id, "resolved")
            self.db.refresh(item)

            if decision is Decision.APPROVE:
                self.entity_store.write_field(
                    request.entity_type,
                    request.entity_id,
                    item.field_path,
                    item.new_value,
                    item.id,
                )
                self.gate.mark_approved(item)

            self.db.add(ChangeItemHistory(
                item_id=item.id,
                from_status=record["from_status"],
                to_status=record["to_status"],
                decision=record["decision"],
                actor_id=actor_id,
                reason=record["reason"],
                extra_data={"request_id": str(request.id)},
                created_at=now,
            ))
            self._refresh_rollup(request)

        logger.info(
            "Item %s (%s) %s by %s; request %s is %s",
            item.id, item.field_path, item.status, actor_id, request.id, request.status,
        )
        return item

    def _load_item(self, item_id: UUID, *, for_update: bool = False) -> ChangeItem:
        query = select(ChangeItem).where(ChangeItem.id == item_id)
        if for_update:
            query = query.with_for_update()
        item = self.db.execute(
            query.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise NotFoundError("Change item", item_id)
        return item

    def _load_parent(self, item: ChangeItem) -> ChangeRequest:
        request = self.db.execute(
            select(ChangeRequest)
            .where(ChangeRequest.id == item.request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if request is None:
            logger.error("Change item %s references missing request %s", item.id, item.request_id)
            raise ConsistencyError(
                f"Change item {item.id} references missing change request {item.request_id}"
            )
        return request

    def _refresh_rollup(self, request: ChangeRequest) -> RequestStatus:
        """Recompute the request status from the stored item statuses."""
        self.db.flush()
        statuses = self.db.execute(
            select(ChangeItem.status).where(ChangeItem.request_id == request.id)
        ).scalars().all()
        if not statuses:
            logger.error("Change request %s has no items", request.id)
            raise ConsistencyError(f"Change request {request.id} has no items")

        if request.withdrawn_at is not None:
            status = RequestStatus.CANCELLED
        else:
            status = rollup_status(statuses)
        request.status = status.value
        request.updated_at = utcnow()
        self.db.flush()
        return status

    # ------------------------------------------------------------------
    # Comments and withdrawal
    # ------------------------------------------------------------------

    def add_comment(
        self,
        item_id: UUID,
        author_id: UUID,
        content: str,
        *,
        is_internal: bool = False,
    ) -> ChangeComment:
        """
        Append a comment to an item, whatever its status.

        Raises:
            ValidationError: If the content is blank
            AuthorizationError: If the author may not comment
            NotFoundError: If the item does not exist
        """
        content = (content or "").strip()
        if not content:
            raise ValidationError(
                "Comment content is required",
                [FieldIssue(0, "", "empty_comment", "Comment content cannot be blank")],
            )
        self._require_permission(author_id, "change_items:comment")

        with self._unit_of_work():
            item = self._load_item(item_id)
            request = self._load_parent(item)
            author = self.db.get(User, author_id)

            comment = ChangeComment(
                item_id=item.id,
                author_id=author_id,
                author_name=(author.name or author.email) if author else "Unknown",
                content=content,
                is_internal=is_internal,
                created_at=utcnow(),
            )
            self.db.add(comment)
            request.updated_at = comment.created_at
            self.db.flush()

        return comment

    def withdraw(
        self,
        request_id: UUID,
        *,
        actor_id: UUID,
        reason: Optional[str] = None,
    ) -> ChangeRequest:
        """
        Withdraw a request whose items are all still pending.

        Raises:
            NotFoundError: If the request does not exist
            AuthorizationError: If the actor is not the requester
            AlreadyResolvedError: If the request was withdrawn or any item decided
        """
        with self._unit_of_work():
            request = self.db.execute(
                select(ChangeRequest)
                .where(ChangeRequest.id == request_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if request is None:
                raise NotFoundError("Change request", request_id)

            if request.requested_by != actor_id:
                raise AuthorizationError(
                    "change_requests:withdraw",
                    "Only the requester can withdraw a change request",
                )
            self._require_permission(actor_id, "change_requests:withdraw")

            if request.withdrawn_at is not None:
                raise AlreadyResolvedError(request.id, RequestStatus.CANCELLED.value, kind="Change request")

            statuses = self.db.execute(
                select(ChangeItem.status).where(ChangeItem.request_id == request.id)
            ).scalars().all()
            if any(s != ItemStatus.PENDING.value for s in statuses):
                raise AlreadyResolvedError(
                    request.id, rollup_status(statuses).value, kind="Change request",
                )

            request.withdrawn_at = utcnow()
            request.withdrawn_by = actor_id
            if reason and reason.strip():
                request.extra_data = {**(request.extra_data or {}), "withdrawal_reason": reason.strip()}
            self._refresh_rollup(request)

        logger.info("Change request %s withdrawn by %s", request.id, actor_id)
        return request

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_change_request(self, request_id: UUID) -> ChangeRequest:
        request = self.db.execute(
            select(ChangeRequest)
            .where(ChangeRequest.id == request_id)
            .options(selectinload(ChangeRequest.items).selectinload(ChangeItem.comments))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if request is None:
            raise NotFoundError("Change request", request_id)
        return request

    def get_change_item(self, item_id: UUID) -> ChangeItem:
        item = self.db.execute(
            select(ChangeItem)
            .where(ChangeItem.id == item_id)
            .options(selectinload(ChangeItem.comments))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise NotFoundError("Change item", item_id)
        return item

    def list_change_requests(
        self,
        *,
        status: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[UUID] = None,
        priority: Optional[str] = None,
        sevis_pending: Optional[bool] = None,
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> ChangeRequestPage:
        """
        List change requests, most recently updated first.

        Raises:
            ValidationError: If a filter value or the paging is invalid
        """
        settings = get_settings()
        per_page = per_page or settings.default_page_size
        issues = []
        if page < 1:
            issues.append(FieldIssue(-1, "page", "invalid_page", "page must be >= 1"))
        if not 1 <= per_page <= settings.max_page_size:
            issues.append(FieldIssue(
                -1, "per_page", "invalid_page_size", f"per_page must be between 1 and {settings.max_page_size}",
            ))
        for name, value, enum in (
            ("status", status, RequestStatus),
            ("entity_type", entity_type, EntityType),
            ("priority", priority, Priority),
        ):
            if value is not None and value not in {e.value for e in enum}:
                issues.append(FieldIssue(-1, name, "invalid_filter", f"{value!r} is not a valid {name}"))
        if issues:
            raise ValidationError("Invalid change request filter", issues)

        query = select(ChangeRequest)
        if status:
            query = query.where(ChangeRequest.status == status)
        if entity_type:
            query = query.where(ChangeRequest.entity_type == entity_type)
        if entity_id:
            query = query.where(ChangeRequest.entity_id == entity_id)
        if priority:
            query = query.where(ChangeRequest.priority == priority)
        if sevis_pending is not None:
            pending_sevis = exists().where(and_(
                ChangeItem.request_id == ChangeRequest.id,
                ChangeItem.is_sevis_related.is_(True),
                ChangeItem.status == ItemStatus.PENDING.value,
            ))
            query = query.where(pending_sevis if sevis_pending else ~pending_sevis)

        total = self.db.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()
        rows = self.db.execute(
            query.options(selectinload(ChangeRequest.items).selectinload(ChangeItem.comments))
            .order_by(ChangeRequest.updated_at.desc(), ChangeRequest.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        ).scalars().all()

        return ChangeRequestPage(items=list(rows), total=total, page=page, per_page=per_page)

    def queue_summary(self) -> Dict[str, int]:
        """Counters for the dashboard header."""
        def count(*conditions) -> int:
            return self.db.execute(
                select(func.count()).select_from(ChangeItem).where(
                    ChangeItem.request.has(ChangeRequest.withdrawn_at.is_(None)),
                    *conditions,
                )
            ).scalar_one()

        # Partially approved requests may still hold pending items
        pending_requests = self.db.execute(
            select(func.count()).select_from(ChangeRequest)
            .where(
                ChangeRequest.withdrawn_at.is_(None),
                ChangeRequest.items.any(ChangeItem.status == ItemStatus.PENDING.value),
            )
        ).scalar_one()

        return {
            "pending_requests": pending_requests,
            "pending_items": count(ChangeItem.status == ItemStatus.PENDING.value),
            "sevis_pending_items": count(
                ChangeItem.status == ItemStatus.PENDING.value,
                ChangeItem.is_sevis_related.is_(True),
            ),
            "export_ready_items": count(
                ChangeItem.export_ready.is_(True),
                ChangeItem.exported_at.is_(None),
            ),
        }
