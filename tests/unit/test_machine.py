"""Tests for the change item state machine."""

from uuid import uuid4

import pytest

from changequeue.core.approval.machine import ChangeItemStateMachine
from changequeue.core.approval.states import Decision, ItemStatus
from changequeue.core.errors import AlreadyResolvedError, AuthorizationError, ValidationError


def allow(*granted):
    return lambda permission: permission in granted


@pytest.fixture
def reviewer_machine():
    return ChangeItemStateMachine(
        uuid4(),
        ItemStatus.PENDING,
        has_permission=allow("change_items:approve", "change_items:reject"),
        field_path="phone",
    )


class TestDecide:
    """Test decisions on pending items."""

    def test_approve(self, reviewer_machine):
        actor = uuid4()
        record = reviewer_machine.decide(Decision.APPROVE, actor_id=actor)

        assert reviewer_machine.status == ItemStatus.APPROVED
        assert reviewer_machine.is_terminal
        assert record["from_status"] == "pending"
        assert record["to_status"] == "approved"
        assert record["decision"] == "approve"
        assert record["actor_id"] == actor
        assert record["reason"] is None

    def test_reject_with_reason(self, reviewer_machine):
        record = reviewer_machine.decide("reject", actor_id=uuid4(), reason="  Typo in number  ")

        assert reviewer_machine.status == ItemStatus.REJECTED
        assert record["reason"] == "Typo in number"

    @pytest.mark.parametrize("reason", [None, "", "   ", "\t\n"])
    def test_reject_without_reason_is_refused(self, reviewer_machine, reason):
        with pytest.raises(ValidationError) as exc_info:
            reviewer_machine.decide(Decision.REJECT, actor_id=uuid4(), reason=reason)

        assert exc_info.value.issues[0].rule == "reason_required"
        assert exc_info.value.issues[0].field_path == "phone"
        assert reviewer_machine.status == ItemStatus.PENDING

    def test_missing_permission(self):
        machine = ChangeItemStateMachine(uuid4(), ItemStatus.PENDING, has_permission=allow())

        with pytest.raises(AuthorizationError) as exc_info:
            machine.decide(Decision.APPROVE, actor_id=uuid4())

        assert exc_info.value.required_permission == "change_items:approve"
        assert machine.status == ItemStatus.PENDING

    def test_second_decision_is_refused(self, reviewer_machine):
        reviewer_machine.decide(Decision.APPROVE, actor_id=uuid4())

        with pytest.raises(AlreadyResolvedError):
            reviewer_machine.decide(Decision.APPROVE, actor_id=uuid4())
        with pytest.raises(AlreadyResolvedError):
            reviewer_machine.decide(Decision.REJECT, actor_id=uuid4(), reason="late")

    def test_terminal_item_from_storage(self):
        machine = ChangeItemStateMachine(uuid4(), "rejected", has_permission=allow("change_items:approve"))

        assert machine.is_terminal
        with pytest.raises(AlreadyResolvedError):
            machine.decide(Decision.APPROVE)


class TestTransitionRecord:

    def test_approve_refused_reject_allowed(self):
        machine = ChangeItemStateMachine(uuid4(), ItemStatus.PENDING, has_permission=allow("change_items:reject"))

        with pytest.raises(AuthorizationError):
            machine.decide(Decision.APPROVE, actor_id=uuid4())
        record = machine.decide(Decision.REJECT, actor_id=uuid4(), reason="Duplicate")

        assert record["to_status"] == "rejected"

    def test_record_carries_metadata(self, reviewer_machine):
        record = reviewer_machine.decide(Decision.APPROVE, actor_id=uuid4(), metadata={"source": "dashboard"})

        assert record["metadata"] == {"source": "dashboard"}
        assert record["item_id"] == reviewer_machine.item_id
