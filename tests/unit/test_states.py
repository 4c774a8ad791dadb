"""Tests for change item states and the request rollup."""

from itertools import permutations

import pytest

from changequeue.core.approval.states import (
    Decision,
    ItemStatus,
    RequestStatus,
    TERMINAL_STATUSES,
    can_transition,
    get_transition_rule,
    rollup_status,
)


class TestItemTransitions:
    """Test the per-item transition rules."""

    def test_pending_can_be_approved_or_rejected(self):
        assert can_transition(ItemStatus.PENDING, Decision.APPROVE)
        assert can_transition(ItemStatus.PENDING, Decision.REJECT)
        assert get_transition_rule(ItemStatus.PENDING, Decision.APPROVE).to_status == ItemStatus.APPROVED
        assert get_transition_rule(ItemStatus.PENDING, Decision.REJECT).to_status == ItemStatus.REJECTED

    def test_terminal_statuses_are_final(self):
        """Test that no decision leaves a terminal status."""
        for status in TERMINAL_STATUSES:
            for decision in Decision:
                assert not can_transition(status, decision)
                assert get_transition_rule(status, decision) is None

    def test_reject_requires_reason(self):
        assert get_transition_rule(ItemStatus.PENDING, Decision.REJECT).requires_reason
        assert not get_transition_rule(ItemStatus.PENDING, Decision.APPROVE).requires_reason

    def test_rules_name_ordinary_permissions(self):
        approve = get_transition_rule(ItemStatus.PENDING, Decision.APPROVE)
        reject = get_transition_rule(ItemStatus.PENDING, Decision.REJECT)
        assert approve.requires_permission == "change_items:approve"
        assert reject.requires_permission == "change_items:reject"


class TestRollupStatus:
    """Test the derived request status."""

    def test_all_pending(self):
        assert rollup_status(["pending", "pending"]) == RequestStatus.PENDING

    def test_rejection_with_pending_items_stays_pending(self):
        assert rollup_status(["rejected", "pending"]) == RequestStatus.PENDING

    def test_approval_with_pending_items_is_partial(self):
        assert rollup_status(["approved", "pending"]) == RequestStatus.PARTIALLY_APPROVED

    def test_all_approved(self):
        assert rollup_status(["approved", "approved"]) == RequestStatus.FULLY_APPROVED

    def test_all_rejected(self):
        assert rollup_status(["rejected", "rejected"]) == RequestStatus.REJECTED

    def test_mixed_outcomes(self):
        assert rollup_status(["approved", "rejected"]) == RequestStatus.PARTIALLY_APPROVED

    def test_single_item(self):
        assert rollup_status(["pending"]) == RequestStatus.PENDING
        assert rollup_status(["approved"]) == RequestStatus.FULLY_APPROVED
        assert rollup_status(["rejected"]) == RequestStatus.REJECTED

    def test_accepts_enum_members(self):
        assert rollup_status([ItemStatus.APPROVED]) == RequestStatus.FULLY_APPROVED

    def test_empty_request_is_invalid(self):
        with pytest.raises(ValueError):
            rollup_status([])

    def test_unknown_status_is_invalid(self):
        with pytest.raises(ValueError):
            rollup_status(["approved", "withdrawn"])

    @pytest.mark.parametrize("statuses", [
        ["approved", "rejected", "pending"],
        ["approved", "approved", "rejected"],
        ["rejected", "pending", "pending"],
    ])
    def test_order_independent(self, statuses):
        """Test that every ordering of the same outcomes rolls up alike."""
        results = {rollup_status(list(p)) for p in permutations(statuses)}
        assert len(results) == 1
