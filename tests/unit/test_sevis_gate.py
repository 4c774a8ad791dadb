"""Tests for the SEVIS gate."""

from datetime import datetime
from uuid import uuid4

import pytest

from changequeue.core.errors import AuthorizationError
from changequeue.core.sevis import SevisGate
from changequeue.db.models import ChangeItem


def make_item(**overrides):
    values = dict(
        id=uuid4(),
        field_path="address.street",
        is_sevis_related=True,
        required_approval_level="elevated",
        status="pending",
        export_ready=False,
        exported_at=None,
    )
    values.update(overrides)
    return ChangeItem(**values)


@pytest.fixture
def officer():
    return uuid4()


@pytest.fixture
def gate(officer):
    return SevisGate(lambda actor_id, permission: actor_id == officer and permission == "sevis:approve")


class TestAuthorizeApproval:

    def test_sevis_item_needs_elevated_permission(self, gate):
        assert gate.required_permission(make_item()) == "sevis:approve"
        with pytest.raises(AuthorizationError) as exc_info:
            gate.authorize_approval(make_item(), uuid4())
        assert exc_info.value.required_permission == "sevis:approve"

    def test_elevated_actor_passes(self, gate, officer):
        gate.authorize_approval(make_item(), officer)

    def test_elevated_level_without_sevis(self, gate):
        item = make_item(field_path="coordinator_id", is_sevis_related=False)
        assert gate.required_permission(item) == "sevis:approve"

    def test_standard_item_needs_nothing_extra(self, gate):
        item = make_item(field_path="phone", is_sevis_related=False, required_approval_level="standard")
        assert gate.required_permission(item) is None
        gate.authorize_approval(item, None)

    def test_configurable_permission(self):
        gate = SevisGate(lambda actor_id, permission: True, elevated_permission="sevis:*")
        assert gate.required_permission(make_item()) == "sevis:*"

    def test_unknown_permission_refused(self):
        with pytest.raises(ValueError, match="Unknown elevated permission"):
            SevisGate(lambda actor_id, permission: True, elevated_permission="sevis:sign_off")


class TestExportEligibility:

    def test_mark_approved_queues_sevis_item(self):
        item = make_item(status="approved", exported_at=datetime(2026, 1, 1))
        SevisGate.mark_approved(item)
        assert item.export_ready is True
        assert item.exported_at is None

    def test_mark_approved_ignores_ordinary_item(self):
        item = make_item(is_sevis_related=False, required_approval_level="standard", status="approved")
        SevisGate.mark_approved(item)
        assert item.export_ready is False
        assert item.exported_at is None

