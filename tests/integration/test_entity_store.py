"""Integration tests for the entity store adapter."""

from uuid import uuid4

import pytest

from changequeue.core.errors import ConsistencyError, NotFoundError
from changequeue.db.models import AppliedFieldWrite
from changequeue.services import EntityStore


@pytest.fixture
def store(db_session):
    return EntityStore(db_session)


class TestEntityStore:

    def test_create_and_read(self, store, db_session):
        entity = store.create("coordinator", {"name": "Jo Park", "email": "jo@example.org"}, display_name="Jo Park")
        db_session.commit()

        assert store.read("coordinator", entity.id) == {"name": "Jo Park", "email": "jo@example.org"}
        assert store.get("student", entity.id) is None

    def test_read_unknown(self, store):
        with pytest.raises(NotFoundError):
            store.read("student", uuid4())

    def test_read_returns_a_copy(self, store, student):
        fields = store.read("student", student.id)
        fields["phone"] = "000"
        assert store.read("student", student.id)["phone"] == "555-0100"


class TestWriteField:

    def test_write_is_idempotent_by_item(self, store, student, db_session):
        item_id = uuid4()

        assert store.write_field("student", student.id, "phone", "555-0199", item_id) is True
        db_session.commit()
        assert store.write_field("student", student.id, "phone", "555-0199", item_id) is False
        db_session.commit()

        assert store.read("student", student.id)["phone"] == "555-0199"
        assert db_session.query(AppliedFieldWrite).count() == 1

    def test_replay_does_not_overwrite_later_writes(self, store, student, db_session):
        first, second = uuid4(), uuid4()
        store.write_field("student", student.id, "phone", "555-0199", first)
        store.write_field("student", student.id, "phone", "555-0142", second)
        db_session.commit()

        store.write_field("student", student.id, "phone", "555-0199", first)

        assert store.read("student", student.id)["phone"] == "555-0142"

    def test_ledger_conflict(self, store, student):
        item_id = uuid4()
        store.write_field("student", student.id, "phone", "555-0199", item_id)

        with pytest.raises(ConsistencyError):
            store.write_field("student", student.id, "email", "ana@example.org", item_id)

    def test_none_removes_field(self, store, student):
        store.write_field("student", student.id, "school.grade", None, uuid4())
        assert "school.grade" not in store.read("student", student.id)

    def test_unknown_entity(self, store):
        with pytest.raises(NotFoundError):
            store.write_field("student", uuid4(), "phone", "555-0199", uuid4())
