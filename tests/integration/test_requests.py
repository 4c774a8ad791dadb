"""Integration tests for withdrawal, comments and dashboard queries."""

import time
from uuid import uuid4

import pytest

from changequeue.core.errors import (
    AlreadyResolvedError,
    AuthorizationError,
    NotFoundError,
    ValidationError,
)

from tests.factories import create_entity, create_user, student_fields


def submit_phone(service, entity, requester, **kwargs):
    return service.submit(
        "student", entity.id, [{"field_path": "phone", "new_value": "555-0199"}],
        requested_by=requester.id, **kwargs,
    )


class TestWithdraw:

    def test_requester_withdraws_pending_request(self, service, student, requester, reviewer):
        request = submit_phone(service, student, requester)

        withdrawn = service.withdraw(request.id, actor_id=requester.id, reason="Submitted by mistake")

        assert withdrawn.status == "cancelled"
        assert withdrawn.withdrawn_by == requester.id
        assert withdrawn.withdrawn_at is not None
        assert withdrawn.extra_data["withdrawal_reason"] == "Submitted by mistake"

        with pytest.raises(AlreadyResolvedError):
            service.decide(request.items[0].id, "approve", actor_id=reviewer.id)
        assert service.get_change_item(request.items[0].id).status == "pending"

    def test_only_the_requester(self, service, student, requester, admin):
        request = submit_phone(service, student, requester)

        with pytest.raises(AuthorizationError):
            service.withdraw(request.id, actor_id=admin.id)
        assert service.get_change_request(request.id).status == "pending"

    def test_refused_once_an_item_is_decided(self, service, student, requester, reviewer):
        request = service.submit(
            "student",
            student.id,
            [
                {"field_path": "phone", "new_value": "555-0199"},
                {"field_path": "email", "new_value": "ana@school.example.org"},
            ],
            requested_by=requester.id,
        )
        service.decide(request.items[0].id, "approve", actor_id=reviewer.id)

        with pytest.raises(AlreadyResolvedError):
            service.withdraw(request.id, actor_id=requester.id)
        assert service.get_change_request(request.id).withdrawn_at is None

    def test_twice(self, service, student, requester):
        request = submit_phone(service, student, requester)
        service.withdraw(request.id, actor_id=requester.id)

        with pytest.raises(AlreadyResolvedError):
            service.withdraw(request.id, actor_id=requester.id)

    def test_unknown_request(self, service, requester):
        with pytest.raises(NotFoundError):
            service.withdraw(uuid4(), actor_id=requester.id)


class TestComments:

    def test_append_comment(self, service, student, requester, reviewer):
        request = submit_phone(service, student, requester)
        item_id = request.items[0].id

        comment = service.add_comment(item_id, reviewer.id, "  Confirmed with host family  ", is_internal=True)

        assert comment.content == "Confirmed with host family"
        assert comment.author_name == "Riley Reviewer"
        assert comment.is_internal is True
        assert [c.id for c in service.get_change_item(item_id).comments] == [comment.id]

    def test_allowed_on_resolved_item(self, service, student, requester, reviewer):
        request = submit_phone(service, student, requester)
        item_id = request.items[0].id
        service.decide(item_id, "reject", actor_id=reviewer.id, reason="Number unreachable")

        service.add_comment(item_id, requester.id, "Will resubmit with the new number")
        service.add_comment(item_id, reviewer.id, "Thanks")

        comments = service.get_change_item(item_id).comments
        assert [c.content for c in comments] == ["Will resubmit with the new number", "Thanks"]

    def test_author_name_falls_back_to_email(self, service, student, requester, roles, db_session):
        nameless = create_user(db_session, role=roles["reviewer"], email="night.shift@example.org")
        db_session.commit()
        request = submit_phone(service, student, requester)

        comment = service.add_comment(request.items[0].id, nameless.id, "Looks fine")

        assert comment.author_name == "night.shift@example.org"

    def test_blank_content(self, service, student, requester):
        request = submit_phone(service, student, requester)
        with pytest.raises(ValidationError):
            service.add_comment(request.items[0].id, requester.id, "   ")

    def test_requires_comment_permission(self, service, student, requester, exporter):
        request = submit_phone(service, student, requester)
        with pytest.raises(AuthorizationError):
            service.add_comment(request.items[0].id, exporter.id, "Exported?")

    def test_unknown_item(self, service, requester):
        with pytest.raises(NotFoundError):
            service.add_comment(uuid4(), requester.id, "Hello")


class TestQueries:

    def test_get_unknown(self, service):
        with pytest.raises(NotFoundError):
            service.get_change_request(uuid4())
        with pytest.raises(NotFoundError):
            service.get_change_item(uuid4())

    def test_newest_update_first(self, service, requester, reviewer, db_session):
        entities = [create_entity(db_session, fields=student_fields()) for _ in range(3)]
        db_session.commit()
        requests = []
        for entity in entities:
            requests.append(submit_phone(service, entity, requester))
            time.sleep(0.01)

        # Deciding the oldest request makes it the most recently updated
        service.decide(requests[0].items[0].id, "approve", actor_id=reviewer.id)

        page = service.list_change_requests()
        assert [r.id for r in page.items] == [requests[0].id, requests[2].id, requests[1].id]
        assert page.total == 3

    def test_pagination(self, service, requester, db_session):
        entities = [create_entity(db_session, fields=student_fields()) for _ in range(5)]
        db_session.commit()
        for entity in entities:
            submit_phone(service, entity, requester)

        first = service.list_change_requests(page=1, per_page=2)
        last = service.list_change_requests(page=3, per_page=2)

        assert first.total == 5
        assert first.pages == 3
        assert len(first.items) == 2
        assert len(last.items) == 1

    def test_filters(self, service, student, requester, reviewer, db_session):
        family = create_entity(db_session, entity_type="host_family", fields={"family_name": "Miller"})
        db_session.commit()
        phone = submit_phone(service, student, requester, priority="urgent")
        address = service.submit("student", student.id, [{"field_path": "address.city", "new_value": "Peoria"}],
                                 requested_by=requester.id)
        pets = service.submit("host_family", family.id, [{"field_path": "has_pets", "new_value": True}],
                              requested_by=requester.id)
        service.decide(pets.items[0].id, "approve", actor_id=reviewer.id)

        def ids(**filters):
            return {r.id for r in service.list_change_requests(**filters).items}

        assert ids(priority="urgent") == {phone.id}
        assert ids(entity_type="host_family") == {pets.id}
        assert ids(entity_id=student.id) == {phone.id, address.id}
        assert ids(status="fully_approved") == {pets.id}
        assert ids(status="pending") == {phone.id, address.id}
        assert ids(sevis_pending=True) == {address.id}
        assert ids(sevis_pending=False) == {phone.id, pets.id}

    def test_invalid_filters(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.list_change_requests(status="archived", priority="asap", page=0, per_page=1000)
        assert {i.rule for i in exc_info.value.issues} == {"invalid_filter", "invalid_page", "invalid_page_size"}
        assert len(exc_info.value.issues) == 4

    def test_queue_summary(self, service, student, requester, reviewer, sevis_officer, db_session):
        other = create_entity(db_session, fields=student_fields())
        db_session.commit()
        mixed = service.submit(
            "student",
            student.id,
            [
                {"field_path": "address.street", "new_value": "48 Oak Ave"},
                {"field_path": "school.name", "new_value": "Springfield High"},
                {"field_path": "phone", "new_value": "555-0199"},
            ],
            requested_by=requester.id,
        )
        withdrawn = service.submit("student", other.id, [{"field_path": "address.city", "new_value": "Peoria"}],
                                   requested_by=requester.id)
        service.withdraw(withdrawn.id, actor_id=requester.id)
        service.decide(mixed.items[0].id, "approve", actor_id=sevis_officer.id)

        assert service.queue_summary() == {
            "pending_requests": 1,
            "pending_items": 2,
            "sevis_pending_items": 1,
            "export_ready_items": 1,
        }
