"""Tests for database seeding."""

import pytest

from changequeue.core.rbac import RoleAuthorizationProvider
from changequeue.core.rbac.roles import DEFAULT_ROLES
from changequeue.db.models import Role
from changequeue.db.seed import seed_default_roles, seed_user


class TestSeedDefaultRoles:

    def test_creates_every_role(self, db_session):
        roles = seed_default_roles(db_session)
        assert set(roles) == set(DEFAULT_ROLES)
        assert all(role.is_system for role in roles.values())

    def test_idempotent(self, db_session):
        first = seed_default_roles(db_session)
        second = seed_default_roles(db_session)
        assert {name: role.id for name, role in first.items()} == {
            name: role.id for name, role in second.items()
        }
        assert db_session.query(Role).count() == len(DEFAULT_ROLES)


class TestSeedUser:

    def test_user_gets_role_permissions(self, db_session):
        officer = seed_user(db_session, "officer@example.org", "sevis_officer", name="Sam Officer")
        db_session.commit()

        provider = RoleAuthorizationProvider(db_session)
        assert provider.has_permission(officer.id, "sevis:approve")
        assert not provider.has_permission(officer.id, "exports:export")

    def test_existing_email_returned(self, db_session):
        first = seed_user(db_session, "riley@example.org", "reviewer")
        again = seed_user(db_session, "riley@example.org", "admin")
        assert again.id == first.id
        assert again.role.name == "reviewer"

    def test_unknown_role(self, db_session):
        with pytest.raises(KeyError):
            seed_user(db_session, "nobody@example.org", "janitor")
