"""Pytest configuration and shared fixtures."""

import pytest
from sqlalchemy.orm import sessionmaker

from changequeue.core.config import DEFAULT_POLICY_TABLE
from changequeue.core.policy.table import load_policy_table
from changequeue.core.rbac import RoleAuthorizationProvider
from changequeue.db.base import Base
from changequeue.db import models  # noqa: F401  (registers tables)
from changequeue.db.seed import seed_default_roles
from changequeue.db.session import build_engine
from changequeue.services import ChangeQueueService, ExportQueue

from tests.factories import create_entity, create_user, student_fields


@pytest.fixture(scope="session")
def policy_table():
    """The policy table shipped with the package."""
    return load_policy_table(DEFAULT_POLICY_TABLE)


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite database, so concurrent sessions share it."""
    engine = build_engine(f"sqlite:///{tmp_path / 'changequeue.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def roles(db_session):
    roles = seed_default_roles(db_session)
    db_session.commit()
    return roles


@pytest.fixture
def requester(db_session, roles):
    user = create_user(db_session, role=roles["requester"], name="Carla Coordinator")
    db_session.commit()
    return user


@pytest.fixture
def reviewer(db_session, roles):
    user = create_user(db_session, role=roles["reviewer"], name="Riley Reviewer")
    db_session.commit()
    return user


@pytest.fixture
def sevis_officer(db_session, roles):
    user = create_user(db_session, role=roles["sevis_officer"], name="Sam Officer")
    db_session.commit()
    return user


@pytest.fixture
def exporter(db_session, roles):
    user = create_user(db_session, role=roles["exporter"], name="Batch Exporter")
    db_session.commit()
    return user


@pytest.fixture
def admin(db_session, roles):
    user = create_user(db_session, role=roles["admin"], name="Ada Admin")
    db_session.commit()
    return user


@pytest.fixture
def student(db_session):
    entity = create_entity(db_session, entity_type="student", fields=student_fields())
    db_session.commit()
    return entity


@pytest.fixture
def make_service(policy_table):
    """Build a change queue service on any session."""
    def _make(session):
        return ChangeQueueService(session, policy_table, RoleAuthorizationProvider(session))
    return _make


@pytest.fixture
def service(db_session, make_service):
    return make_service(db_session)


@pytest.fixture
def export_queue(db_session):
    return ExportQueue(db_session)
