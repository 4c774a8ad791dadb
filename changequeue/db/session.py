from functools import lru_cache
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from changequeue.core.config import get_settings


# Bound lazily by ``init_session`` so importing models never needs a driver.
SessionLocal = sessionmaker(autoflush=False, autocommit=False, expire_on_commit=False)


def _use_immediate_transactions(engine: Engine) -> None:
    """Make every SQLite transaction take the write lock when it begins.

    pysqlite's deferred transactions can fail with "database is locked" when
    two writers upgrade their locks at the same time; immediate transactions
    queue on the busy timeout instead.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str, **kwargs) -> Engine:
    """Create an engine; SQLite connections may be shared across threads."""
    if database_url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 30)
        engine = create_engine(database_url, connect_args=connect_args, **kwargs)
        _use_immediate_transactions(engine)
        return engine
    kwargs.setdefault("pool_pre_ping", True)
    return create_engine(database_url, **kwargs)


@lru_cache
def get_engine() -> Engine:
    return build_engine(get_settings().database_url)


def init_session(engine: Optional[Engine] = None) -> sessionmaker:
    """Bind ``SessionLocal`` to ``engine`` (the configured database by default)."""
    SessionLocal.configure(bind=engine or get_engine())
    return SessionLocal
