from functools import lru_cache
from typing import Generator, Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from changequeue.core.config import get_settings
from changequeue.core.policy.table import PolicyTable, load_policy_table
from changequeue.core.rbac import RoleAuthorizationProvider
from changequeue.db.models import User
from changequeue.db.session import SessionLocal, init_session
from changequeue.services import ChangeQueueService, ExportQueue


def get_db() -> Generator:
    """Database session dependency."""
    if SessionLocal.kw.get("bind") is None:
        init_session()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_policy_table() -> PolicyTable:
    """Policy table loaded once from the configured YAML file."""
    return load_policy_table(get_settings().policy_table_file)


def get_current_user(
    db: Session = Depends(get_db),
    x_actor_id: Optional[str] = Header(None),
) -> User:
    """Resolve the acting user from the ``X-Actor-Id`` header."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not identify actor",
    )

    if not x_actor_id:
        raise credentials_exception
    try:
        actor_id = UUID(x_actor_id)
    except ValueError:
        raise credentials_exception

    user = db.get(User, actor_id)
    if user is None or not user.is_active:
        raise credentials_exception
    return user


def get_change_queue(
    db: Session = Depends(get_db),
    policy_table: PolicyTable = Depends(get_policy_table),
) -> ChangeQueueService:
    return ChangeQueueService(db, policy_table, RoleAuthorizationProvider(db))


def get_export_queue(db: Session = Depends(get_db)) -> ExportQueue:
    return ExportQueue(db)
