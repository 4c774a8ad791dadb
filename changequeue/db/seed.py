"""Database seeding for the change queue.

Creates the system roles and, optionally, an initial user per role.
"""

import uuid
from typing import Dict, Optional

from sqlalchemy.orm import Session

from changequeue.core.rbac.roles import DEFAULT_ROLES
from changequeue.db.models import Role, User


def seed_default_roles(db: Session) -> Dict[str, Role]:
    """
    Create the default system roles.

    Roles are idempotent - if they already exist, returns existing roles.

    Returns:
        Dict mapping role name to Role object
    """
    created_roles = {}

    for role_name, role_config in DEFAULT_ROLES.items():
        existing = db.query(Role).filter(Role.name == role_name).first()
        if existing:
            created_roles[role_name] = existing
            continue

        role = Role(
            id=uuid.uuid4(),
            name=role_name,
            permissions=list(role_config["permissions"]),
            is_system=True,
        )
        db.add(role)
        created_roles[role_name] = role

    db.flush()
    return created_roles


def seed_user(
    db: Session,
    email: str,
    role_name: str,
    *,
    name: Optional[str] = None,
) -> User:
    """
    Create a user holding one of the default roles.

    Returns the existing user when the email is already registered.
    """
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        return existing

    roles = seed_default_roles(db)
    if role_name not in roles:
        raise KeyError(f"Unknown role: {role_name}")

    user = User(
        id=uuid.uuid4(),
        email=email,
        name=name,
        role_id=roles[role_name].id,
        is_active=True,
    )
    db.add(user)
    db.flush()
    return user
