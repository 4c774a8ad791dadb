"""Seed default roles

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

Creates the system roles (admin, requester, reviewer, sevis_officer, exporter).
"""
from typing import Sequence, Union
import json
import uuid

from alembic import op
import sqlalchemy as sa

from changequeue.core.rbac.roles import DEFAULT_ROLES

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: Union[str, Sequence[str], None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the default roles that do not exist yet."""
    connection = op.get_bind()

    for role_name, role_config in DEFAULT_ROLES.items():
        existing = connection.execute(
            sa.text("SELECT id FROM roles WHERE name = :name"),
            {"name": role_name},
        ).fetchone()
        if existing:
            continue

        connection.execute(
            sa.text("""
                INSERT INTO roles (id, name, permissions, is_system, created_at)
                VALUES (:id, :name, :permissions, true, now())
            """),
            {
                "id": str(uuid.uuid4()),
                "name": role_name,
                "permissions": json.dumps(role_config["permissions"]),
            },
        )


def downgrade() -> None:
    """Remove seeded default roles."""
    connection = op.get_bind()

    for role_name in DEFAULT_ROLES.keys():
        connection.execute(
            sa.text("DELETE FROM roles WHERE name = :name AND is_system = true"),
            {"name": role_name},
        )
