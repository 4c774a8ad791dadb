"""Initial change queue schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Tables added:
- roles, users: Actors and their permission sets
- managed_entities: Students, host families and coordinators
- applied_field_writes: One row per approved item written to an entity
- sevis_batches, sevis_batch_results: Export batches and per-item outcomes
- change_requests, change_items: Proposed edits and their per-field decisions
- change_comments, change_item_history: Discussion and decision audit trail
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the change queue tables."""

    # --- roles ---
    op.create_table(
        "roles",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("permissions", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("is_system", sa.Boolean(), server_default="false"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_roles"),
        sa.UniqueConstraint("name", name="uq_roles_name"),
    )

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], name="fk_users_role_id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # --- managed_entities ---
    op.create_table(
        "managed_entities",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("fields", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_managed_entities"),
    )
    op.create_index("ix_managed_entities_entity_type", "managed_entities", ["entity_type"])

    # --- applied_field_writes ---
    op.create_table(
        "applied_field_writes",
        sa.Column("item_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("field_path", sa.String(255), nullable=False),
        sa.Column("value", sa.JSON(), nullable=True),
        sa.Column("applied_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("item_id", name="pk_applied_field_writes"),
        sa.ForeignKeyConstraint(
            ["entity_id"], ["managed_entities.id"], name="fk_applied_field_writes_entity_id",
        ),
    )
    op.create_index("ix_applied_field_writes_entity_id", "applied_field_writes", ["entity_id"])

    # --- sevis_batches ---
    op.create_table(
        "sevis_batches",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("batch_number", sa.String(64), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="claimed"),
        sa.Column("number_of_items", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("successful_records", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_records", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("claimed_by", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_sevis_batches"),
        sa.UniqueConstraint("batch_number", name="uq_sevis_batches_batch_number"),
    )
    op.create_index("ix_sevis_batches_status", "sevis_batches", ["status"])
    op.create_index("ix_sevis_batches_created_at", "sevis_batches", ["created_at"])

    # --- change_requests ---
    op.create_table(
        "change_requests",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("record_name", sa.String(255), nullable=True),
        sa.Column("change_kind", sa.String(20), nullable=False, server_default="update"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("requested_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("withdrawn_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("withdrawn_at", sa.DateTime(), nullable=True),
        sa.Column("extra_data", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_change_requests"),
        sa.ForeignKeyConstraint(
            ["entity_id"], ["managed_entities.id"], name="fk_change_requests_entity_id",
        ),
        sa.ForeignKeyConstraint(
            ["requested_by"], ["users.id"], name="fk_change_requests_requested_by", ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["withdrawn_by"], ["users.id"], name="fk_change_requests_withdrawn_by", ondelete="SET NULL",
        ),
    )
    op.create_index("ix_change_requests_entity_type", "change_requests", ["entity_type"])
    op.create_index("ix_change_requests_entity_id", "change_requests", ["entity_id"])
    op.create_index("ix_change_requests_priority", "change_requests", ["priority"])
    op.create_index("ix_change_requests_status", "change_requests", ["status"])
    op.create_index("ix_change_requests_created_at", "change_requests", ["created_at"])
    op.create_index("ix_change_requests_updated_at", "change_requests", ["updated_at"])

    # --- change_items ---
    op.create_table(
        "change_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("request_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("field_path", sa.String(255), nullable=False),
        sa.Column("field_label", sa.String(255), nullable=False),
        sa.Column("previous_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("change_kind", sa.String(20), nullable=False, server_default="update"),
        sa.Column("is_sevis_related", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("required_approval_level", sa.String(20), nullable=False, server_default="standard"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("requested_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("requested_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.Column("resolved_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("export_ready", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("exported_at", sa.DateTime(), nullable=True),
        sa.Column("sevis_batch_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_change_items"),
        sa.UniqueConstraint("request_id", "field_path", name="uq_change_items_request_field"),
        sa.ForeignKeyConstraint(
            ["request_id"], ["change_requests.id"], name="fk_change_items_request_id", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["requested_by"], ["users.id"], name="fk_change_items_requested_by", ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["resolved_by"], ["users.id"], name="fk_change_items_resolved_by", ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["sevis_batch_id"], ["sevis_batches.id"], name="fk_change_items_sevis_batch_id", ondelete="SET NULL",
        ),
    )
    op.create_index("ix_change_items_request_id", "change_items", ["request_id"])
    op.create_index("ix_change_items_is_sevis_related", "change_items", ["is_sevis_related"])
    op.create_index("ix_change_items_status", "change_items", ["status"])
    op.create_index("ix_change_items_export_ready", "change_items", ["export_ready"])
    op.create_index("ix_change_items_exported_at", "change_items", ["exported_at"])
    # Claim scan of the batch exporter
    op.create_index(
        "ix_change_items_exportable",
        "change_items",
        ["resolved_at", "id"],
        postgresql_where=sa.text(
            "status = 'approved' AND is_sevis_related AND export_ready AND exported_at IS NULL"
        ),
    )

    # --- change_comments ---
    op.create_table(
        "change_comments",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("item_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("author_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("author_name", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_internal", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_change_comments"),
        sa.ForeignKeyConstraint(
            ["item_id"], ["change_items.id"], name="fk_change_comments_item_id", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["author_id"], ["users.id"], name="fk_change_comments_author_id", ondelete="SET NULL",
        ),
    )
    op.create_index("ix_change_comments_item_id", "change_comments", ["item_id"])
    op.create_index("ix_change_comments_created_at", "change_comments", ["created_at"])

    # --- change_item_history ---
    op.create_table(
        "change_item_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("item_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("from_status", sa.String(20), nullable=False),
        sa.Column("to_status", sa.String(20), nullable=False),
        sa.Column("decision", sa.String(20), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("extra_data", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_change_item_history"),
        sa.ForeignKeyConstraint(
            ["item_id"], ["change_items.id"], name="fk_change_item_history_item_id", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["actor_id"], ["users.id"], name="fk_change_item_history_actor_id", ondelete="SET NULL",
        ),
    )
    op.create_index("ix_change_item_history_item_id", "change_item_history", ["item_id"])
    op.create_index("ix_change_item_history_created_at", "change_item_history", ["created_at"])

    # --- sevis_batch_results ---
    op.create_table(
        "sevis_batch_results",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("batch_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("item_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("result", sa.String(20), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_sevis_batch_results"),
        sa.ForeignKeyConstraint(
            ["batch_id"], ["sevis_batches.id"], name="fk_sevis_batch_results_batch_id", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["item_id"], ["change_items.id"], name="fk_sevis_batch_results_item_id", ondelete="CASCADE",
        ),
    )
    op.create_index("ix_sevis_batch_results_batch_id", "sevis_batch_results", ["batch_id"])
    op.create_index("ix_sevis_batch_results_item_id", "sevis_batch_results", ["item_id"])


def downgrade() -> None:
    """Drop the change queue tables."""
    op.drop_table("sevis_batch_results")
    op.drop_table("change_item_history")
    op.drop_table("change_comments")
    op.drop_index("ix_change_items_exportable", table_name="change_items")
    op.drop_table("change_items")
    op.drop_table("change_requests")
    op.drop_table("sevis_batches")
    op.drop_table("applied_field_writes")
    op.drop_table("managed_entities")
    op.drop_table("users")
    op.drop_table("roles")
