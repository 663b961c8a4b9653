"""Initial schema — planning_records, change_log_entries, record_states, rollbacks, citations.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "planning_records",
        sa.Column("feature", sa.String(200), primary_key=True),
        sa.Column("id", sa.String(200), primary_key=True),
        sa.Column("tier", sa.String(20), nullable=False),
        sa.Column("parent_id", sa.String(200), nullable=True),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("priority", sa.String(20), nullable=True),
        sa.Column("tags", sa.JSON, nullable=False),
        sa.Column("blocked_by", sa.JSON, nullable=False),
        sa.Column("planning_doc_path", sa.String(500), nullable=False, server_default=""),
        sa.Column("planning_doc_section", sa.String(500), nullable=False, server_default=""),
        sa.Column("scope", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_planning_records_feature_parent", "planning_records", ["feature", "parent_id"],
    )

    op.create_table(
        "change_log_entries",
        sa.Column("seq", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("id", sa.String(64), nullable=False, unique=True),
        sa.Column("feature", sa.String(200), nullable=False),
        sa.Column("record_id", sa.String(200), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("author", sa.String(200), nullable=False),
        sa.Column("change_type", sa.String(40), nullable=False),
        sa.Column("tier", sa.String(20), nullable=False),
        sa.Column("before", sa.JSON, nullable=True),
        sa.Column("after", sa.JSON, nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("propagation_triggered", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("related_changes", sa.JSON, nullable=False),
    )
    op.create_index(
        "ix_change_log_feature_record", "change_log_entries", ["feature", "record_id"],
    )

    op.create_table(
        "record_states",
        sa.Column("feature", sa.String(200), primary_key=True),
        sa.Column("id", sa.String(80), primary_key=True),
        sa.Column("record_id", sa.String(200), nullable=False),
        sa.Column("change_log_id", sa.String(64), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("state", sa.JSON, nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
    )
    op.create_index(
        "ix_record_states_feature_record", "record_states", ["feature", "record_id"],
    )

    op.create_table(
        "rollbacks",
        sa.Column("seq", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("id", sa.String(64), nullable=False, unique=True),
        sa.Column("feature", sa.String(200), nullable=False),
        sa.Column("record_id", sa.String(200), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("author", sa.String(200), nullable=False),
        sa.Column("rolled_back_to", sa.String(80), nullable=False),
        sa.Column("rolled_back_from", sa.String(280), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("fields", sa.JSON, nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("conflicts", sa.JSON, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
    )
    op.create_index(
        "ix_rollbacks_feature_record", "rollbacks", ["feature", "record_id"],
    )

    op.create_table(
        "citations",
        sa.Column("seq", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("id", sa.String(64), nullable=False, unique=True),
        sa.Column("feature", sa.String(200), nullable=False),
        sa.Column("record_id", sa.String(200), nullable=False),
        sa.Column(
            "change_log_id", sa.String(64),
            sa.ForeignKey("change_log_entries.id"), nullable=False,
        ),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("context", sa.JSON, nullable=False),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dismissed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metadata", sa.JSON, nullable=False),
    )
    op.create_index(
        "ix_citations_feature_record", "citations", ["feature", "record_id"],
    )
    op.create_index("ix_citations_change_log_id", "citations", ["change_log_id"])


def downgrade() -> None:
    op.drop_table("citations")
    op.drop_table("rollbacks")
    op.drop_table("record_states")
    op.drop_table("change_log_entries")
    op.drop_table("planning_records")
