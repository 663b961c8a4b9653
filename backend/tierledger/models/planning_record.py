"""PlanningRecord ORM — persists one record of the feature/phase/session/task tree.

Invariants:
    - (feature, id) is the primary key: ids are unique within a feature namespace
    - parent_id is NULL iff tier == feature (enforced by the creation pipeline)
    - Rows are never deleted: cancelled is the terminal state

Design Decisions:
    - No FK on parent_id: a rollback may legitimately point at a parent that
      no longer resolves, which is surfaced as a relationship conflict instead
    - JSON columns for tags, blocked_by and scope: read and written whole
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tierledger.db.base import Base


class PlanningRecord(Base):
    """A planning unit row."""
    __tablename__ = "planning_records"
    __table_args__ = (
        Index("ix_planning_records_feature_parent", "feature", "parent_id"),
    )

    feature: Mapped[str] = mapped_column(String(200), primary_key=True)
    id: Mapped[str] = mapped_column(String(200), primary_key=True)
    tier: Mapped[str] = mapped_column(String(20), nullable=False)
    parent_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending",
    )
    priority: Mapped[str | None] = mapped_column(String(20), nullable=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    blocked_by: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    planning_doc_path: Mapped[str] = mapped_column(
        String(500), nullable=False, default="",
    )
    planning_doc_section: Mapped[str] = mapped_column(
        String(500), nullable=False, default="",
    )
    scope: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
