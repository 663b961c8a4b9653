"""ChangeLogEntry ORM — one append-only audit row.

Invariants:
    - Rows are inserted once and never updated or deleted
    - seq gives the stable append order; id is the public identifier

Design Decisions:
    - (feature, record_id) index: per-record history without scanning the log
    - before/after kept as JSON snapshots, full or partial
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tierledger.db.base import Base


class ChangeLogEntryRow(Base):
    __tablename__ = "change_log_entries"
    __table_args__ = (
        Index("ix_change_log_feature_record", "feature", "record_id"),
    )

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    feature: Mapped[str] = mapped_column(String(200), nullable=False)
    record_id: Mapped[str] = mapped_column(String(200), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    author: Mapped[str] = mapped_column(String(200), nullable=False)
    change_type: Mapped[str] = mapped_column(String(40), nullable=False)
    tier: Mapped[str] = mapped_column(String(20), nullable=False)
    before: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    after: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    propagation_triggered: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    related_changes: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
