"""Rollback ORM — the per-feature rollback history.

Invariants:
    - Every rollback is written regardless of outcome
    - Only status changes after insert (pending/conflict -> completed/cancelled)
    - fields is NULL iff type == full
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tierledger.db.base import Base


class RollbackRow(Base):
    __tablename__ = "rollbacks"
    __table_args__ = (
        Index("ix_rollbacks_feature_record", "feature", "record_id"),
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
    rolled_back_to: Mapped[str] = mapped_column(String(80), nullable=False)
    rolled_back_from: Mapped[str] = mapped_column(String(280), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    fields: Mapped[list | None] = mapped_column(JSON, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    conflicts: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending",
    )
