"""Citation ORM — audit links between Change Log entries and records.

Invariants:
    - change_log_id references an existing change_log_entries.id
    - reviewed_at and dismissed_at are never both set
    - reviewed_at is never cleared once written

Design Decisions:
    - FK to change_log_entries.id: the database backs up the existence check
    - metadata column mapped as citation_metadata: ``metadata`` is reserved
      on declarative classes
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tierledger.db.base import Base


class CitationRow(Base):
    __tablename__ = "citations"
    __table_args__ = (
        Index("ix_citations_feature_record", "feature", "record_id"),
    )

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    feature: Mapped[str] = mapped_column(String(200), nullable=False)
    record_id: Mapped[str] = mapped_column(String(200), nullable=False)
    change_log_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("change_log_entries.id"), nullable=False, index=True,
    )
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    context: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    dismissed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    citation_metadata: Mapped[dict] = mapped_column(
        "metadata", JSON, nullable=False, default=dict,
    )
