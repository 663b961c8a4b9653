"""Change Log — SQL implementation of the append-only ChangeLogRepository.

Invariants:
    - append is the only write; rows are never updated or deleted
    - Listing order is append order (seq)
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tierledger.core.domain_types import ChangeType, Tier
from tierledger.core.record_snapshot import as_utc
from tierledger.core.records import ChangeLogEntry
from tierledger.models.change_log_entry import ChangeLogEntryRow


def entry_from_row(row: ChangeLogEntryRow) -> ChangeLogEntry:
    return ChangeLogEntry(
        id=row.id,
        timestamp=as_utc(row.timestamp),
        author=row.author,
        change_type=ChangeType(row.change_type),
        tier=Tier(row.tier),
        record_id=row.record_id,
        before=row.before,
        after=row.after,
        reason=row.reason,
        propagation_triggered=row.propagation_triggered,
        related_changes=tuple(row.related_changes or ()),
    )


class SqlChangeLog:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(self, feature: str, entry: ChangeLogEntry) -> None:
        self.db.add(ChangeLogEntryRow(
            id=entry.id,
            feature=feature,
            record_id=entry.record_id,
            timestamp=entry.timestamp,
            author=entry.author,
            change_type=entry.change_type.value,
            tier=entry.tier.value,
            before=entry.before,
            after=entry.after,
            reason=entry.reason,
            propagation_triggered=entry.propagation_triggered,
            related_changes=list(entry.related_changes),
        ))
        await self.db.flush()

    async def get(self, feature: str, change_log_id: str) -> ChangeLogEntry | None:
        result = await self.db.execute(
            select(ChangeLogEntryRow)
            .where(ChangeLogEntryRow.feature == feature)
            .where(ChangeLogEntryRow.id == change_log_id)
        )
        row = result.scalar_one_or_none()
        return entry_from_row(row) if row else None

    async def list_for_record(
        self, feature: str, record_id: str,
    ) -> list[ChangeLogEntry]:
        result = await self.db.execute(
            select(ChangeLogEntryRow)
            .where(ChangeLogEntryRow.feature == feature)
            .where(ChangeLogEntryRow.record_id == record_id)
            .order_by(ChangeLogEntryRow.seq)
        )
        return [entry_from_row(r) for r in result.scalars().all()]

    async def latest_for_record(
        self, feature: str, record_id: str,
    ) -> ChangeLogEntry | None:
        result = await self.db.execute(
            select(ChangeLogEntryRow)
            .where(ChangeLogEntryRow.feature == feature)
            .where(ChangeLogEntryRow.record_id == record_id)
            .order_by(ChangeLogEntryRow.seq.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return entry_from_row(row) if row else None
