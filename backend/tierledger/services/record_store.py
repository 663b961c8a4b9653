"""Record Store — SQL implementation of RecordRepository.

Invariants:
    - put is a full overwrite of every column (no partial merge)
    - Children are listed in creation order
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tierledger.core.domain_types import Priority, RecordStatus, Tier
from tierledger.core.record_snapshot import as_utc, scope_from_dict, scope_to_dict
from tierledger.core.records import Record
from tierledger.models.planning_record import PlanningRecord


def record_from_row(row: PlanningRecord) -> Record:
    return Record(
        id=row.id,
        tier=Tier(row.tier),
        title=row.title,
        parent_id=row.parent_id,
        description=row.description or "",
        status=RecordStatus(row.status),
        priority=Priority(row.priority) if row.priority else None,
        tags=set(row.tags or []),
        blocked_by=list(row.blocked_by or []),
        planning_doc_path=row.planning_doc_path or "",
        planning_doc_section=row.planning_doc_section or "",
        scope=scope_from_dict(row.scope) if row.scope else None,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


class SqlRecordStore:
    """Records keyed by (feature, id)."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, feature: str, record_id: str) -> Record | None:
        row = await self.db.get(PlanningRecord, (feature, record_id))
        return record_from_row(row) if row else None

    async def put(self, feature: str, record: Record) -> None:
        row = await self.db.get(PlanningRecord, (feature, record.id))
        if row is None:
            row = PlanningRecord(feature=feature, id=record.id)
            self.db.add(row)
        row.tier = record.tier.value
        row.parent_id = record.parent_id
        row.title = record.title
        row.description = record.description
        row.status = record.status.value
        row.priority = record.priority.value if record.priority else None
        row.tags = sorted(record.tags)
        row.blocked_by = list(record.blocked_by)
        row.planning_doc_path = record.planning_doc_path
        row.planning_doc_section = record.planning_doc_section
        row.scope = scope_to_dict(record.scope) if record.scope else None
        row.created_at = record.created_at
        row.updated_at = record.updated_at
        await self.db.flush()

    async def list_children(self, feature: str, parent_id: str) -> list[Record]:
        result = await self.db.execute(
            select(PlanningRecord)
            .where(PlanningRecord.feature == feature)
            .where(PlanningRecord.parent_id == parent_id)
            .order_by(PlanningRecord.created_at, PlanningRecord.id)
        )
        return [record_from_row(r) for r in result.scalars().all()]

    async def list_all(self, feature: str) -> list[Record]:
        result = await self.db.execute(
            select(PlanningRecord)
            .where(PlanningRecord.feature == feature)
            .order_by(PlanningRecord.created_at, PlanningRecord.id)
        )
        return [record_from_row(r) for r in result.scalars().all()]
