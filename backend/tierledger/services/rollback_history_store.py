"""Rollback History — SQL implementation of RollbackHistoryRepository.

Invariants:
    - Every rollback is appended, whatever its outcome
    - update only rewrites status and conflicts
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tierledger.core.domain_types import (
    ConflictSeverity, ConflictType, RollbackStatus, RollbackType,
)
from tierledger.core.errors import ResourceNotFoundError
from tierledger.core.record_snapshot import as_utc
from tierledger.core.records import Rollback, RollbackConflict
from tierledger.models.rollback_record import RollbackRow


def _conflict_from_dict(data: dict) -> RollbackConflict:
    return RollbackConflict(
        type=ConflictType(data["type"]),
        description=data["description"],
        severity=ConflictSeverity(data["severity"]),
    )


def rollback_from_row(row: RollbackRow) -> Rollback:
    return Rollback(
        id=row.id,
        timestamp=as_utc(row.timestamp),
        author=row.author,
        record_id=row.record_id,
        rolled_back_to=row.rolled_back_to,
        rolled_back_from=row.rolled_back_from,
        type=RollbackType(row.type),
        fields=list(row.fields) if row.fields is not None else None,
        reason=row.reason,
        conflicts=[_conflict_from_dict(c) for c in row.conflicts or []],
        status=RollbackStatus(row.status),
    )


class SqlRollbackHistory:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _row(self, feature: str, rollback_id: str) -> RollbackRow | None:
        result = await self.db.execute(
            select(RollbackRow)
            .where(RollbackRow.feature == feature)
            .where(RollbackRow.id == rollback_id)
        )
        return result.scalar_one_or_none()

    async def append(self, feature: str, rollback: Rollback) -> None:
        self.db.add(RollbackRow(
            id=rollback.id,
            feature=feature,
            record_id=rollback.record_id,
            timestamp=rollback.timestamp,
            author=rollback.author,
            rolled_back_to=rollback.rolled_back_to,
            rolled_back_from=rollback.rolled_back_from,
            type=rollback.type.value,
            fields=list(rollback.fields) if rollback.fields is not None else None,
            reason=rollback.reason,
            conflicts=[c.to_dict() for c in rollback.conflicts],
            status=rollback.status.value,
        ))
        await self.db.flush()

    async def update(self, feature: str, rollback: Rollback) -> None:
        row = await self._row(feature, rollback.id)
        if row is None:
            raise ResourceNotFoundError("Rollback", rollback.id)
        row.status = rollback.status.value
        row.conflicts = [c.to_dict() for c in rollback.conflicts]
        await self.db.flush()

    async def get(self, feature: str, rollback_id: str) -> Rollback | None:
        row = await self._row(feature, rollback_id)
        return rollback_from_row(row) if row else None

    async def list_all(self, feature: str, record_id: str | None = None) -> list[Rollback]:
        query = select(RollbackRow).where(RollbackRow.feature == feature)
        if record_id:
            query = query.where(RollbackRow.record_id == record_id)
        result = await self.db.execute(query.order_by(RollbackRow.seq))
        return [rollback_from_row(r) for r in result.scalars().all()]
