"""State Store — SQL implementation of StateRepository (stored previous states)."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tierledger.core.record_snapshot import as_utc, record_from_snapshot, record_to_snapshot
from tierledger.core.records import PreviousState
from tierledger.models.record_state import RecordStateRow


def state_from_row(row: RecordStateRow) -> PreviousState:
    return PreviousState(
        id=row.id,
        record_id=row.record_id,
        timestamp=as_utc(row.timestamp),
        state=record_from_snapshot(row.state),
        change_log_id=row.change_log_id,
        reason=row.reason,
    )


class SqlStateStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def save(self, feature: str, state: PreviousState) -> None:
        row = await self.db.get(RecordStateRow, (feature, state.id))
        if row is None:
            row = RecordStateRow(feature=feature, id=state.id)
            self.db.add(row)
        row.record_id = state.record_id
        row.change_log_id = state.change_log_id
        row.timestamp = state.timestamp
        row.state = record_to_snapshot(state.state)
        row.reason = state.reason
        await self.db.flush()

    async def get(self, feature: str, state_id: str) -> PreviousState | None:
        row = await self.db.get(RecordStateRow, (feature, state_id))
        return state_from_row(row) if row else None

    async def list_for_record(self, feature: str, record_id: str) -> list[PreviousState]:
        result = await self.db.execute(
            select(RecordStateRow)
            .where(RecordStateRow.feature == feature)
            .where(RecordStateRow.record_id == record_id)
        )
        return [state_from_row(r) for r in result.scalars().all()]
