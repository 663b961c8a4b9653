"""Rollback Schemas — rollback requests and rollback/state responses.

Invariants:
    - fields present means a selective rollback; absent means full
"""

from datetime import datetime

from pydantic import BaseModel, Field

from tierledger.core.domain_types import RollbackStatus, RollbackType
from tierledger.core.records import PreviousState, Rollback
from tierledger.schemas.record import RecordResponse


class RollbackRequest(BaseModel):
    state_id: str = Field(min_length=1)
    fields: list[str] | None = Field(None, min_length=1)
    reason: str | None = Field(None, max_length=2000)
    author: str | None = None
    fail_on_conflict: bool = False


class ConflictResponse(BaseModel):
    type: str
    description: str
    severity: str


class RollbackResponse(BaseModel):
    id: str
    timestamp: datetime
    author: str
    record_id: str
    rolled_back_to: str
    rolled_back_from: str
    type: RollbackType
    fields: list[str] | None
    reason: str | None
    conflicts: list[ConflictResponse]
    status: RollbackStatus

    @classmethod
    def from_domain(cls, rollback: Rollback) -> "RollbackResponse":
        return cls(
            id=rollback.id,
            timestamp=rollback.timestamp,
            author=rollback.author,
            record_id=rollback.record_id,
            rolled_back_to=rollback.rolled_back_to,
            rolled_back_from=rollback.rolled_back_from,
            type=rollback.type,
            fields=rollback.fields,
            reason=rollback.reason,
            conflicts=[ConflictResponse(**c.to_dict()) for c in rollback.conflicts],
            status=rollback.status,
        )


class StateResponse(BaseModel):
    id: str
    record_id: str
    timestamp: datetime
    change_log_id: str
    reason: str | None
    state: RecordResponse

    @classmethod
    def from_domain(cls, state: PreviousState) -> "StateResponse":
        return cls(
            id=state.id,
            record_id=state.record_id,
            timestamp=state.timestamp,
            change_log_id=state.change_log_id,
            reason=state.reason,
            state=RecordResponse.from_domain(state.state),
        )
