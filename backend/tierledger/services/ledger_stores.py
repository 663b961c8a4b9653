"""Ledger Stores — the repository bundle handed to every engine, plus the commit boundary.

Invariants:
    - All stores in one bundle share the same AsyncSession, so one commit
      covers every collection touched by an operation
    - committing() commits once on success and rolls back on any exception

Design Decisions:
    - Engines receive the bundle through their constructor; tests may pass
      their own Protocol implementations
"""

import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from tierledger.core.repository_protocols import (
    ChangeLogRepository, CitationRepository, RecordRepository,
    RollbackHistoryRepository, StateRepository,
)
from tierledger.services.change_log_store import SqlChangeLog
from tierledger.services.citation_store import SqlCitationStore
from tierledger.services.record_store import SqlRecordStore
from tierledger.services.rollback_history_store import SqlRollbackHistory
from tierledger.services.state_store import SqlStateStore


@dataclass
class LedgerStores:
    records: RecordRepository
    changes: ChangeLogRepository
    states: StateRepository
    rollbacks: RollbackHistoryRepository
    citations: CitationRepository

    @classmethod
    def for_session(cls, db: AsyncSession) -> "LedgerStores":
        return cls(
            records=SqlRecordStore(db),
            changes=SqlChangeLog(db),
            states=SqlStateStore(db),
            rollbacks=SqlRollbackHistory(db),
            citations=SqlCitationStore(db),
        )


@asynccontextmanager
async def committing(db: AsyncSession) -> AsyncGenerator[None, None]:
    """Single commit for a composite operation; nothing persists on failure."""
    try:
        yield
        await db.commit()
    except Exception:
        await db.rollback()
        raise


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"
