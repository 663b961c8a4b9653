"""API Dependencies — per-request engines wired to the request's DB session.

Invariants:
    - One AsyncSession per request, shared by every engine the route uses
    - One RecordLockRegistry per process (cached), so locks span requests
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tierledger.config import Settings, get_settings
from tierledger.infrastructure.database import get_db
from tierledger.infrastructure.record_locks import RecordLockRegistry
from tierledger.services.citation_tracker import CitationTracker
from tierledger.services.record_creation import RecordService
from tierledger.services.rollback_engine import RollbackEngine
from tierledger.services.scope_engine import ScopeEngine


@lru_cache
def get_lock_registry() -> RecordLockRegistry:
    return RecordLockRegistry(get_settings().lock_timeout_seconds)


def get_record_service(
    db: AsyncSession = Depends(get_db),
    locks: RecordLockRegistry = Depends(get_lock_registry),
    settings: Settings = Depends(get_settings),
) -> RecordService:
    return RecordService(db, locks, settings)


def get_scope_engine(
    db: AsyncSession = Depends(get_db),
    locks: RecordLockRegistry = Depends(get_lock_registry),
    settings: Settings = Depends(get_settings),
) -> ScopeEngine:
    return ScopeEngine(db, locks, settings)


def get_rollback_engine(
    db: AsyncSession = Depends(get_db),
    locks: RecordLockRegistry = Depends(get_lock_registry),
    settings: Settings = Depends(get_settings),
) -> RollbackEngine:
    return RollbackEngine(db, locks, settings)


def get_citation_tracker(
    db: AsyncSession = Depends(get_db),
    locks: RecordLockRegistry = Depends(get_lock_registry),
    settings: Settings = Depends(get_settings),
) -> CitationTracker:
    return CitationTracker(db, locks, settings)
