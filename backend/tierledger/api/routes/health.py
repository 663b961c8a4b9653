"""Health checks — process liveness and ledger readiness.

Readiness fails with 503 when the ledger database is unreachable. Both checks
report the enforcement settings the process runs with, and readiness also
reports how many records are currently locked by in-flight writes.
"""

import logging
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from tierledger.api.dependencies import get_lock_registry
from tierledger.config import Settings, get_settings
from tierledger.infrastructure import database
from tierledger.infrastructure.record_locks import RecordLockRegistry

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/health", tags=["health"])

SERVICE_VERSION = "0.1.0"


def _ledger_settings(settings: Settings) -> dict:
    return {
        "scope_enforcement_mode": settings.scope_enforcement_mode.value,
        "lock_timeout_seconds": settings.lock_timeout_seconds,
        "rollback_block_on_advisory": settings.rollback_block_on_advisory,
    }


@router.get("/", status_code=status.HTTP_200_OK)
async def health_check(settings: Settings = Depends(get_settings)):
    return {
        "status": "healthy",
        "service": "tierledger-api",
        "version": SERVICE_VERSION,
        "ledger": _ledger_settings(settings),
    }


@router.get("/ready")
async def readiness_check(
    settings: Settings = Depends(get_settings),
    locks: RecordLockRegistry = Depends(get_lock_registry),
):
    manager = database.db_manager
    db_ok = await manager.health_check() if manager else False
    if not db_ok:
        logger.warning("Ledger database unreachable; reporting not ready")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "reason": "ledger_database_unavailable"},
        )
    return {
        "status": "ready",
        "checks": {"database": "healthy", "locked_records": locks.tracked},
        "ledger": _ledger_settings(settings),
    }
