"""Rollback Engine — state ownership, conflict-aware rollback and history.

Invariants:
    - A state can only be applied to the record that owns it
    - An applied rollback writes the record, a rollback_applied entry and the
      Rollback together; a blocked one leaves the record untouched
    - A full rollback restores every field except updated_at
    - Selective rollback touches only the requested fields
    - Rollbacks of one record are serialized by its lock; a bounded wait
      fails with LockTimeoutError and records nothing
    - cancel_rollback is legal only from conflict (or pending)
"""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tierledger.config import Settings
from tierledger.core.domain_types import (
    ChangeType, ConflictSeverity, ConflictType, RecordStatus, RollbackStatus,
    RollbackType, Tier,
)
from tierledger.core.errors import (
    InvalidTransitionError, LockTimeoutError, RecordValidationError,
    ResourceNotFoundError, RollbackConflictError,
)
from tierledger.core.record_snapshot import copy_record, record_to_snapshot
from tierledger.core.records import ParsedComponents
from tierledger.core.rollback_rules import state_id_for
from tierledger.db.base import Base
from tierledger.services.record_creation import RecordService
from tierledger.services.rollback_engine import RollbackEngine

FEATURE = "auth-revamp"


async def _complete_task(record_service, rollback_engine) -> str:
    """Mark task-1 completed and return the state id holding its pending version."""
    await record_service.update_record(FEATURE, "task-1", {"status": "completed"})
    entry = await rollback_engine.stores.changes.latest_for_record(FEATURE, "task-1")
    return state_id_for(entry.id)


def _snapshot_without(record, *keys: str) -> dict:
    snapshot = record_to_snapshot(record)
    for key in keys:
        snapshot.pop(key)
    return snapshot


async def _dangling_parent_state(rollback_engine, seed_tree) -> str:
    snapshot = copy_record(seed_tree["task-1"])
    snapshot.parent_id = "session-gone"
    state = await rollback_engine.store_previous_state(
        FEATURE, snapshot, "chg-manual", reason="before move",
    )
    return state.id


# --- Previous states ---------------------------------------------------------------

async def test_store_previous_state_does_not_touch_change_log(rollback_engine, seed_tree):
    await rollback_engine.store_previous_state(FEATURE, seed_tree["task-1"], "chg-x")
    entries = await rollback_engine.stores.changes.list_for_record(FEATURE, "task-1")
    assert [e.change_type for e in entries] == [ChangeType.RECORD_CREATED]


async def test_available_states_merge_stored_and_derived(
    record_service, rollback_engine, seed_tree,
):
    state_id = await _complete_task(record_service, rollback_engine)
    states = await rollback_engine.get_available_states(FEATURE, "task-1")
    assert [s.id for s in states] == [state_id]
    assert states[0].state.status == RecordStatus.PENDING


async def test_available_states_of_missing_record(rollback_engine, seed_tree):
    with pytest.raises(ResourceNotFoundError):
        await rollback_engine.get_available_states(FEATURE, "task-9")


# --- Full rollback -----------------------------------------------------------------

async def test_rollback_restores_previous_status(record_service, rollback_engine, seed_tree):
    state_id = await _complete_task(record_service, rollback_engine)

    rollback = await rollback_engine.rollback_to_state(FEATURE, "task-1", state_id)

    assert rollback.status == RollbackStatus.COMPLETED
    assert rollback.type == RollbackType.FULL
    assert rollback.conflicts == []
    restored = await record_service.get_record(FEATURE, "task-1")
    assert restored.status == RecordStatus.PENDING

    latest = await rollback_engine.stores.changes.latest_for_record(FEATURE, "task-1")
    assert latest.change_type == ChangeType.ROLLBACK_APPLIED
    assert latest.before["status"] == "completed"
    assert latest.after["status"] == "pending"


async def test_rolled_back_from_names_latest_change(record_service, rollback_engine, seed_tree):
    state_id = await _complete_task(record_service, rollback_engine)
    rollback = await rollback_engine.rollback_to_state(FEATURE, "task-1", state_id)
    assert rollback.rolled_back_from == state_id
    assert rollback.rolled_back_to == state_id


async def test_full_rollback_restores_every_field_but_updated_at(
    record_service, rollback_engine, seed_tree,
):
    original = await record_service.get_record(FEATURE, "task-1")
    state = await rollback_engine.store_previous_state(FEATURE, original, "chg-baseline")
    await record_service.update_record(FEATURE, "task-1", {
        "title": "Write and run migration",
        "description": "Cover the users table.",
        "tags": ["db", "migration"],
        "blocked_by": ["task-0"],
        "priority": "critical",
        "status": "in_progress",
        "planning_doc_section": "## Schema",
    })

    rollback = await rollback_engine.rollback_to_state(FEATURE, "task-1", state.id)

    assert rollback.status == RollbackStatus.COMPLETED
    restored = await record_service.get_record(FEATURE, "task-1")
    assert _snapshot_without(restored, "updated_at") == _snapshot_without(
        original, "updated_at",
    )


async def test_dangling_parent_blocks_rollback(record_service, rollback_engine, seed_tree):
    state_id = await _dangling_parent_state(rollback_engine, seed_tree)
    before = await record_service.get_record(FEATURE, "task-1")

    rollback = await rollback_engine.rollback_to_state(FEATURE, "task-1", state_id)

    assert rollback.status == RollbackStatus.CONFLICT
    assert [(c.type, c.severity) for c in rollback.conflicts] == [
        (ConflictType.RELATIONSHIP_CONFLICT, ConflictSeverity.HIGH),
    ]
    assert await record_service.get_record(FEATURE, "task-1") == before
    history = await rollback_engine.get_rollback_history(FEATURE, "task-1")
    assert [r.id for r in history] == [rollback.id]


async def test_state_of_another_record_is_rejected(
    record_service, rollback_engine, seed_tree,
):
    state_id = await _complete_task(record_service, rollback_engine)
    await record_service.create_record(
        FEATURE,
        ParsedComponents(title="Seed data", tier=Tier.TASK, parent_id="session-1",
                         record_id="task-2"),
    )
    with pytest.raises(RecordValidationError) as exc_info:
        await rollback_engine.rollback_to_state(FEATURE, "task-2", state_id)
    assert "does not belong" in exc_info.value.message
    assert await rollback_engine.get_rollback_history(FEATURE) == []


async def test_unknown_state_is_not_found(rollback_engine, seed_tree):
    with pytest.raises(ResourceNotFoundError):
        await rollback_engine.rollback_to_state(FEATURE, "task-1", "state-chg-nope")


async def test_advisory_conflict_blocks_by_default(record_service, rollback_engine, seed_tree):
    await record_service.update_record(FEATURE, "task-1", {"planning_doc_path": "docs/v2.md"})
    entry = await rollback_engine.stores.changes.latest_for_record(FEATURE, "task-1")

    rollback = await rollback_engine.rollback_to_state(
        FEATURE, "task-1", state_id_for(entry.id),
    )

    assert rollback.status == RollbackStatus.CONFLICT
    assert rollback.conflicts[0].type == ConflictType.PLANNING_DOC_CONFLICT


async def test_advisory_conflict_applies_when_configured(
    record_service, rollback_engine, test_db, locks, seed_tree,
):
    lenient = RollbackEngine(test_db, locks, Settings(rollback_block_on_advisory=False))
    await record_service.update_record(FEATURE, "task-1", {"planning_doc_path": "docs/v2.md"})
    entry = await rollback_engine.stores.changes.latest_for_record(FEATURE, "task-1")

    rollback = await lenient.rollback_to_state(FEATURE, "task-1", state_id_for(entry.id))

    assert rollback.status == RollbackStatus.COMPLETED
    assert rollback.conflicts[0].severity == ConflictSeverity.MEDIUM
    restored = await record_service.get_record(FEATURE, "task-1")
    assert restored.planning_doc_path == "docs/plan.md"


async def test_conflict_check_raises_and_records_nothing(rollback_engine, seed_tree):
    state_id = await _dangling_parent_state(rollback_engine, seed_tree)
    with pytest.raises(RollbackConflictError) as exc_info:
        await rollback_engine.rollback_with_conflict_check(FEATURE, "task-1", state_id)
    assert exc_info.value.http_status == 409
    assert await rollback_engine.get_rollback_history(FEATURE) == []


# --- Selective rollback ------------------------------------------------------------

async def test_selective_rollback_touches_only_requested_fields(
    record_service, rollback_engine, seed_tree,
):
    await record_service.update_record(
        FEATURE, "task-1",
        {"status": "in_progress", "title": "Write and run migration",
         "tags": ["db"], "priority": "high"},
    )
    entry = await rollback_engine.stores.changes.latest_for_record(FEATURE, "task-1")
    current = await record_service.get_record(FEATURE, "task-1")

    rollback = await rollback_engine.rollback_fields(
        FEATURE, "task-1", state_id_for(entry.id), ["status"],
    )

    assert rollback.type == RollbackType.SELECTIVE
    assert rollback.fields == ["status"]
    restored = await record_service.get_record(FEATURE, "task-1")
    assert restored.status == RecordStatus.PENDING
    assert restored.title == "Write and run migration"

    untouched = _snapshot_without(current, "status", "updated_at")
    assert _snapshot_without(restored, "status", "updated_at") == untouched


async def test_selective_rollback_ignores_unrelated_conflicts(
    rollback_engine, record_service, seed_tree,
):
    state_id = await _dangling_parent_state(rollback_engine, seed_tree)
    rollback = await rollback_engine.rollback_fields(FEATURE, "task-1", state_id, ["title"])
    assert rollback.status == RollbackStatus.COMPLETED
    restored = await record_service.get_record(FEATURE, "task-1")
    assert restored.parent_id == "session-1"


async def test_selective_rollback_rejects_unknown_fields(rollback_engine, seed_tree):
    with pytest.raises(RecordValidationError):
        await rollback_engine.rollback_fields(FEATURE, "task-1", "state-x", ["id"])


# --- Locking -----------------------------------------------------------------------

async def test_rollback_times_out_while_record_is_held(
    record_service, rollback_engine, locks, seed_tree,
):
    state_id = await _complete_task(record_service, rollback_engine)

    async with locks.hold(FEATURE, ["task-1"]):
        with pytest.raises(LockTimeoutError) as exc_info:
            await rollback_engine.rollback_to_state(FEATURE, "task-1", state_id)

    assert exc_info.value.http_status == 423
    assert await rollback_engine.get_rollback_history(FEATURE) == []
    current = await record_service.get_record(FEATURE, "task-1")
    assert current.status == RecordStatus.COMPLETED


@pytest.fixture
async def file_sessions(tmp_path):
    """Session factory over a file database, so each session has its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


async def test_concurrent_rollbacks_of_one_record_serialize(file_sessions, locks, settings):
    async with file_sessions() as db:
        service = RecordService(db, locks, settings)
        for tier, record_id, parent_id in (
            (Tier.FEATURE, FEATURE, None),
            (Tier.PHASE, "phase-1", FEATURE),
            (Tier.SESSION, "session-1", "phase-1"),
            (Tier.TASK, "task-1", "session-1"),
        ):
            await service.create_record(FEATURE, ParsedComponents(
                title=f"Plan {record_id}", tier=tier, parent_id=parent_id,
                record_id=record_id,
            ))
        state_id = await _complete_task(service, RollbackEngine(db, locks, settings))

    async with file_sessions() as first_db, file_sessions() as second_db:
        rollbacks = await asyncio.gather(
            RollbackEngine(first_db, locks, settings).rollback_to_state(
                FEATURE, "task-1", state_id,
            ),
            RollbackEngine(second_db, locks, settings).rollback_to_state(
                FEATURE, "task-1", state_id,
            ),
        )

    assert [r.status for r in rollbacks] == [RollbackStatus.COMPLETED] * 2
    # The later rollback re-reads under the lock and sees the earlier one applied
    assert rollbacks[0].rolled_back_from != rollbacks[1].rolled_back_from
    async with file_sessions() as db:
        entries = await RollbackEngine(db, locks, settings).stores.changes.list_for_record(
            FEATURE, "task-1",
        )
    applied = [e for e in entries if e.change_type == ChangeType.ROLLBACK_APPLIED]
    assert [e.before["status"] for e in applied] == ["completed", "pending"]
    assert locks.tracked == 0


# --- History and cancellation -----------------------------------------------------

async def test_cancel_conflicted_rollback(rollback_engine, seed_tree):
    state_id = await _dangling_parent_state(rollback_engine, seed_tree)
    rollback = await rollback_engine.rollback_to_state(FEATURE, "task-1", state_id)

    cancelled = await rollback_engine.cancel_rollback(FEATURE, rollback.id)

    assert cancelled.status == RollbackStatus.CANCELLED
    stored = await rollback_engine.get_rollback(FEATURE, rollback.id)
    assert stored.status == RollbackStatus.CANCELLED
    with pytest.raises(InvalidTransitionError):
        await rollback_engine.cancel_rollback(FEATURE, rollback.id)


async def test_completed_rollback_cannot_be_cancelled(
    record_service, rollback_engine, seed_tree,
):
    state_id = await _complete_task(record_service, rollback_engine)
    rollback = await rollback_engine.rollback_to_state(FEATURE, "task-1", state_id)
    with pytest.raises(InvalidTransitionError):
        await rollback_engine.cancel_rollback(FEATURE, rollback.id)


async def test_cancel_missing_rollback(rollback_engine, seed_tree):
    with pytest.raises(ResourceNotFoundError):
        await rollback_engine.cancel_rollback(FEATURE, "rb-nope")
