"""Rollback Rules — conflict detection, blocking policy, state ids and transitions.

Tests:
    - Dangling snapshot parent yields a single high-severity relationship conflict
    - Planning doc drift and stale snapshots are advisory
    - Selective checks only look at the requested fields
    - completed and cancelled rollbacks are terminal
"""

from datetime import datetime, timedelta, timezone

import pytest

from tierledger.core.domain_types import (
    ChangeType, ConflictSeverity, ConflictType, RecordStatus, RollbackStatus, Tier,
)
from tierledger.core.errors import InvalidTransitionError
from tierledger.core.record_fields import RecordField
from tierledger.core.record_snapshot import copy_record
from tierledger.core.records import ChangeLogEntry, Record
from tierledger.core.rollback_rules import (
    build_previous_state, change_log_id_from_state, check_rollback_transition,
    current_state_marker, derive_state, detect_conflicts, detect_field_conflicts,
    is_blocked, state_id_for,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _task(**overrides) -> Record:
    values = dict(
        id="task-1", tier=Tier.TASK, title="Write migration", parent_id="session-1",
        planning_doc_path="docs/plan.md", created_at=NOW, updated_at=NOW,
    )
    values.update(overrides)
    return Record(**values)


# --- Full rollback conflicts ---------------------------------------------------

def test_identical_snapshot_has_no_conflicts():
    current = _task()
    assert detect_conflicts(current, copy_record(current), True) == []


def test_missing_parent_is_relationship_conflict():
    current = _task()
    snapshot = _task(parent_id="session-gone")
    conflicts = detect_conflicts(current, snapshot, snapshot_parent_exists=False)
    assert len(conflicts) == 1
    assert conflicts[0].type == ConflictType.RELATIONSHIP_CONFLICT
    assert conflicts[0].severity == ConflictSeverity.HIGH
    assert conflicts[0].blocking


def test_same_parent_is_never_a_conflict():
    current = _task()
    assert detect_conflicts(current, _task(), snapshot_parent_exists=False) == []


def test_planning_doc_drift_is_medium():
    conflicts = detect_conflicts(_task(planning_doc_path="docs/new.md"), _task(), True)
    assert [c.type for c in conflicts] == [ConflictType.PLANNING_DOC_CONFLICT]
    assert conflicts[0].severity == ConflictSeverity.MEDIUM
    assert not conflicts[0].blocking


def test_stale_snapshot_is_low():
    snapshot = _task(updated_at=NOW - timedelta(hours=30))
    conflicts = detect_conflicts(_task(), snapshot, True)
    assert [c.type for c in conflicts] == [ConflictType.STATE_CONFLICT]
    assert conflicts[0].severity == ConflictSeverity.LOW


def test_stale_threshold_is_configurable():
    snapshot = _task(updated_at=NOW - timedelta(hours=30))
    assert detect_conflicts(_task(), snapshot, True, stale_hours=48) == []


# --- Selective rollback conflicts ----------------------------------------------

def test_field_conflicts_ignore_unrequested_fields():
    current = _task(planning_doc_path="docs/new.md")
    snapshot = _task(parent_id="session-gone", updated_at=NOW - timedelta(days=3))
    assert detect_field_conflicts(current, snapshot, [RecordField.STATUS], False) == []


def test_field_conflicts_on_requested_parent():
    snapshot = _task(parent_id="session-gone")
    conflicts = detect_field_conflicts(_task(), snapshot, [RecordField.PARENT_ID], False)
    assert [c.type for c in conflicts] == [ConflictType.RELATIONSHIP_CONFLICT]
    assert "parent_id" in conflicts[0].description


def test_field_conflicts_on_requested_planning_doc():
    current = _task(planning_doc_path="docs/new.md")
    conflicts = detect_field_conflicts(
        current, _task(), [RecordField.PLANNING_DOC_PATH], True,
    )
    assert [c.type for c in conflicts] == [ConflictType.PLANNING_DOC_CONFLICT]


# --- Blocking policy -------------------------------------------------------------

def test_advisory_conflicts_block_by_default():
    advisory = detect_conflicts(_task(planning_doc_path="docs/new.md"), _task(), True)
    assert is_blocked(advisory)
    assert not is_blocked(advisory, block_on_advisory=False)


def test_relationship_conflicts_always_block():
    conflicts = detect_conflicts(_task(), _task(parent_id="gone"), False)
    assert is_blocked(conflicts, block_on_advisory=False)


def test_no_conflicts_never_block():
    assert not is_blocked([])


# --- State ids -------------------------------------------------------------------

def test_state_ids_round_trip_change_log_ids():
    assert state_id_for("chg-1") == "state-chg-1"
    assert change_log_id_from_state("state-chg-1") == "chg-1"
    assert change_log_id_from_state("chg-1") is None
    assert change_log_id_from_state("state-") is None


def test_current_state_marker():
    assert current_state_marker("task-1", "chg-9") == "state-chg-9"
    assert current_state_marker("task-1", None) == "current-task-1"


def test_build_previous_state_copies_record():
    record = _task()
    state = build_previous_state(record, "chg-1", "before edit", NOW)
    record.title = "changed"
    assert state.id == "state-chg-1"
    assert state.state.title == "Write migration"
    assert state.record_id == "task-1"


def test_derive_state_overlays_partial_before():
    current = _task(status=RecordStatus.COMPLETED)
    entry = ChangeLogEntry(
        id="chg-2", timestamp=NOW, author="a",
        change_type=ChangeType.RECORD_STATUS_CHANGED, tier=Tier.TASK,
        record_id="task-1", before={"status": "pending"}, after={"status": "completed"},
    )
    state = derive_state(entry, current)
    assert state.id == "state-chg-2"
    assert state.state.status == RecordStatus.PENDING
    assert state.state.title == current.title


def test_derive_state_without_before_is_none():
    entry = ChangeLogEntry(
        id="chg-1", timestamp=NOW, author="a", change_type=ChangeType.RECORD_CREATED,
        tier=Tier.TASK, record_id="task-1", after={"title": "x"},
    )
    assert derive_state(entry, _task()) is None


# --- State machine -----------------------------------------------------------------

@pytest.mark.parametrize("current,target", [
    (RollbackStatus.PENDING, RollbackStatus.COMPLETED),
    (RollbackStatus.PENDING, RollbackStatus.CONFLICT),
    (RollbackStatus.CONFLICT, RollbackStatus.CANCELLED),
    (RollbackStatus.CONFLICT, RollbackStatus.COMPLETED),
])
def test_legal_transitions(current, target):
    check_rollback_transition(current, target)


@pytest.mark.parametrize("current,target", [
    (RollbackStatus.COMPLETED, RollbackStatus.CANCELLED),
    (RollbackStatus.CANCELLED, RollbackStatus.PENDING),
    (RollbackStatus.CONFLICT, RollbackStatus.PENDING),
])
def test_illegal_transitions(current, target):
    with pytest.raises(InvalidTransitionError):
        check_rollback_transition(current, target)
