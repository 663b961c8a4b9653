"""Rollback Rules — conflict detection, blocking policy and the rollback state machine.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Parent existence is looked up by the caller and passed in
    - relationship_conflict (high) always blocks; planning_doc_conflict (medium)
      and state_conflict (low) are advisory
    - Selective conflict checks only look at the requested fields
    - completed and cancelled are terminal rollback states

Design Decisions:
    - State ids are derived from Change Log ids ("state-<change id>") so a
      snapshot is addressable without a separate id sequence
"""

from datetime import datetime, timedelta

from tierledger.core.domain_types import (
    STALE_STATE_HOURS, ConflictSeverity, ConflictType, RollbackStatus,
)
from tierledger.core.errors import InvalidTransitionError
from tierledger.core.record_fields import RecordField
from tierledger.core.record_snapshot import copy_record, record_from_snapshot
from tierledger.core.records import ChangeLogEntry, PreviousState, Record, RollbackConflict


STATE_ID_PREFIX = "state-"

ROLLBACK_TRANSITIONS: dict[RollbackStatus, frozenset[RollbackStatus]] = {
    RollbackStatus.PENDING: frozenset({
        RollbackStatus.COMPLETED, RollbackStatus.CONFLICT, RollbackStatus.CANCELLED,
    }),
    RollbackStatus.CONFLICT: frozenset({
        RollbackStatus.COMPLETED, RollbackStatus.CANCELLED,
    }),
    RollbackStatus.COMPLETED: frozenset(),
    RollbackStatus.CANCELLED: frozenset(),
}


# --- State ids ------------------------------------------------------------------

def state_id_for(change_log_id: str) -> str:
    return f"{STATE_ID_PREFIX}{change_log_id}"


def change_log_id_from_state(state_id: str) -> str | None:
    if not state_id.startswith(STATE_ID_PREFIX):
        return None
    return state_id[len(STATE_ID_PREFIX):] or None


def current_state_marker(record_id: str, latest_change_log_id: str | None) -> str:
    """Identifier of the state a rollback moves away from."""
    if latest_change_log_id:
        return state_id_for(latest_change_log_id)
    return f"current-{record_id}"


def build_previous_state(
    record: Record, change_log_id: str, reason: str | None, now: datetime,
) -> PreviousState:
    return PreviousState(
        id=state_id_for(change_log_id),
        record_id=record.id,
        timestamp=now,
        state=copy_record(record),
        change_log_id=change_log_id,
        reason=reason,
    )


def derive_state(entry: ChangeLogEntry, current: Record) -> PreviousState | None:
    """State carried by a Change Log entry's before snapshot.

    Partial snapshots are overlaid on the current record. None when the
    entry has no before snapshot (e.g. record_created).
    """
    if not entry.before:
        return None
    return PreviousState(
        id=state_id_for(entry.id),
        record_id=entry.record_id,
        timestamp=entry.timestamp,
        state=record_from_snapshot(entry.before, base=current),
        change_log_id=entry.id,
        reason=entry.reason,
    )


# --- Conflict detection ---------------------------------------------------------

def _relationship_conflict(parent_id: str, field: str | None = None) -> RollbackConflict:
    suffix = f" (field: {field})" if field else ""
    return RollbackConflict(
        type=ConflictType.RELATIONSHIP_CONFLICT,
        description=f"Parent record {parent_id} does not exist{suffix}",
        severity=ConflictSeverity.HIGH,
    )


def _planning_doc_conflict(current: Record, snapshot: Record) -> RollbackConflict:
    return RollbackConflict(
        type=ConflictType.PLANNING_DOC_CONFLICT,
        description=(
            f"Planning doc path changed from '{snapshot.planning_doc_path}' "
            f"to '{current.planning_doc_path}'"
        ),
        severity=ConflictSeverity.MEDIUM,
    )


def detect_conflicts(
    current: Record,
    snapshot: Record,
    snapshot_parent_exists: bool,
    stale_hours: int = STALE_STATE_HOURS,
) -> list[RollbackConflict]:
    """Conflicts for a full rollback of current back to snapshot."""
    conflicts: list[RollbackConflict] = []

    if (
        snapshot.parent_id
        and snapshot.parent_id != current.parent_id
        and not snapshot_parent_exists
    ):
        conflicts.append(_relationship_conflict(snapshot.parent_id))

    if snapshot.planning_doc_path != current.planning_doc_path:
        conflicts.append(_planning_doc_conflict(current, snapshot))

    gap = current.updated_at - snapshot.updated_at
    if gap > timedelta(hours=stale_hours):
        hours = gap.total_seconds() / 3600
        conflicts.append(RollbackConflict(
            type=ConflictType.STATE_CONFLICT,
            description=f"Snapshot is {hours:.1f}h older than the current state",
            severity=ConflictSeverity.LOW,
        ))

    return conflicts


def detect_field_conflicts(
    current: Record,
    snapshot: Record,
    fields: list[RecordField],
    snapshot_parent_exists: bool,
) -> list[RollbackConflict]:
    """Conflicts for a selective rollback, scoped to the requested fields."""
    conflicts: list[RollbackConflict] = []
    for field in fields:
        if (
            field == RecordField.PARENT_ID
            and snapshot.parent_id
            and not snapshot_parent_exists
        ):
            conflicts.append(_relationship_conflict(snapshot.parent_id, field.value))
        elif (
            field == RecordField.PLANNING_DOC_PATH
            and snapshot.planning_doc_path != current.planning_doc_path
        ):
            conflicts.append(_planning_doc_conflict(current, snapshot))
    return conflicts


def is_blocked(conflicts: list[RollbackConflict], block_on_advisory: bool = True) -> bool:
    """Whether the conflicts prevent the rollback from being applied."""
    if block_on_advisory:
        return bool(conflicts)
    return any(c.blocking for c in conflicts)


# --- State machine --------------------------------------------------------------

def check_rollback_transition(current: RollbackStatus, target: RollbackStatus) -> None:
    if target not in ROLLBACK_TRANSITIONS[current]:
        raise InvalidTransitionError("Rollback", current.value, target.value)
