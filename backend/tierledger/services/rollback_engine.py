"""Rollback Engine — previous states, conflict-aware full/selective rollback, rollback history.

Invariants:
    - store_previous_state never appends to the Change Log
    - A state can only be applied to the record that owns it
    - Conflict detection runs under the record lock (plus the snapshot parent's
      lock when it differs) and the lock is held through commit
    - Applying a rollback writes the record, a rollback_applied Change Log entry
      and the Rollback in ONE commit; a blocked rollback writes only the Rollback
    - Selective rollback touches only the requested fields
    - cancel_rollback is legal only from pending or conflict

Design Decisions:
    - Stored states win over states derived from the Change Log when ids collide
    - rolled_back_from names the latest Change Log entry of the record, so two
      rollbacks can never claim the same synthetic "current" state
"""

import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from tierledger.config import Settings, get_settings
from tierledger.core.domain_types import ChangeType, RollbackStatus, RollbackType
from tierledger.core.errors import (
    ErrorContext, RecordValidationError, ResourceNotFoundError, RollbackConflictError,
)
from tierledger.core.record_fields import RecordField, copy_fields, parse_fields
from tierledger.core.record_snapshot import copy_record, record_to_snapshot
from tierledger.core.records import (
    ChangeLogEntry, PreviousState, Record, Rollback, RollbackConflict, utc_now,
)
from tierledger.core.rollback_rules import (
    build_previous_state, change_log_id_from_state, check_rollback_transition,
    current_state_marker, derive_state, detect_conflicts, detect_field_conflicts,
    is_blocked,
)
from tierledger.infrastructure.record_locks import RecordLockRegistry
from tierledger.services.ledger_stores import LedgerStores, committing, new_id

logger = logging.getLogger(__name__)


class RollbackEngine:
    def __init__(
        self,
        db: AsyncSession,
        locks: RecordLockRegistry,
        settings: Settings | None = None,
        stores: LedgerStores | None = None,
    ):
        self.db = db
        self.locks = locks
        self.settings = settings or get_settings()
        self.stores = stores or LedgerStores.for_session(db)

    # ─── Previous states ─────────────────────────────────────────

    async def _require_record(self, feature: str, record_id: str) -> Record:
        record = await self.stores.records.get(feature, record_id)
        if record is None:
            raise ResourceNotFoundError(
                "Record", record_id, ErrorContext(feature=feature, record_id=record_id),
            )
        return record

    async def store_previous_state(
        self,
        feature: str,
        record: Record,
        change_log_id: str,
        reason: str | None = None,
    ) -> PreviousState:
        """Make a snapshot of record addressable as state-<change_log_id>.

        The caller owns the Change Log write the snapshot belongs to.
        """
        state = build_previous_state(record, change_log_id, reason, utc_now())
        async with committing(self.db):
            await self.stores.states.save(feature, state)
        logger.info(
            f"Stored previous state {state.id}",
            extra={"feature": feature, "record_id": record.id, "change_log_id": change_log_id},
        )
        return state

    async def get_available_states(
        self, feature: str, record_id: str,
    ) -> list[PreviousState]:
        """Stored and Change Log derived states of a record, most recent first."""
        current = await self._require_record(feature, record_id)
        entries = await self.stores.changes.list_for_record(feature, record_id)
        position = {e.id: i for i, e in enumerate(entries)}

        states: dict[str, PreviousState] = {}
        for entry in entries:
            derived = derive_state(entry, current)
            if derived is not None:
                states[derived.id] = derived
        for stored in await self.stores.states.list_for_record(feature, record_id):
            states[stored.id] = stored

        return sorted(
            states.values(),
            key=lambda s: (s.timestamp, position.get(s.change_log_id, -1)),
            reverse=True,
        )

    async def _resolve_state(
        self, feature: str, current: Record, state_id: str,
    ) -> PreviousState:
        context = ErrorContext(feature=feature, record_id=current.id)
        state = await self.stores.states.get(feature, state_id)
        owner = state.record_id if state else None
        if state is None:
            change_log_id = change_log_id_from_state(state_id)
            entry = (
                await self.stores.changes.get(feature, change_log_id)
                if change_log_id else None
            )
            if entry is not None and entry.before:
                owner = entry.record_id
                if owner == current.id:
                    state = derive_state(entry, current)
        if owner is None:
            raise ResourceNotFoundError("State", state_id, context)
        if owner != current.id:
            raise RecordValidationError(
                f"State {state_id} does not belong to record {current.id}",
                "state_id", context,
            )
        return state

    # ─── Rollback ────────────────────────────────────────────────

    async def rollback_to_state(
        self,
        feature: str,
        record_id: str,
        state_id: str,
        reason: str | None = None,
        author: str | None = None,
    ) -> Rollback:
        """Full rollback. Conflicts leave the record untouched (status conflict)."""
        return await self._execute(feature, record_id, state_id, None, reason, author, False)

    async def rollback_fields(
        self,
        feature: str,
        record_id: str,
        state_id: str,
        fields: Iterable[str],
        reason: str | None = None,
        author: str | None = None,
    ) -> Rollback:
        """Selective rollback of the listed fields only."""
        parsed = parse_fields(fields)
        return await self._execute(feature, record_id, state_id, parsed, reason, author, False)

    async def rollback_with_conflict_check(
        self,
        feature: str,
        record_id: str,
        state_id: str,
        fields: Iterable[str] | None = None,
        reason: str | None = None,
        author: str | None = None,
    ) -> Rollback:
        """Like rollback_to_state / rollback_fields, but a blocking conflict
        raises RollbackConflictError and nothing is recorded."""
        parsed = parse_fields(fields) if fields is not None else None
        return await self._execute(feature, record_id, state_id, parsed, reason, author, True)

    async def _execute(
        self,
        feature: str,
        record_id: str,
        state_id: str,
        fields: list[RecordField] | None,
        reason: str | None,
        author: str | None,
        raise_on_conflict: bool,
    ) -> Rollback:
        context = ErrorContext(feature=feature, record_id=record_id)
        current = await self._require_record(feature, record_id)
        state = await self._resolve_state(feature, current, state_id)
        lock_ids = [record_id, state.state.parent_id or ""]

        async with self.locks.hold(feature, lock_ids):
            async with committing(self.db):
                # Re-read under the lock: another writer may have committed meanwhile
                current = await self._require_record(feature, record_id)
                snapshot = state.state
                parent_exists = (
                    snapshot.parent_id is None
                    or await self.stores.records.get(feature, snapshot.parent_id) is not None
                )
                if fields is None:
                    conflicts = detect_conflicts(
                        current, snapshot, parent_exists, self.settings.stale_state_hours,
                    )
                else:
                    conflicts = detect_field_conflicts(current, snapshot, fields, parent_exists)

                latest = await self.stores.changes.latest_for_record(feature, record_id)
                rollback = Rollback(
                    id=new_id("rb"),
                    timestamp=utc_now(),
                    author=author or self.settings.default_author,
                    record_id=record_id,
                    rolled_back_to=state.id,
                    rolled_back_from=current_state_marker(
                        record_id, latest.id if latest else None,
                    ),
                    type=RollbackType.FULL if fields is None else RollbackType.SELECTIVE,
                    fields=[f.value for f in fields] if fields is not None else None,
                    reason=reason,
                    conflicts=conflicts,
                )

                if is_blocked(conflicts, self.settings.rollback_block_on_advisory):
                    if raise_on_conflict:
                        raise RollbackConflictError(conflicts, context)
                    check_rollback_transition(rollback.status, RollbackStatus.CONFLICT)
                    rollback.status = RollbackStatus.CONFLICT
                    await self.stores.rollbacks.append(feature, rollback)
                else:
                    await self._apply(feature, current, snapshot, state, fields, rollback)

        self._log_outcome(feature, rollback, conflicts)
        return rollback

    async def _apply(
        self,
        feature: str,
        current: Record,
        snapshot: Record,
        state: PreviousState,
        fields: list[RecordField] | None,
        rollback: Rollback,
    ) -> None:
        if fields is None:
            restored = copy_record(snapshot)
            restored.id = current.id
            restored.tier = current.tier
        else:
            restored = copy_record(current)
            copy_fields(restored, snapshot, fields)
        restored.updated_at = rollback.timestamp

        await self.stores.records.put(feature, restored)
        await self.stores.changes.append(feature, ChangeLogEntry(
            id=new_id("chg"),
            timestamp=rollback.timestamp,
            author=rollback.author,
            change_type=ChangeType.ROLLBACK_APPLIED,
            tier=current.tier,
            record_id=current.id,
            before=record_to_snapshot(current),
            after=record_to_snapshot(restored),
            reason=rollback.reason or f"rollback to {state.id}",
            related_changes=(state.change_log_id,),
        ))
        check_rollback_transition(rollback.status, RollbackStatus.COMPLETED)
        rollback.status = RollbackStatus.COMPLETED
        await self.stores.rollbacks.append(feature, rollback)

    def _log_outcome(
        self, feature: str, rollback: Rollback, conflicts: list[RollbackConflict],
    ) -> None:
        extra = {
            "feature": feature, "record_id": rollback.record_id, "rollback_id": rollback.id,
        }
        if conflicts:
            kinds = ", ".join(c.type.value for c in conflicts)
            logger.warning(
                f"Rollback {rollback.status.value} with conflicts: {kinds}", extra=extra,
            )
        else:
            logger.info(
                f"Rollback {rollback.type.value} to {rollback.rolled_back_to} "
                f"{rollback.status.value}",
                extra=extra,
            )

    # ─── History ─────────────────────────────────────────────────

    async def get_rollback_history(
        self, feature: str, record_id: str | None = None,
    ) -> list[Rollback]:
        return await self.stores.rollbacks.list_all(feature, record_id)

    async def get_rollback(self, feature: str, rollback_id: str) -> Rollback:
        rollback = await self.stores.rollbacks.get(feature, rollback_id)
        if rollback is None:
            raise ResourceNotFoundError(
                "Rollback", rollback_id, ErrorContext(feature=feature),
            )
        return rollback

    async def cancel_rollback(self, feature: str, rollback_id: str) -> Rollback:
        rollback = await self.get_rollback(feature, rollback_id)
        async with self.locks.hold(feature, [rollback.record_id]):
            async with committing(self.db):
                rollback = await self.get_rollback(feature, rollback_id)
                check_rollback_transition(rollback.status, RollbackStatus.CANCELLED)
                rollback.status = RollbackStatus.CANCELLED
                await self.stores.rollbacks.update(feature, rollback)

        logger.info(
            "Rollback cancelled",
            extra={"feature": feature, "record_id": rollback.record_id, "rollback_id": rollback_id},
        )
        return rollback
