"""Record Service — creation pipeline, ordinary updates, reads and roll-up summaries.

Invariants:
    - A record is persisted together with its record_created Change Log entry
    - Every update appends one Change Log entry (full before/after snapshots)
      and stores the pre-change state as state-<change id>
    - strict scope mode and every NotFound/validation failure leave the store untouched
    - Updates hold the record lock from read through commit

Design Decisions:
    - Parsing free text is the caller's job: the pipeline starts at ParsedComponents
    - A no-op update (values already equal) writes nothing
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from tierledger.config import Settings, get_settings
from tierledger.core.aggregate_details import RecordSummary, generate_summary
from tierledger.core.domain_types import ChangeType, RecordStatus, ScopeMode
from tierledger.core.enforce_hierarchy import (
    check_parent, check_status_change, validate_parsed_components,
)
from tierledger.core.enforce_scope import ScopeEnforcement, enforce_scope
from tierledger.core.errors import ErrorContext, RecordValidationError, ResourceNotFoundError
from tierledger.core.record_fields import RecordField, apply_changes, change_type_for, coerce_changes
from tierledger.core.record_snapshot import copy_record, record_to_snapshot
from tierledger.core.records import ChangeLogEntry, ParsedComponents, Record, utc_now
from tierledger.core.rollback_rules import build_previous_state
from tierledger.infrastructure.record_locks import RecordLockRegistry
from tierledger.services.ledger_stores import LedgerStores, committing, new_id

logger = logging.getLogger(__name__)


class RecordService:
    """Create, update and read planning records within a feature namespace."""

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

    # --- Reads ---------------------------------------------------------------

    async def get_record(self, feature: str, record_id: str) -> Record:
        record = await self.stores.records.get(feature, record_id)
        if record is None:
            raise ResourceNotFoundError(
                "Record", record_id, ErrorContext(feature=feature, record_id=record_id),
            )
        return record

    async def list_records(self, feature: str) -> list[Record]:
        return await self.stores.records.list_all(feature)

    async def list_children(self, feature: str, parent_id: str) -> list[Record]:
        await self.get_record(feature, parent_id)
        return await self.stores.records.list_children(feature, parent_id)

    async def summarize(self, feature: str, record_id: str) -> RecordSummary:
        parent = await self.get_record(feature, record_id)
        children = await self.stores.records.list_children(feature, record_id)
        return generate_summary(parent, children)

    # --- Creation pipeline ---------------------------------------------------

    async def create_record(
        self,
        feature: str,
        components: ParsedComponents,
        mode: ScopeMode | None = None,
        author: str | None = None,
    ) -> ScopeEnforcement:
        """Validate, scope and persist a new record.

        Returns the enforcement outcome; its record is what was persisted.
        """
        validate_parsed_components(components)
        record_id = components.record_id or new_id(components.tier.value)
        context = ErrorContext(feature=feature, record_id=record_id)
        mode = mode or self.settings.scope_enforcement_mode

        async with self.locks.hold(feature, [record_id]):
            async with committing(self.db):
                if await self.stores.records.get(feature, record_id) is not None:
                    raise RecordValidationError(
                        f"Record '{record_id}' already exists", "record_id", context,
                    )
                parent = None
                if components.parent_id:
                    parent = await self.stores.records.get(feature, components.parent_id)
                check_parent(components.tier, components.parent_id, parent, context)

                now = utc_now()
                draft = Record(
                    id=record_id,
                    tier=components.tier,
                    title=components.title.strip(),
                    parent_id=components.parent_id,
                    description=components.description,
                    status=components.status or RecordStatus.PENDING,
                    priority=components.priority,
                    tags=set(components.tags),
                    blocked_by=list(components.dependencies),
                    planning_doc_path=components.planning_doc_path,
                    planning_doc_section=components.planning_doc_section,
                    created_at=now,
                    updated_at=now,
                )
                outcome = enforce_scope(draft, parent, mode, context=context)

                await self.stores.records.put(feature, outcome.record)
                await self.stores.changes.append(feature, ChangeLogEntry(
                    id=new_id("chg"),
                    timestamp=now,
                    author=author or self.settings.default_author,
                    change_type=ChangeType.RECORD_CREATED,
                    tier=outcome.record.tier,
                    record_id=record_id,
                    before=None,
                    after=record_to_snapshot(outcome.record),
                    reason="record created",
                ))

        logger.info(
            f"Created {components.tier.value} record",
            extra={"feature": feature, "record_id": record_id},
        )
        if outcome.violations or outcome.errors:
            logger.warning(
                f"Record created with {len(outcome.violations)} scope violation(s) "
                f"in {mode.value} mode",
                extra={"feature": feature, "record_id": record_id, "mode": mode.value},
            )
        return outcome

    # --- Ordinary updates ----------------------------------------------------

    async def update_record(
        self,
        feature: str,
        record_id: str,
        changes: dict[str, object],
        author: str | None = None,
        reason: str | None = None,
    ) -> Record:
        """Apply field changes, log them and keep the prior state addressable."""
        typed = coerce_changes(changes)
        context = ErrorContext(feature=feature, record_id=record_id)

        async with self.locks.hold(feature, [record_id]):
            async with committing(self.db):
                current = await self.get_record(feature, record_id)

                if RecordField.STATUS in typed:
                    check_status_change(current.status, typed[RecordField.STATUS])
                new_parent = typed.get(RecordField.PARENT_ID, current.parent_id)
                if RecordField.PARENT_ID in typed and new_parent != current.parent_id:
                    parent = None
                    if new_parent:
                        parent = await self.stores.records.get(feature, new_parent)
                    check_parent(current.tier, new_parent, parent, context)

                updated = copy_record(current)
                apply_changes(updated, typed)
                changed = [
                    f for f in typed
                    if getattr(updated, f.value) != getattr(current, f.value)
                ]
                if not changed:
                    return current

                now = utc_now()
                updated.updated_at = now
                entry = ChangeLogEntry(
                    id=new_id("chg"),
                    timestamp=now,
                    author=author or self.settings.default_author,
                    change_type=change_type_for(changed),
                    tier=current.tier,
                    record_id=record_id,
                    before=record_to_snapshot(current),
                    after=record_to_snapshot(updated),
                    reason=reason,
                )
                await self.stores.records.put(feature, updated)
                await self.stores.changes.append(feature, entry)
                await self.stores.states.save(
                    feature, build_previous_state(current, entry.id, reason, now),
                )

        logger.info(
            f"Updated record ({entry.change_type.value}): "
            f"{', '.join(f.value for f in changed)}",
            extra={"feature": feature, "record_id": record_id, "change_log_id": entry.id},
        )
        return updated
