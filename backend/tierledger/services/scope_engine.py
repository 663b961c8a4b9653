"""Scope Engine — assigns, validates and enforces per-record scope against the store.

Invariants:
    - assign_scope is idempotent: a record that already has a scope is returned untouched
    - validate_scope and detect_scope_creep never write
    - enforce_scope persists only in auto mode, and only when text was redacted
    - Every persisted scope change appends a Change Log entry and stores the prior state

Design Decisions:
    - Matcher table injected: new detail categories need no engine change
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from tierledger.config import Settings, get_settings
from tierledger.core.detect_scope_creep import detect_scope_creep, suggest_corrections
from tierledger.core.domain_types import ChangeType, ScopeMode
from tierledger.core.enforce_scope import (
    ScopeEnforcement, enforce_scope, resolve_scope, validate_scope,
)
from tierledger.core.errors import ErrorContext, ResourceNotFoundError
from tierledger.core.record_snapshot import copy_record, record_to_snapshot
from tierledger.core.records import (
    ChangeLogEntry, Record, ScopeCorrection, ScopeValidation, ScopeViolation, utc_now,
)
from tierledger.core.rollback_rules import build_previous_state
from tierledger.core.scope_matchers import DEFAULT_MATCHERS, DetailMatcherTable
from tierledger.infrastructure.record_locks import RecordLockRegistry
from tierledger.services.ledger_stores import LedgerStores, committing, new_id

logger = logging.getLogger(__name__)


class ScopeEngine:
    def __init__(
        self,
        db: AsyncSession,
        locks: RecordLockRegistry,
        settings: Settings | None = None,
        stores: LedgerStores | None = None,
        matchers: DetailMatcherTable = DEFAULT_MATCHERS,
    ):
        self.db = db
        self.locks = locks
        self.settings = settings or get_settings()
        self.stores = stores or LedgerStores.for_session(db)
        self.matchers = matchers

    async def _load(self, feature: str, record_id: str) -> tuple[Record, Record | None]:
        """Record and its parent (None for features or a dangling parent id)."""
        record = await self.stores.records.get(feature, record_id)
        if record is None:
            raise ResourceNotFoundError(
                "Record", record_id, ErrorContext(feature=feature, record_id=record_id),
            )
        parent = None
        if record.parent_id:
            parent = await self.stores.records.get(feature, record.parent_id)
        return record, parent

    async def _persist_change(
        self, feature: str, before: Record, after: Record, author: str | None, reason: str,
    ) -> ChangeLogEntry:
        now = utc_now()
        after.updated_at = now
        entry = ChangeLogEntry(
            id=new_id("chg"),
            timestamp=now,
            author=author or self.settings.default_author,
            change_type=ChangeType.RECORD_UPDATED,
            tier=before.tier,
            record_id=before.id,
            before=record_to_snapshot(before),
            after=record_to_snapshot(after),
            reason=reason,
        )
        await self.stores.records.put(feature, after)
        await self.stores.changes.append(feature, entry)
        await self.stores.states.save(
            feature, build_previous_state(before, entry.id, reason, now),
        )
        return entry

    async def assign_scope(
        self, feature: str, record_id: str, author: str | None = None,
    ) -> Record:
        """Give a scopeless record its inherited (or default) scope."""
        async with self.locks.hold(feature, [record_id]):
            async with committing(self.db):
                record, parent = await self._load(feature, record_id)
                if record.scope is not None:
                    return record
                updated = copy_record(record)
                updated.scope = resolve_scope(record, parent)
                await self._persist_change(
                    feature, record, updated, author, "scope assigned",
                )

        logger.info(
            f"Assigned {updated.scope.abstraction.value} scope",
            extra={"feature": feature, "record_id": record_id},
        )
        return updated

    async def detect_scope_creep(self, feature: str, record_id: str) -> list[ScopeViolation]:
        record, parent = await self._load(feature, record_id)
        candidate = copy_record(record)
        candidate.scope = resolve_scope(record, parent)
        return detect_scope_creep(candidate, self.matchers)

    async def validate_scope(self, feature: str, record_id: str) -> ScopeValidation:
        record, parent = await self._load(feature, record_id)
        return validate_scope(record, parent, self.matchers)

    async def suggest_corrections(self, feature: str, record_id: str) -> list[ScopeCorrection]:
        return suggest_corrections(await self.detect_scope_creep(feature, record_id))

    async def enforce_scope(
        self,
        feature: str,
        record_id: str,
        mode: ScopeMode | None = None,
        author: str | None = None,
    ) -> ScopeEnforcement:
        """Apply the enforcement mode to a stored record.

        strict raises ScopeViolationError and writes nothing; warn reports;
        auto persists the redacted description.
        """
        mode = mode or self.settings.scope_enforcement_mode
        context = ErrorContext(feature=feature, record_id=record_id)

        async with self.locks.hold(feature, [record_id]):
            async with committing(self.db):
                record, parent = await self._load(feature, record_id)
                outcome = enforce_scope(record, parent, mode, self.matchers, context)
                if outcome.redacted:
                    await self._persist_change(
                        feature, record, outcome.record, author,
                        "forbidden details redacted",
                    )

        if outcome.violations:
            logger.warning(
                f"{len(outcome.violations)} scope violation(s) in {mode.value} mode",
                extra={"feature": feature, "record_id": record_id, "mode": mode.value},
            )
        if outcome.redacted:
            logger.info(
                "Redacted forbidden details",
                extra={"feature": feature, "record_id": record_id},
            )
        return outcome
