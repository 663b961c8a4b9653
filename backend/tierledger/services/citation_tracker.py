"""Citation Tracker — audit citations linking Change Log entries to records.

Invariants:
    - A citation is only created for an existing Change Log entry
    - reviewed_at is set at most once and never cleared
    - Review and dismissal exclude each other (InvalidTransitionError);
      repeating the same action is a no-op
    - Lookups hide reviewed and dismissed citations; queries do not

Design Decisions:
    - Filtering and ranking are pure (core/citation_rules.py); this module
      only loads, locks and persists
"""

import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from tierledger.config import Settings, get_settings
from tierledger.core.citation_rules import (
    CitationFilters, at_least_priority, check_dismiss, check_review,
    citation_type_for_change, determine_priority, matches_filters,
    metadata_from_change, prioritize_citations,
)
from tierledger.core.domain_types import (
    PRIORITY_ORDER, CitationContext, CitationType, Priority,
)
from tierledger.core.errors import ErrorContext, RecordValidationError, ResourceNotFoundError
from tierledger.core.lookup_triggers import TriggerDefinition, TriggerEvidence, detect_triggers
from tierledger.core.records import Citation, CitationMetadata, utc_now
from tierledger.infrastructure.record_locks import RecordLockRegistry
from tierledger.services.ledger_stores import LedgerStores, committing, new_id

logger = logging.getLogger(__name__)


class CitationTracker:
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

    # --- Creation -----------------------------------------------------------

    async def _stage_citation(
        self,
        feature: str,
        record_id: str,
        change_log_id: str,
        type: CitationType,
        context: Iterable[CitationContext],
        priority: Priority,
        metadata: CitationMetadata | None,
    ) -> Citation:
        citation = Citation(
            id=new_id("cit"),
            record_id=record_id,
            change_log_id=change_log_id,
            type=type,
            context=tuple(dict.fromkeys(context)),
            priority=priority,
            created_at=utc_now(),
            metadata=metadata or CitationMetadata(),
        )
        await self.stores.citations.add(feature, citation)
        return citation

    async def _require_change(self, feature: str, record_id: str, change_log_id: str):
        entry = await self.stores.changes.get(feature, change_log_id)
        if entry is None:
            raise RecordValidationError(
                f"Change log entry '{change_log_id}' does not exist",
                "change_log_id", ErrorContext(feature=feature, record_id=record_id),
            )
        return entry

    async def create_citation(
        self,
        feature: str,
        record_id: str,
        change_log_id: str,
        type: CitationType,
        context: Iterable[CitationContext],
        priority: Priority,
        metadata: CitationMetadata | None = None,
    ) -> Citation:
        async with committing(self.db):
            await self._require_change(feature, record_id, change_log_id)
            citation = await self._stage_citation(
                feature, record_id, change_log_id, type, context, priority, metadata,
            )
        logger.info(
            f"Citation created ({type.value}, {priority.value})",
            extra={"feature": feature, "record_id": record_id, "citation_id": citation.id},
        )
        return citation

    async def create_citation_from_change(
        self,
        feature: str,
        record_id: str,
        change_log_id: str,
        context: Iterable[CitationContext],
    ) -> Citation | None:
        """Derive type, priority and metadata from the entry. None when the
        change kind is not citation-worthy."""
        citations = await self.create_citations_for_change(
            feature, change_log_id, [record_id], context,
        )
        return citations[0] if citations else None

    async def create_citations_for_change(
        self,
        feature: str,
        change_log_id: str,
        record_ids: Iterable[str],
        context: Iterable[CitationContext],
    ) -> list[Citation]:
        """One derived citation per affected record, committed together."""
        record_ids = list(dict.fromkeys(record_ids))
        context = tuple(dict.fromkeys(context))
        citations: list[Citation] = []

        async with committing(self.db):
            entry = await self._require_change(
                feature, record_ids[0] if record_ids else "", change_log_id,
            )
            citation_type = citation_type_for_change(entry.change_type)
            if citation_type is None:
                return []
            priority = determine_priority(entry, context)
            for record_id in record_ids:
                citations.append(await self._stage_citation(
                    feature, record_id, change_log_id, citation_type, context,
                    priority, metadata_from_change(entry),
                ))

        logger.info(
            f"Created {len(citations)} citation(s) from change {change_log_id}",
            extra={"feature": feature, "change_log_id": change_log_id},
        )
        return citations

    # --- Queries -------------------------------------------------------------

    async def lookup_citations(
        self, feature: str, record_id: str, context: CitationContext,
    ) -> list[Citation]:
        """Active citations of a record tagged with the junction, most relevant first."""
        citations = await self.stores.citations.list_all(feature, record_id)
        relevant = [c for c in citations if c.is_active and context in c.context]
        return prioritize_citations(relevant, context, utc_now())

    async def query_citations(
        self, feature: str, filters: CitationFilters,
    ) -> list[Citation]:
        citations = await self.stores.citations.list_all(feature, filters.record_id)
        return [c for c in citations if matches_filters(c, filters)]

    async def get_unreviewed_citations(
        self, feature: str, record_id: str | None = None,
    ) -> list[Citation]:
        citations = await self.stores.citations.list_all(feature, record_id)
        return [c for c in citations if c.is_active]

    async def get_high_priority_citations(
        self,
        feature: str,
        min_priority: Priority = Priority.HIGH,
        record_id: str | None = None,
    ) -> list[Citation]:
        active = await self.get_unreviewed_citations(feature, record_id)
        urgent = [c for c in active if at_least_priority(c, min_priority)]
        return sorted(urgent, key=lambda c: PRIORITY_ORDER.index(c.priority), reverse=True)

    async def get_citation(self, feature: str, record_id: str, citation_id: str) -> Citation:
        citation = await self.stores.citations.get(feature, citation_id)
        if citation is None or citation.record_id != record_id:
            raise ResourceNotFoundError(
                "Citation", citation_id, ErrorContext(feature=feature, record_id=record_id),
            )
        return citation

    # --- Review lifecycle ----------------------------------------------------

    async def review_citation(
        self, feature: str, record_id: str, citation_id: str,
    ) -> Citation:
        async with self.locks.hold(feature, [record_id]):
            async with committing(self.db):
                citation = await self.get_citation(feature, record_id, citation_id)
                if check_review(citation):
                    citation.reviewed_at = utc_now()
                    await self.stores.citations.update(feature, citation)
                    logger.info(
                        "Citation reviewed",
                        extra={"feature": feature, "record_id": record_id,
                               "citation_id": citation_id},
                    )
        return citation

    async def dismiss_citation(
        self, feature: str, record_id: str, citation_id: str,
    ) -> Citation:
        async with self.locks.hold(feature, [record_id]):
            async with committing(self.db):
                citation = await self.get_citation(feature, record_id, citation_id)
                if check_dismiss(citation):
                    citation.dismissed_at = utc_now()
                    await self.stores.citations.update(feature, citation)
                    logger.info(
                        "Citation dismissed",
                        extra={"feature": feature, "record_id": record_id,
                               "citation_id": citation_id},
                    )
        return citation

    # --- Lookup triggers -----------------------------------------------------

    async def detect_triggers(
        self, feature: str, record_id: str, junction: CitationContext,
    ) -> list[TriggerDefinition]:
        """Triggers that fire for a record at a lifecycle junction."""
        evidence = TriggerEvidence(
            citations=await self.stores.citations.list_all(feature, record_id),
            rollbacks=await self.stores.rollbacks.list_all(feature, record_id),
            changes=await self.stores.changes.list_for_record(feature, record_id),
        )
        return detect_triggers(junction, evidence, utc_now())
