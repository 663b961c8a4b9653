"""Citation Rules — derivation, filtering, ranking and review lifecycle for citations.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - reviewed_at is monotonic: nothing here ever clears it
    - Review and dismissal are mutually exclusive terminal markers;
      repeating the same action is a no-op
    - query filters are conjunctive over the fields supplied

Design Decisions:
    - Relevance scoring kept separate from filtering: lookups filter first,
      then rank, so ranking never hides a citation
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from tierledger.core.domain_types import (
    PRIORITY_ORDER, ChangeType, CitationContext, CitationType, Priority,
)
from tierledger.core.errors import InvalidTransitionError
from tierledger.core.records import ChangeLogEntry, Citation, CitationMetadata


_CHANGE_TO_CITATION: dict[ChangeType, CitationType] = {
    ChangeType.RECORD_STATUS_CHANGED: CitationType.STATUS_CHANGE,
    ChangeType.RECORD_UPDATED: CitationType.DESCRIPTION_CHANGE,
    ChangeType.RECORD_MOVED: CitationType.PARENT_CHANGE,
    ChangeType.PLANNING_DOC_UPDATED: CitationType.PLANNING_DOC_CHANGE,
    ChangeType.PLANNING_DOC_SYNCED: CitationType.PLANNING_DOC_CHANGE,
    ChangeType.PROPAGATION_TRIGGERED: CitationType.PROPAGATION_CHANGE,
    ChangeType.PROPAGATION_COMPLETED: CitationType.PROPAGATION_CHANGE,
    ChangeType.PROPAGATION_CONFLICT: CitationType.CONFLICT_DETECTED,
    ChangeType.ROLLBACK_APPLIED: CitationType.ROLLBACK_APPLIED,
}

_PROPAGATION_CHANGES = frozenset({
    ChangeType.PROPAGATION_TRIGGERED,
    ChangeType.PROPAGATION_COMPLETED,
    ChangeType.PROPAGATION_CONFLICT,
})

_PRIORITY_WEIGHT: dict[Priority, int] = {
    Priority.CRITICAL: 4, Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1,
}


# --- Derivation from Change Log entries ---------------------------------------

def citation_type_for_change(change_type: ChangeType) -> CitationType | None:
    """None when the change kind is not citation-worthy (e.g. record_created)."""
    return _CHANGE_TO_CITATION.get(change_type)


def determine_priority(
    entry: ChangeLogEntry, context: tuple[CitationContext, ...],
) -> Priority:
    if CitationContext.CONFLICT_DETECTION in context:
        return Priority.CRITICAL
    if entry.change_type == ChangeType.PROPAGATION_CONFLICT:
        return Priority.CRITICAL
    if entry.change_type == ChangeType.RECORD_STATUS_CHANGED:
        return Priority.HIGH
    if entry.change_type in _PROPAGATION_CHANGES:
        return Priority.HIGH
    return Priority.MEDIUM


def assess_impact(entry: ChangeLogEntry) -> str:
    if entry.change_type == ChangeType.RECORD_STATUS_CHANGED:
        return "affects_record_status"
    if entry.change_type in _PROPAGATION_CHANGES:
        return "affects_multiple_records"
    if entry.change_type == ChangeType.ROLLBACK_APPLIED:
        return "restores_previous_state"
    return "affects_record"


def metadata_from_change(entry: ChangeLogEntry) -> CitationMetadata:
    return CitationMetadata(
        reason=entry.reason,
        impact=assess_impact(entry),
        affected_records=list(entry.related_changes),
    )


# --- Filtering ----------------------------------------------------------------

@dataclass(frozen=True)
class CitationFilters:
    record_id: str | None = None
    change_log_id: str | None = None
    type: CitationType | None = None
    priority: Priority | None = None
    context: CitationContext | None = None
    unreviewed: bool = False


def matches_filters(citation: Citation, filters: CitationFilters) -> bool:
    if filters.record_id and citation.record_id != filters.record_id:
        return False
    if filters.change_log_id and citation.change_log_id != filters.change_log_id:
        return False
    if filters.type and citation.type != filters.type:
        return False
    if filters.priority and citation.priority != filters.priority:
        return False
    if filters.context and filters.context not in citation.context:
        return False
    if filters.unreviewed and citation.reviewed_at is not None:
        return False
    return True


def at_least_priority(citation: Citation, minimum: Priority) -> bool:
    return PRIORITY_ORDER.index(citation.priority) >= PRIORITY_ORDER.index(minimum)


# --- Ranking ------------------------------------------------------------------

def score_citation(citation: Citation, context: CitationContext, now: datetime) -> int:
    """Relevance of a citation at a lifecycle junction. Higher is more relevant."""
    score = _PRIORITY_WEIGHT[citation.priority]

    if citation.reviewed_at is None:
        score += 2

    age = now - citation.created_at
    if age < timedelta(hours=24):
        score += 2
    elif age < timedelta(days=7):
        score += 1

    if context in citation.context:
        score += 2
    else:
        stage = context.value.split("-")[0]
        if any(stage in c.value for c in citation.context):
            score += 1

    return score


def prioritize_citations(
    citations: list[Citation], context: CitationContext, now: datetime,
) -> list[Citation]:
    """Stable sort by descending relevance."""
    return sorted(citations, key=lambda c: score_citation(c, context, now), reverse=True)


# --- Review lifecycle ---------------------------------------------------------

def check_review(citation: Citation) -> bool:
    """True when a review must be recorded, False when already reviewed."""
    if citation.dismissed_at is not None:
        raise InvalidTransitionError("Citation", "dismissed", "reviewed")
    return citation.reviewed_at is None


def check_dismiss(citation: Citation) -> bool:
    """True when a dismissal must be recorded, False when already dismissed."""
    if citation.reviewed_at is not None:
        raise InvalidTransitionError("Citation", "reviewed", "dismissed")
    return citation.dismissed_at is None
