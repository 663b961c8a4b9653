"""Lookup Triggers — decide which citation lookups fire at a lifecycle junction.

Invariants:
    - Pure: the evidence (citations, rollbacks, changes for one record) is passed in
    - A trigger fires only when ALL of its conditions hold
    - Only active (unreviewed, undismissed) citations count towards conditions
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from tierledger.core.citation_rules import at_least_priority
from tierledger.core.domain_types import (
    CitationContext, ConflictSeverity, Priority, RollbackStatus,
)
from tierledger.core.records import ChangeLogEntry, Citation, Rollback


class ConditionType(str, Enum):
    HAS_UNREVIEWED_CITATIONS = "has_unreviewed_citations"
    HAS_HIGH_PRIORITY_CITATIONS = "has_high_priority_citations"
    HAS_CITATIONS_IN_CONTEXT = "has_citations_in_context"
    HAS_CONFLICTS = "has_conflicts"
    HAS_RECENT_CHANGES = "has_recent_changes"


class TriggerAction(str, Enum):
    SHOW_CITATIONS = "show_citations"
    BLOCK_UNTIL_REVIEW = "block_until_review"


_SEVERITY_ORDER = (ConflictSeverity.LOW, ConflictSeverity.MEDIUM, ConflictSeverity.HIGH)


@dataclass(frozen=True)
class TriggerCondition:
    type: ConditionType
    priority: Priority | None = None
    severity: ConflictSeverity | None = None
    hours: int | None = None
    context: CitationContext | None = None


@dataclass(frozen=True)
class TriggerDefinition:
    id: str
    name: str
    junction: CitationContext
    conditions: tuple[TriggerCondition, ...]
    priority: Priority
    suppressible: bool
    action: TriggerAction


@dataclass
class TriggerEvidence:
    """Everything the conditions may look at, for one record."""
    citations: list[Citation] = field(default_factory=list)
    rollbacks: list[Rollback] = field(default_factory=list)
    changes: list[ChangeLogEntry] = field(default_factory=list)


def default_triggers() -> tuple[TriggerDefinition, ...]:
    return (
        TriggerDefinition(
            id="trigger-session-start",
            name="session-start-lookup",
            junction=CitationContext.SESSION_START,
            conditions=(
                TriggerCondition(ConditionType.HAS_UNREVIEWED_CITATIONS, priority=Priority.HIGH),
            ),
            priority=Priority.HIGH,
            suppressible=True,
            action=TriggerAction.SHOW_CITATIONS,
        ),
        TriggerDefinition(
            id="trigger-session-checkpoint",
            name="session-checkpoint-lookup",
            junction=CitationContext.SESSION_CHECKPOINT,
            conditions=(TriggerCondition(ConditionType.HAS_RECENT_CHANGES, hours=24),),
            priority=Priority.MEDIUM,
            suppressible=True,
            action=TriggerAction.SHOW_CITATIONS,
        ),
        TriggerDefinition(
            id="trigger-conflict-detection",
            name="conflict-detection-lookup",
            junction=CitationContext.CONFLICT_DETECTION,
            conditions=(
                TriggerCondition(ConditionType.HAS_CONFLICTS, severity=ConflictSeverity.HIGH),
            ),
            priority=Priority.CRITICAL,
            suppressible=False,
            action=TriggerAction.BLOCK_UNTIL_REVIEW,
        ),
        TriggerDefinition(
            id="trigger-phase-start",
            name="phase-start-lookup",
            junction=CitationContext.PHASE_START,
            conditions=(
                TriggerCondition(ConditionType.HAS_UNREVIEWED_CITATIONS, priority=Priority.HIGH),
            ),
            priority=Priority.HIGH,
            suppressible=True,
            action=TriggerAction.SHOW_CITATIONS,
        ),
    )


def _has_conflicts(rollbacks: list[Rollback], severity: ConflictSeverity | None) -> bool:
    minimum = _SEVERITY_ORDER.index(severity) if severity else 0
    return any(
        _SEVERITY_ORDER.index(c.severity) >= minimum
        for r in rollbacks if r.status == RollbackStatus.CONFLICT
        for c in r.conflicts
    )


def evaluate_condition(
    condition: TriggerCondition, evidence: TriggerEvidence, now: datetime,
) -> bool:
    active = [c for c in evidence.citations if c.is_active]

    if condition.type == ConditionType.HAS_UNREVIEWED_CITATIONS:
        if condition.priority:
            return any(at_least_priority(c, condition.priority) for c in active)
        return bool(active)

    if condition.type == ConditionType.HAS_HIGH_PRIORITY_CITATIONS:
        minimum = condition.priority or Priority.HIGH
        return any(at_least_priority(c, minimum) for c in active)

    if condition.type == ConditionType.HAS_CITATIONS_IN_CONTEXT:
        if condition.context is None:
            return False
        return any(condition.context in c.context for c in active)

    if condition.type == ConditionType.HAS_CONFLICTS:
        return _has_conflicts(evidence.rollbacks, condition.severity)

    if condition.type == ConditionType.HAS_RECENT_CHANGES:
        window = timedelta(hours=condition.hours or 24)
        return any(now - e.timestamp <= window for e in evidence.changes)

    return False


def detect_triggers(
    junction: CitationContext,
    evidence: TriggerEvidence,
    now: datetime,
    triggers: tuple[TriggerDefinition, ...] | None = None,
) -> list[TriggerDefinition]:
    """Triggers registered for the junction whose conditions all hold."""
    candidates = triggers if triggers is not None else default_triggers()
    return [
        t for t in candidates
        if t.junction == junction
        and all(evaluate_condition(c, evidence, now) for c in t.conditions)
    ]
