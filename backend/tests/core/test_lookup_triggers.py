"""Lookup Triggers — which citation lookups fire at a lifecycle junction."""

from datetime import datetime, timedelta, timezone

from tierledger.core.domain_types import (
    ChangeType, CitationContext, CitationType, ConflictSeverity, ConflictType,
    Priority, RollbackStatus, RollbackType, Tier,
)
from tierledger.core.lookup_triggers import (
    ConditionType, TriggerAction, TriggerCondition, TriggerEvidence,
    detect_triggers, evaluate_condition,
)
from tierledger.core.records import ChangeLogEntry, Citation, Rollback, RollbackConflict

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _citation(priority: Priority, **overrides) -> Citation:
    values = dict(
        id="cit-1", record_id="task-1", change_log_id="chg-1",
        type=CitationType.STATUS_CHANGE, context=(CitationContext.SESSION_START,),
        priority=priority, created_at=NOW,
    )
    values.update(overrides)
    return Citation(**values)


def _blocked_rollback(severity: ConflictSeverity) -> Rollback:
    return Rollback(
        id="rb-1", timestamp=NOW, author="a", record_id="task-1",
        rolled_back_to="state-chg-1", rolled_back_from="current-task-1",
        type=RollbackType.FULL, status=RollbackStatus.CONFLICT,
        conflicts=[RollbackConflict(ConflictType.RELATIONSHIP_CONFLICT, "gone", severity)],
    )


def test_session_start_fires_on_high_priority_citation():
    evidence = TriggerEvidence(citations=[_citation(Priority.HIGH)])
    fired = detect_triggers(CitationContext.SESSION_START, evidence, NOW)
    assert [t.id for t in fired] == ["trigger-session-start"]


def test_session_start_ignores_medium_and_reviewed():
    evidence = TriggerEvidence(citations=[
        _citation(Priority.MEDIUM),
        _citation(Priority.CRITICAL, reviewed_at=NOW),
    ])
    assert detect_triggers(CitationContext.SESSION_START, evidence, NOW) == []


def test_triggers_only_fire_at_their_junction():
    evidence = TriggerEvidence(citations=[_citation(Priority.HIGH)])
    fired = detect_triggers(CitationContext.PHASE_START, evidence, NOW)
    assert [t.id for t in fired] == ["trigger-phase-start"]
    assert detect_triggers(CitationContext.TASK_START, evidence, NOW) == []


def test_conflict_detection_blocks_until_review():
    evidence = TriggerEvidence(rollbacks=[_blocked_rollback(ConflictSeverity.HIGH)])
    fired = detect_triggers(CitationContext.CONFLICT_DETECTION, evidence, NOW)
    assert len(fired) == 1
    assert fired[0].action == TriggerAction.BLOCK_UNTIL_REVIEW
    assert not fired[0].suppressible


def test_low_severity_conflicts_do_not_block():
    evidence = TriggerEvidence(rollbacks=[_blocked_rollback(ConflictSeverity.LOW)])
    assert detect_triggers(CitationContext.CONFLICT_DETECTION, evidence, NOW) == []


def test_recent_changes_window():
    recent = ChangeLogEntry(
        id="chg-1", timestamp=NOW - timedelta(hours=2), author="a",
        change_type=ChangeType.RECORD_UPDATED, tier=Tier.TASK, record_id="task-1",
    )
    old = ChangeLogEntry(
        id="chg-0", timestamp=NOW - timedelta(days=3), author="a",
        change_type=ChangeType.RECORD_UPDATED, tier=Tier.TASK, record_id="task-1",
    )
    checkpoint = CitationContext.SESSION_CHECKPOINT
    assert detect_triggers(checkpoint, TriggerEvidence(changes=[recent]), NOW)
    assert detect_triggers(checkpoint, TriggerEvidence(changes=[old]), NOW) == []


def test_context_condition():
    condition = TriggerCondition(
        ConditionType.HAS_CITATIONS_IN_CONTEXT, context=CitationContext.SESSION_START,
    )
    evidence = TriggerEvidence(citations=[_citation(Priority.LOW)])
    assert evaluate_condition(condition, evidence, NOW)
    assert not evaluate_condition(
        TriggerCondition(ConditionType.HAS_CITATIONS_IN_CONTEXT), evidence, NOW,
    )
