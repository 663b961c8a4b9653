"""Scope Creep Detection — forbidden details, abstraction and detail-level checks.

Tests:
    - Fenced code in a phase description is a forbidden "code" detail
    - Detection is deterministic and idempotent
    - High-abstraction / high-level records flag mid-tier and granular text
    - Custom categories plug into the matcher table without touching detection
    - Redaction replaces matched spans with the placeholder
"""

from tierledger.core.detect_scope_creep import (
    detect_scope_creep, find_detail_location, redact_forbidden_details, suggest_corrections,
)
from tierledger.core.domain_types import (
    REDACTION_PLACEHOLDER, CorrectionType, Tier, ViolationType,
)
from tierledger.core.records import Record
from tierledger.core.scope_matchers import build_default_table
from tierledger.core.scope_rules import default_scope


def _record(tier: Tier, title: str, description: str = "") -> Record:
    return Record(
        id=f"{tier.value}-1", tier=tier, title=title, description=description,
        parent_id=None if tier == Tier.FEATURE else "parent",
        scope=default_scope(tier),
    )


CODE_DESCRIPTION = "Roll out the login flow.\n```\nconst token = issue(user);\n```"


def test_fenced_block_in_phase_is_forbidden_code():
    phase = _record(Tier.PHASE, "Login rollout", CODE_DESCRIPTION)
    violations = detect_scope_creep(phase)
    assert len(violations) == 1
    v = violations[0]
    assert v.type == ViolationType.FORBIDDEN_DETAIL
    assert v.detail_type == "code"
    assert v.category == "code_snippets"
    assert v.location == "description"


def test_detection_is_idempotent():
    phase = _record(Tier.PHASE, "Login rollout", CODE_DESCRIPTION + " api.get(x)")
    assert detect_scope_creep(phase) == detect_scope_creep(phase)


def test_clean_feature_has_no_violations():
    feature = _record(Tier.FEATURE, "Auth revamp", "Modernize sign-in for all users")
    assert detect_scope_creep(feature) == []


def test_record_without_scope_yields_nothing():
    record = Record(id="t", tier=Tier.TASK, title="anything ```x```")
    assert detect_scope_creep(record) == []


def test_feature_with_technology_names():
    feature = _record(Tier.FEATURE, "Auth revamp", "Move the UI to React")
    violations = detect_scope_creep(feature)
    assert [v.category for v in violations] == ["specific_technologies"]


def test_high_abstraction_flags_tier_keyword_with_action_verb():
    feature = _record(Tier.FEATURE, "Auth revamp", "Each session will create tokens")
    types = [v.type for v in detect_scope_creep(feature)]
    assert ViolationType.ABSTRACTION_VIOLATION in types


def test_high_level_flags_sequencing_words():
    feature = _record(Tier.FEATURE, "Auth revamp", "Then migrate the users")
    types = [v.type for v in detect_scope_creep(feature)]
    assert types == [ViolationType.DETAIL_LEVEL_VIOLATION]


def test_task_tier_allows_everything():
    task = _record(Tier.TASK, "Write handler", CODE_DESCRIPTION)
    assert detect_scope_creep(task) == []


def test_location_prefers_description_then_title():
    phase = _record(Tier.PHASE, "Call api.get", "Nothing special")
    assert find_detail_location(phase, "specific_apis") == "title"
    phase.description = "uses api.post"
    assert find_detail_location(phase, "specific_apis") == "description"


def test_custom_category_is_pluggable():
    table = build_default_table()
    table.register("vendor_names", (r"\bacme\b",))
    record = _record(Tier.SESSION, "Integrate", "Wire up ACME billing")
    record.scope.forbidden_details = frozenset({"vendor_names"})
    violations = detect_scope_creep(record, table)
    assert [v.category for v in violations] == ["vendor_names"]
    assert violations[0].detail_type == "vendor_names"


def test_redaction_replaces_fenced_block():
    text = redact_forbidden_details(CODE_DESCRIPTION, "code_snippets")
    assert "```" not in text
    assert text == "Roll out the login flow.\n" + REDACTION_PLACEHOLDER


def test_redaction_without_match_returns_text_unchanged():
    assert redact_forbidden_details("plain words", "code") == "plain words"


def test_corrections_follow_violation_types():
    feature = _record(Tier.FEATURE, "Auth revamp", "Then use React")
    corrections = suggest_corrections(detect_scope_creep(feature))
    assert [c.type for c in corrections] == [
        CorrectionType.MOVE_DETAIL, CorrectionType.REMOVE_DETAIL,
    ]
    assert corrections[0].suggested_location == "task"
