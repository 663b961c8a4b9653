"""Scope Creep Detection — finds details in a record that its scope forbids.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - Deterministic: forbidden categories are checked in sorted order, so two
      calls on unchanged text return identical violation lists
    - A record without a scope yields no violations
    - Redaction only touches the description; the title is never rewritten
"""

from tierledger.core.domain_types import (
    Abstraction, CorrectionType, DetailLevel, REDACTION_PLACEHOLDER, ViolationType,
)
from tierledger.core.records import Record, ScopeCorrection, ScopeViolation
from tierledger.core.scope_matchers import (
    ACTION_VERBS, DEFAULT_MATCHERS, GRANULAR_MARKERS, TIER_KEYWORDS,
    DetailMatcherTable,
)


def detect_scope_creep(
    record: Record, matchers: DetailMatcherTable = DEFAULT_MATCHERS,
) -> list[ScopeViolation]:
    """Run every forbidden-category matcher plus the tier/granularity checks."""
    scope = record.scope
    if scope is None:
        return []

    violations: list[ScopeViolation] = []
    text = record.text

    for category in sorted(scope.forbidden_details):
        if not matchers.matches(category, text):
            continue
        violations.append(ScopeViolation(
            type=ViolationType.FORBIDDEN_DETAIL,
            detail_type=matchers.family(category),
            category=category,
            location=find_detail_location(record, category, matchers),
            description=f"Record contains forbidden detail type: {category}",
        ))

    if scope.abstraction == Abstraction.HIGH and contains_mid_tier_details(text):
        violations.append(ScopeViolation(
            type=ViolationType.ABSTRACTION_VIOLATION,
            description="High-abstraction record contains mid-tier details",
        ))

    if scope.detail_level == DetailLevel.HIGH_LEVEL and contains_granular_details(text):
        violations.append(ScopeViolation(
            type=ViolationType.DETAIL_LEVEL_VIOLATION,
            description="High-level record contains granular details",
        ))

    return violations


def find_detail_location(
    record: Record, category: str, matchers: DetailMatcherTable = DEFAULT_MATCHERS,
) -> str:
    """'description' when the description alone matches, else 'title'."""
    if record.description and matchers.matches(category, record.description):
        return "description"
    if matchers.matches(category, record.title):
        return "title"
    return "unknown"


def contains_mid_tier_details(text: str) -> bool:
    """Tier keyword and action verb co-occur."""
    return bool(TIER_KEYWORDS.search(text)) and bool(ACTION_VERBS.search(text))


def contains_granular_details(text: str) -> bool:
    return bool(GRANULAR_MARKERS.search(text))


def redact_forbidden_details(
    text: str, category: str, matchers: DetailMatcherTable = DEFAULT_MATCHERS,
) -> str:
    """Replace every matched span of the category with the placeholder."""
    spans = matchers.find_spans(category, text)
    if not spans:
        return text
    parts: list[str] = []
    cursor = 0
    for start, end in spans:
        parts.append(text[cursor:start])
        parts.append(REDACTION_PLACEHOLDER)
        cursor = end
    parts.append(text[cursor:])
    return "".join(parts)


def suggest_corrections(violations: list[ScopeViolation]) -> list[ScopeCorrection]:
    """Map violations to human-actionable corrections."""
    suggestions: list[ScopeCorrection] = []
    for violation in violations:
        if violation.type == ViolationType.FORBIDDEN_DETAIL:
            suggestions.append(ScopeCorrection(
                type=CorrectionType.MOVE_DETAIL,
                detail=violation.category or violation.detail_type or "detail",
                suggested_location="task",
                reason="Detail is too granular for this tier",
            ))
        elif violation.type == ViolationType.ABSTRACTION_VIOLATION:
            suggestions.append(ScopeCorrection(
                type=CorrectionType.SUMMARIZE_DETAIL,
                detail=violation.description,
                suggested_summary=violation.description[:50] + "...",
                reason="Detail should be summarized for this abstraction level",
            ))
        elif violation.type == ViolationType.DETAIL_LEVEL_VIOLATION:
            suggestions.append(ScopeCorrection(
                type=CorrectionType.REMOVE_DETAIL,
                detail=violation.description,
                reason="Sequencing and code belong in lower tiers",
            ))
    return suggestions
