"""Scope Enforcement — validates a record's scope and applies strict/warn/auto modes.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - The input record is never mutated; enforcement works on a copy
    - strict: raises ScopeViolationError, nothing to persist
    - warn: record returned unchanged, violations reported only
    - auto: description spans of forbidden details replaced by a placeholder

Design Decisions:
    - Separated from detect_scope_creep: detection finds problems, enforcement
      decides what to do about them (ADR: responsibility separation)
    - A missing scope is resolved (inherit or default) before validating,
      so validation never fails just because assign_scope has not run yet
"""

from dataclasses import dataclass, field

from tierledger.core.detect_scope_creep import (
    detect_scope_creep, redact_forbidden_details,
)
from tierledger.core.domain_types import ScopeMode, ViolationType
from tierledger.core.errors import ScopeViolationError, ErrorContext
from tierledger.core.record_snapshot import copy_record
from tierledger.core.records import Record, Scope, ScopeError, ScopeValidation, ScopeViolation
from tierledger.core.scope_matchers import DEFAULT_MATCHERS, DetailMatcherTable
from tierledger.core.scope_rules import default_scope, expected_abstraction, inherit_scope


@dataclass
class ScopeEnforcement:
    """Outcome of enforce_scope in warn/auto mode."""
    record: Record
    violations: list[ScopeViolation] = field(default_factory=list)
    errors: list[ScopeError] = field(default_factory=list)
    redacted: bool = False


def resolve_scope(record: Record, parent: Record | None = None) -> Scope:
    """Existing scope, else inherited from parent, else the tier default."""
    if record.scope is not None:
        return record.scope
    if parent is not None:
        return inherit_scope(parent, record.tier)
    return default_scope(record.tier)


def validate_scope(
    record: Record,
    parent: Record | None = None,
    matchers: DetailMatcherTable = DEFAULT_MATCHERS,
) -> ScopeValidation:
    """Check level, abstraction, inheritance and scope creep."""
    candidate = copy_record(record)
    candidate.scope = resolve_scope(record, parent)
    scope = candidate.scope
    errors: list[ScopeError] = []

    if scope.level != candidate.tier:
        errors.append(ScopeError(
            "scope_tier_mismatch",
            f"Scope level {scope.level.value} does not match tier {candidate.tier.value}",
        ))

    expected = expected_abstraction(candidate.tier)
    if scope.abstraction != expected:
        errors.append(ScopeError(
            "abstraction_mismatch",
            f"Abstraction {scope.abstraction.value} not appropriate for tier "
            f"{candidate.tier.value} (expected {expected.value})",
        ))

    if (
        parent is not None
        and scope.inherited_from is not None
        and scope.inherited_from != parent.id
    ):
        errors.append(ScopeError(
            "inheritance_mismatch",
            f"Scope inherited from {scope.inherited_from}, parent is {parent.id}",
        ))

    violations = detect_scope_creep(candidate, matchers)
    if violations:
        errors.append(ScopeError(
            "scope_creep", f"Found {len(violations)} scope violation(s)",
        ))

    return ScopeValidation(valid=not errors, errors=errors, violations=violations)


def enforce_scope(
    record: Record,
    parent: Record | None = None,
    mode: ScopeMode = ScopeMode.WARN,
    matchers: DetailMatcherTable = DEFAULT_MATCHERS,
    context: ErrorContext | None = None,
) -> ScopeEnforcement:
    """Validate and react according to mode. Raises only in strict mode."""
    validation = validate_scope(record, parent, matchers)
    result = copy_record(record)
    result.scope = resolve_scope(record, parent)

    if validation.valid:
        return ScopeEnforcement(record=result)

    if mode == ScopeMode.STRICT:
        raise ScopeViolationError(validation.violations, validation.errors, context)

    if mode == ScopeMode.WARN:
        return ScopeEnforcement(
            record=result, violations=validation.violations, errors=validation.errors,
        )

    redacted = False
    for violation in validation.violations:
        if (
            violation.type == ViolationType.FORBIDDEN_DETAIL
            and violation.location == "description"
            and violation.category
        ):
            new_text = redact_forbidden_details(
                result.description, violation.category, matchers,
            )
            if new_text != result.description:
                result.description = new_text
                redacted = True

    return ScopeEnforcement(
        record=result,
        violations=validation.violations,
        errors=validation.errors,
        redacted=redacted,
    )
