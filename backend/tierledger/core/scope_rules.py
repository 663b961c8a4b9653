"""Scope Rules — canonical per-tier scope templates and abstraction inheritance.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - default_scope returns a fresh Scope each call (callers may mutate it)
    - inherit_scope narrows exactly one ladder step below the parent,
      clamped to the floor and never above the child tier's own ceiling
    - Abstraction is non-increasing in detail as tier deepens
"""

from dataclasses import replace

from tierledger.core.domain_types import (
    ABSTRACTION_LADDER, TIER_ORDER, Abstraction, DetailLevel, Tier,
)
from tierledger.core.records import Record, Scope


_TEMPLATES: dict[Tier, Scope] = {
    Tier.FEATURE: Scope(
        level=Tier.FEATURE,
        abstraction=Abstraction.HIGH,
        detail_level=DetailLevel.HIGH_LEVEL,
        allowed_details=frozenset({"objectives", "phases", "milestones"}),
        forbidden_details=frozenset({
            "implementation", "specific_technologies", "code",
        }),
    ),
    Tier.PHASE: Scope(
        level=Tier.PHASE,
        abstraction=Abstraction.MEDIUM_HIGH,
        detail_level=DetailLevel.FOCUSED,
        allowed_details=frozenset({
            "objectives", "sessions", "dependencies", "high_level_tasks",
        }),
        forbidden_details=frozenset({
            "implementation_details", "specific_apis", "code_snippets",
        }),
    ),
    Tier.SESSION: Scope(
        level=Tier.SESSION,
        abstraction=Abstraction.MEDIUM,
        detail_level=DetailLevel.FOCUSED,
        allowed_details=frozenset({
            "objectives", "tasks", "dependencies", "approach",
        }),
        forbidden_details=frozenset({
            "specific_code", "detailed_implementation_steps",
        }),
    ),
    Tier.TASK: Scope(
        level=Tier.TASK,
        abstraction=Abstraction.LOW,
        detail_level=DetailLevel.GRANULAR,
        allowed_details=frozenset({"all"}),
        forbidden_details=frozenset(),
    ),
}


def default_scope(tier: Tier) -> Scope:
    """Canonical scope template for a tier."""
    return replace(_TEMPLATES[tier])


def expected_abstraction(tier: Tier) -> Abstraction:
    return _TEMPLATES[tier].abstraction


def parent_tier(tier: Tier) -> Tier | None:
    """Tier immediately above, or None for feature."""
    index = TIER_ORDER.index(tier)
    return TIER_ORDER[index - 1] if index > 0 else None


def narrow_abstraction(parent: Abstraction, child_tier: Tier) -> Abstraction:
    """One step down the ladder from parent, clamped to [child ceiling, floor]."""
    stepped = min(ABSTRACTION_LADDER.index(parent) + 1, len(ABSTRACTION_LADDER) - 1)
    ceiling = ABSTRACTION_LADDER.index(expected_abstraction(child_tier))
    return ABSTRACTION_LADDER[max(stepped, ceiling)]


def inherit_scope(parent: Record, child_tier: Tier) -> Scope:
    """Derive a child's scope from its parent.

    A parent without a scope is treated as carrying its tier's default.
    """
    parent_scope = parent.scope or default_scope(parent.tier)
    scope = default_scope(child_tier)
    scope.inherited_from = parent.id
    scope.abstraction = narrow_abstraction(parent_scope.abstraction, child_tier)
    return scope
