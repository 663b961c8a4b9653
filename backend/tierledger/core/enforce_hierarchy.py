"""Hierarchy Enforcement — tier/parent consistency for new and moved records.

Invariants:
    - All functions are PURE: no IO, no async, no DB, no side effects
    - parent_id is None iff tier == feature
    - A parent must exist and sit exactly one tier above its child
    - cancelled is terminal for ordinary updates (rollback restores past states freely)
"""

from tierledger.core.domain_types import RecordStatus, Tier
from tierledger.core.errors import (
    ErrorContext, InvalidTransitionError, RecordValidationError, ResourceNotFoundError,
)
from tierledger.core.records import ParsedComponents, Record
from tierledger.core.scope_rules import parent_tier


def validate_parsed_components(components: ParsedComponents) -> None:
    """Required fields and enum membership of parser output."""
    if not components.title or not components.title.strip():
        raise RecordValidationError("Title is required", "title")
    if not isinstance(components.tier, Tier):
        raise RecordValidationError(f"Invalid tier: {components.tier}", "tier")
    if components.status is not None and not isinstance(components.status, RecordStatus):
        raise RecordValidationError(f"Invalid status: {components.status}", "status")
    if components.tier == Tier.FEATURE and components.parent_id:
        raise RecordValidationError(
            "Feature records cannot have a parent", "parent_id",
        )
    if components.tier != Tier.FEATURE and not components.parent_id:
        raise RecordValidationError(
            f"A {components.tier.value} record requires a parent_id", "parent_id",
        )


def check_parent(
    tier: Tier,
    parent_id: str | None,
    parent: Record | None,
    context: ErrorContext | None = None,
) -> None:
    """Raise unless parent_id resolves to a record exactly one tier above."""
    expected = parent_tier(tier)
    if expected is None:
        if parent_id is not None:
            raise RecordValidationError(
                "Feature records cannot have a parent", "parent_id", context,
            )
        return

    if parent_id is None:
        raise RecordValidationError(
            f"A {tier.value} record requires a parent_id", "parent_id", context,
        )
    if parent is None:
        raise ResourceNotFoundError("Parent record", parent_id, context)
    if parent.tier != expected:
        raise RecordValidationError(
            f"Parent {parent_id} is a {parent.tier.value}; a {tier.value} "
            f"must sit under a {expected.value}",
            "parent_id", context,
        )


def check_status_change(current: RecordStatus, target: RecordStatus) -> None:
    """Ordinary updates may not leave the terminal cancelled state."""
    if current == RecordStatus.CANCELLED and target != RecordStatus.CANCELLED:
        raise InvalidTransitionError("Record", current.value, target.value)
