"""Ledger Records — pure dataclasses for every durable and derived entity.

Invariants:
    - Record.parent_id is None iff tier == feature (checked at creation, not on read)
    - Scope.level equals the owning Record's tier
    - ChangeLogEntry is frozen: once written it is never mutated
    - Citation.reviewed_at, once set, is never cleared
    - Rollback.fields is present iff type == selective

Design Decisions:
    - Plain dataclasses, no ORM coupling: core stays free of IO (ADR: functional core)
    - Scope detail categories as frozenset: order-free membership, sorted when iterated
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from tierledger.core.domain_types import (
    Abstraction, ChangeType, CitationContext, CitationType, ConflictSeverity,
    ConflictType, CorrectionType, DetailLevel, Priority, RecordStatus,
    RollbackStatus, RollbackType, Tier, ViolationType,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Scope:
    """Per-record abstraction contract."""
    level: Tier
    abstraction: Abstraction
    detail_level: DetailLevel
    allowed_details: frozenset[str] = frozenset()
    forbidden_details: frozenset[str] = frozenset()
    inherited_from: str | None = None


@dataclass
class Record:
    """A planning unit: feature, phase, session or task."""
    id: str
    tier: Tier
    title: str
    parent_id: str | None = None
    description: str = ""
    status: RecordStatus = RecordStatus.PENDING
    priority: Priority | None = None
    tags: set[str] = field(default_factory=set)
    blocked_by: list[str] = field(default_factory=list)
    planning_doc_path: str = ""
    planning_doc_section: str = ""
    scope: Scope | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def text(self) -> str:
        """Title and description joined — the surface scope rules inspect."""
        return f"{self.title} {self.description}"


@dataclass(frozen=True)
class ChangeLogEntry:
    """Append-only audit unit. before/after are full or partial record snapshots."""
    id: str
    timestamp: datetime
    author: str
    change_type: ChangeType
    tier: Tier
    record_id: str
    before: dict | None = None
    after: dict | None = None
    reason: str | None = None
    propagation_triggered: bool = False
    related_changes: tuple[str, ...] = ()


@dataclass
class PreviousState:
    """Addressable snapshot of a record tied to a Change Log entry."""
    id: str
    record_id: str
    timestamp: datetime
    state: Record
    change_log_id: str
    reason: str | None = None


@dataclass
class RollbackConflict:
    type: ConflictType
    description: str
    severity: ConflictSeverity

    @property
    def blocking(self) -> bool:
        """Relationship conflicts always block; the others are advisory."""
        return self.type == ConflictType.RELATIONSHIP_CONFLICT

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "description": self.description,
            "severity": self.severity.value,
        }


@dataclass
class Rollback:
    """A rollback operation and its outcome."""
    id: str
    timestamp: datetime
    author: str
    record_id: str
    rolled_back_to: str
    rolled_back_from: str
    type: RollbackType
    fields: list[str] | None = None
    reason: str | None = None
    conflicts: list[RollbackConflict] = field(default_factory=list)
    status: RollbackStatus = RollbackStatus.PENDING


@dataclass
class CitationMetadata:
    reason: str | None = None
    impact: str | None = None
    affected_records: list[str] = field(default_factory=list)


@dataclass
class Citation:
    """Audit link between a Change Log entry and a record."""
    id: str
    record_id: str
    change_log_id: str
    type: CitationType
    context: tuple[CitationContext, ...]
    priority: Priority
    created_at: datetime = field(default_factory=utc_now)
    reviewed_at: datetime | None = None
    dismissed_at: datetime | None = None
    metadata: CitationMetadata = field(default_factory=CitationMetadata)

    @property
    def is_active(self) -> bool:
        """Neither reviewed nor dismissed."""
        return self.reviewed_at is None and self.dismissed_at is None


@dataclass
class ParsedComponents:
    """Already-tokenized fields supplied by the creation pipeline's parser."""
    title: str
    tier: Tier
    description: str = ""
    status: RecordStatus | None = None
    priority: Priority | None = None
    tags: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    parent_id: str | None = None
    record_id: str | None = None
    planning_doc_path: str = ""
    planning_doc_section: str = ""


# ─── Scope validation results ────────────────────────────────────

@dataclass(frozen=True)
class ScopeViolation:
    """One scope-creep finding.

    detail_type is the detail family (e.g. ``code``); category is the
    forbidden category that matched (e.g. ``code_snippets``).
    """
    type: ViolationType
    description: str
    detail_type: str | None = None
    category: str | None = None
    location: str | None = None

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "description": self.description,
            "detail_type": self.detail_type,
            "category": self.category,
            "location": self.location,
        }


@dataclass(frozen=True)
class ScopeError:
    type: str
    description: str


@dataclass
class ScopeValidation:
    valid: bool
    errors: list[ScopeError] = field(default_factory=list)
    violations: list[ScopeViolation] = field(default_factory=list)


@dataclass(frozen=True)
class ScopeCorrection:
    type: CorrectionType
    reason: str
    detail: str | None = None
    suggested_location: str | None = None
    suggested_summary: str | None = None
