"""Domain Types — enums and fixed orderings that replace bare strings across the ledger.

Invariants:
    - Tier order is fixed: feature -> phase -> session -> task
    - Abstraction ladder is fixed: high -> medium-high -> medium -> low
    - All valid states encoded as Enums — no raw string matching

Design Decisions:
    - str Enums: serialize to JSON without custom encoders (ADR: API + JSON columns)
"""

from enum import Enum


# ─── Record Enums ────────────────────────────────────────────────

class Tier(str, Enum):
    """The four planning tiers, outermost first."""
    FEATURE = "feature"
    PHASE = "phase"
    SESSION = "session"
    TASK = "task"


class RecordStatus(str, Enum):
    """Record lifecycle states. CANCELLED is the terminal 'removed' state."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    BLOCKED = "blocked"


class Priority(str, Enum):
    """Shared priority scale for records and citations."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ─── Scope Enums ─────────────────────────────────────────────────

class Abstraction(str, Enum):
    HIGH = "high"
    MEDIUM_HIGH = "medium-high"
    MEDIUM = "medium"
    LOW = "low"


class DetailLevel(str, Enum):
    HIGH_LEVEL = "high-level"
    FOCUSED = "focused"
    GRANULAR = "granular"


class ScopeMode(str, Enum):
    """How enforce_scope reacts to violations."""
    STRICT = "strict"
    WARN = "warn"
    AUTO = "auto"


class ViolationType(str, Enum):
    FORBIDDEN_DETAIL = "forbidden_detail"
    ABSTRACTION_VIOLATION = "abstraction_violation"
    DETAIL_LEVEL_VIOLATION = "detail_level_violation"


class CorrectionType(str, Enum):
    MOVE_DETAIL = "move_detail"
    SUMMARIZE_DETAIL = "summarize_detail"
    REMOVE_DETAIL = "remove_detail"
    ADJUST_SCOPE = "adjust_scope"


# ─── Change Log Enums ────────────────────────────────────────────

class ChangeType(str, Enum):
    """Kinds of Change Log entries."""
    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    RECORD_STATUS_CHANGED = "record_status_changed"
    RECORD_MOVED = "record_moved"
    PROPAGATION_TRIGGERED = "propagation_triggered"
    PROPAGATION_COMPLETED = "propagation_completed"
    PROPAGATION_CONFLICT = "propagation_conflict"
    PLANNING_DOC_UPDATED = "planning_doc_updated"
    PLANNING_DOC_SYNCED = "planning_doc_synced"
    ROLLBACK_APPLIED = "rollback_applied"


# ─── Rollback Enums ──────────────────────────────────────────────

class RollbackType(str, Enum):
    FULL = "full"
    SELECTIVE = "selective"


class RollbackStatus(str, Enum):
    """Rollback lifecycle — COMPLETED and CANCELLED are terminal."""
    PENDING = "pending"
    COMPLETED = "completed"
    CONFLICT = "conflict"
    CANCELLED = "cancelled"


class ConflictType(str, Enum):
    RELATIONSHIP_CONFLICT = "relationship_conflict"
    PLANNING_DOC_CONFLICT = "planning_doc_conflict"
    STATE_CONFLICT = "state_conflict"


class ConflictSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ─── Citation Enums ──────────────────────────────────────────────

class CitationType(str, Enum):
    STATUS_CHANGE = "status_change"
    DESCRIPTION_CHANGE = "description_change"
    PARENT_CHANGE = "parent_change"
    PLANNING_DOC_CHANGE = "planning_doc_change"
    PROPAGATION_CHANGE = "propagation_change"
    CONFLICT_DETECTED = "conflict_detected"
    ROLLBACK_APPLIED = "rollback_applied"


class CitationContext(str, Enum):
    """Lifecycle junctions at which citations are surfaced."""
    SESSION_START = "session-start"
    SESSION_CHECKPOINT = "session-checkpoint"
    SESSION_END = "session-end"
    PHASE_START = "phase-start"
    PHASE_CHECKPOINT = "phase-checkpoint"
    PHASE_END = "phase-end"
    TASK_START = "task-start"
    TASK_CHECKPOINT = "task-checkpoint"
    CONFLICT_DETECTION = "conflict-detection"
    PLANNING_DOC_UPDATE = "planning-doc-update"


# ─── Constants ───────────────────────────────────────────────────

TIER_ORDER: tuple[Tier, ...] = (
    Tier.FEATURE, Tier.PHASE, Tier.SESSION, Tier.TASK,
)
ABSTRACTION_LADDER: tuple[Abstraction, ...] = (
    Abstraction.HIGH, Abstraction.MEDIUM_HIGH,
    Abstraction.MEDIUM, Abstraction.LOW,
)
PRIORITY_ORDER: tuple[Priority, ...] = (
    Priority.LOW, Priority.MEDIUM, Priority.HIGH, Priority.CRITICAL,
)

STALE_STATE_HOURS = 24
REDACTION_PLACEHOLDER = "[filtered]"
MAX_NEXT_STEPS = 5
