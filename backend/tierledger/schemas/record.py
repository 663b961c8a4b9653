"""Record Schemas — creation, update and read models for planning records.

Invariants:
    - RecordCreate.title is stripped and non-empty
    - RecordUpdate carries only the updatable fields; at least one must be set
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from tierledger.core.aggregate_details import RecordSummary
from tierledger.core.domain_types import (
    Abstraction, DetailLevel, Priority, RecordStatus, ScopeMode, Tier,
)
from tierledger.core.enforce_scope import ScopeEnforcement
from tierledger.core.records import (
    ParsedComponents, Record, Scope, ScopeCorrection, ScopeValidation, ScopeViolation,
)


class RecordCreate(BaseModel):
    """Already-parsed components of a new record."""
    title: str = Field(min_length=1, max_length=500)
    tier: Tier
    description: str = Field("", max_length=20_000)
    status: RecordStatus | None = None
    priority: Priority | None = None
    tags: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    parent_id: str | None = None
    id: str | None = Field(None, min_length=1, max_length=200)
    planning_doc_path: str = ""
    planning_doc_section: str = ""
    mode: ScopeMode | None = None
    author: str | None = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title cannot be empty or whitespace")
        return v

    def to_components(self) -> ParsedComponents:
        return ParsedComponents(
            title=self.title,
            tier=self.tier,
            description=self.description,
            status=self.status,
            priority=self.priority,
            tags=list(self.tags),
            dependencies=list(self.dependencies),
            parent_id=self.parent_id,
            record_id=self.id,
            planning_doc_path=self.planning_doc_path,
            planning_doc_section=self.planning_doc_section,
        )


class RecordUpdate(BaseModel):
    """Ordinary field update. Unset fields are left alone."""
    title: str | None = None
    description: str | None = None
    status: RecordStatus | None = None
    priority: Priority | None = None
    tags: list[str] | None = None
    blocked_by: list[str] | None = None
    parent_id: str | None = None
    planning_doc_path: str | None = None
    planning_doc_section: str | None = None
    author: str | None = None
    reason: str | None = None

    @model_validator(mode="after")
    def check_not_empty(self):
        if not self.changes():
            raise ValueError("at least one field must be updated")
        return self

    def changes(self) -> dict[str, object]:
        raw = self.model_dump(exclude_unset=True, exclude={"author", "reason"})
        return {k: (v.value if hasattr(v, "value") else v) for k, v in raw.items()}


class ScopeResponse(BaseModel):
    level: Tier
    abstraction: Abstraction
    detail_level: DetailLevel
    allowed_details: list[str]
    forbidden_details: list[str]
    inherited_from: str | None = None

    @classmethod
    def from_domain(cls, scope: Scope) -> "ScopeResponse":
        return cls(
            level=scope.level,
            abstraction=scope.abstraction,
            detail_level=scope.detail_level,
            allowed_details=sorted(scope.allowed_details),
            forbidden_details=sorted(scope.forbidden_details),
            inherited_from=scope.inherited_from,
        )


class RecordResponse(BaseModel):
    id: str
    tier: Tier
    parent_id: str | None
    title: str
    description: str
    status: RecordStatus
    priority: Priority | None
    tags: list[str]
    blocked_by: list[str]
    planning_doc_path: str
    planning_doc_section: str
    scope: ScopeResponse | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, record: Record) -> "RecordResponse":
        return cls(
            id=record.id,
            tier=record.tier,
            parent_id=record.parent_id,
            title=record.title,
            description=record.description,
            status=record.status,
            priority=record.priority,
            tags=sorted(record.tags),
            blocked_by=list(record.blocked_by),
            planning_doc_path=record.planning_doc_path,
            planning_doc_section=record.planning_doc_section,
            scope=ScopeResponse.from_domain(record.scope) if record.scope else None,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class ViolationResponse(BaseModel):
    type: str
    description: str
    detail_type: str | None = None
    category: str | None = None
    location: str | None = None

    @classmethod
    def from_domain(cls, violation: ScopeViolation) -> "ViolationResponse":
        return cls(**violation.to_dict())


class ScopeErrorResponse(BaseModel):
    type: str
    description: str


class EnforcementResponse(BaseModel):
    """Record as persisted plus whatever scope enforcement reported."""
    record: RecordResponse
    violations: list[ViolationResponse]
    errors: list[ScopeErrorResponse]
    redacted: bool

    @classmethod
    def from_domain(cls, outcome: ScopeEnforcement) -> "EnforcementResponse":
        return cls(
            record=RecordResponse.from_domain(outcome.record),
            violations=[ViolationResponse.from_domain(v) for v in outcome.violations],
            errors=[ScopeErrorResponse(type=e.type, description=e.description)
                    for e in outcome.errors],
            redacted=outcome.redacted,
        )


class CorrectionResponse(BaseModel):
    type: str
    reason: str
    detail: str | None = None
    suggested_location: str | None = None
    suggested_summary: str | None = None


class ScopeReport(BaseModel):
    valid: bool
    errors: list[ScopeErrorResponse]
    violations: list[ViolationResponse]
    corrections: list[CorrectionResponse]

    @classmethod
    def from_domain(
        cls, validation: ScopeValidation, corrections: list[ScopeCorrection],
    ) -> "ScopeReport":
        return cls(
            valid=validation.valid,
            errors=[ScopeErrorResponse(type=e.type, description=e.description)
                    for e in validation.errors],
            violations=[ViolationResponse.from_domain(v) for v in validation.violations],
            corrections=[
                CorrectionResponse(
                    type=c.type.value, reason=c.reason, detail=c.detail,
                    suggested_location=c.suggested_location,
                    suggested_summary=c.suggested_summary,
                )
                for c in corrections
            ],
        )


class ScopeEnforceRequest(BaseModel):
    mode: ScopeMode | None = None
    author: str | None = None


class ProgressResponse(BaseModel):
    completed: int
    in_progress: int
    pending: int
    total: int


class SummaryResponse(BaseModel):
    title: str
    status: RecordStatus
    objectives: list[str]
    progress: ProgressResponse
    key_dependencies: list[str]
    next_steps: list[str]

    @classmethod
    def from_domain(cls, summary: RecordSummary) -> "SummaryResponse":
        p = summary.progress
        return cls(
            title=summary.title,
            status=summary.status,
            objectives=summary.objectives,
            progress=ProgressResponse(
                completed=p.completed, in_progress=p.in_progress,
                pending=p.pending, total=p.total,
            ),
            key_dependencies=summary.key_dependencies,
            next_steps=summary.next_steps,
        )
