"""Citation Schemas — citation creation, query filters and responses."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from tierledger.core.domain_types import CitationContext, CitationType, Priority
from tierledger.core.lookup_triggers import TriggerDefinition
from tierledger.core.records import Citation, CitationMetadata


class CitationCreate(BaseModel):
    """Explicit citation, or derived from the change when type/priority are omitted."""
    record_ids: list[str] = Field(min_length=1)
    change_log_id: str = Field(min_length=1)
    context: list[CitationContext] = Field(min_length=1)
    type: CitationType | None = None
    priority: Priority | None = None
    reason: str | None = None
    impact: str | None = None

    @model_validator(mode="after")
    def check_explicit_pair(self):
        if (self.type is None) != (self.priority is None):
            raise ValueError("type and priority must be given together")
        return self

    @property
    def derived(self) -> bool:
        return self.type is None

    def metadata(self) -> CitationMetadata:
        return CitationMetadata(reason=self.reason, impact=self.impact)


class CitationResponse(BaseModel):
    id: str
    record_id: str
    change_log_id: str
    type: CitationType
    context: list[CitationContext]
    priority: Priority
    created_at: datetime
    reviewed_at: datetime | None
    dismissed_at: datetime | None
    reason: str | None
    impact: str | None
    affected_records: list[str]

    @classmethod
    def from_domain(cls, citation: Citation) -> "CitationResponse":
        return cls(
            id=citation.id,
            record_id=citation.record_id,
            change_log_id=citation.change_log_id,
            type=citation.type,
            context=list(citation.context),
            priority=citation.priority,
            created_at=citation.created_at,
            reviewed_at=citation.reviewed_at,
            dismissed_at=citation.dismissed_at,
            reason=citation.metadata.reason,
            impact=citation.metadata.impact,
            affected_records=citation.metadata.affected_records,
        )


class TriggerResponse(BaseModel):
    id: str
    name: str
    junction: CitationContext
    priority: Priority
    suppressible: bool
    action: str

    @classmethod
    def from_domain(cls, trigger: TriggerDefinition) -> "TriggerResponse":
        return cls(
            id=trigger.id,
            name=trigger.name,
            junction=trigger.junction,
            priority=trigger.priority,
            suppressible=trigger.suppressible,
            action=trigger.action.value,
        )
