"""Record Routes — create, read, update, roll-up and scope of planning records.

Invariants:
    - Every path is namespaced by feature
    - Routes delegate to RecordService / ScopeEngine; typed errors surface
      through the global handlers
"""

from fastapi import APIRouter, Depends, status

from tierledger.api.dependencies import get_record_service, get_scope_engine
from tierledger.schemas.record import (
    EnforcementResponse, RecordCreate, RecordResponse, RecordUpdate,
    ScopeEnforceRequest, ScopeReport, SummaryResponse,
)
from tierledger.services.record_creation import RecordService
from tierledger.services.scope_engine import ScopeEngine

router = APIRouter(prefix="/api/v1/features/{feature}/records", tags=["records"])


@router.post(
    "", response_model=EnforcementResponse, status_code=status.HTTP_201_CREATED,
)
async def create_record(
    feature: str, body: RecordCreate,
    service: RecordService = Depends(get_record_service),
):
    outcome = await service.create_record(
        feature, body.to_components(), body.mode, body.author,
    )
    return EnforcementResponse.from_domain(outcome)


@router.get("", response_model=list[RecordResponse])
async def list_records(
    feature: str, service: RecordService = Depends(get_record_service),
):
    return [RecordResponse.from_domain(r) for r in await service.list_records(feature)]


@router.get("/{record_id}", response_model=RecordResponse)
async def get_record(
    feature: str, record_id: str,
    service: RecordService = Depends(get_record_service),
):
    return RecordResponse.from_domain(await service.get_record(feature, record_id))


@router.patch("/{record_id}", response_model=RecordResponse)
async def update_record(
    feature: str, record_id: str, body: RecordUpdate,
    service: RecordService = Depends(get_record_service),
):
    record = await service.update_record(
        feature, record_id, body.changes(), body.author, body.reason,
    )
    return RecordResponse.from_domain(record)


@router.get("/{record_id}/children", response_model=list[RecordResponse])
async def list_children(
    feature: str, record_id: str,
    service: RecordService = Depends(get_record_service),
):
    children = await service.list_children(feature, record_id)
    return [RecordResponse.from_domain(r) for r in children]


@router.get("/{record_id}/summary", response_model=SummaryResponse)
async def get_summary(
    feature: str, record_id: str,
    service: RecordService = Depends(get_record_service),
):
    return SummaryResponse.from_domain(await service.summarize(feature, record_id))


# ─── Scope ──────────────────────────────────────────────────────

@router.get("/{record_id}/scope", response_model=ScopeReport)
async def validate_scope(
    feature: str, record_id: str, engine: ScopeEngine = Depends(get_scope_engine),
):
    validation = await engine.validate_scope(feature, record_id)
    corrections = await engine.suggest_corrections(feature, record_id)
    return ScopeReport.from_domain(validation, corrections)


@router.post("/{record_id}/scope/assign", response_model=RecordResponse)
async def assign_scope(
    feature: str, record_id: str, engine: ScopeEngine = Depends(get_scope_engine),
):
    return RecordResponse.from_domain(await engine.assign_scope(feature, record_id))


@router.post("/{record_id}/scope/enforce", response_model=EnforcementResponse)
async def enforce_scope(
    feature: str, record_id: str, body: ScopeEnforceRequest,
    engine: ScopeEngine = Depends(get_scope_engine),
):
    outcome = await engine.enforce_scope(feature, record_id, body.mode, body.author)
    return EnforcementResponse.from_domain(outcome)
