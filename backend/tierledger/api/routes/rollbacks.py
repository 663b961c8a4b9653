"""Rollback Routes — previous states, full/selective rollback, history and cancellation."""

from fastapi import APIRouter, Depends, status

from tierledger.api.dependencies import get_rollback_engine
from tierledger.schemas.rollback import RollbackRequest, RollbackResponse, StateResponse
from tierledger.services.rollback_engine import RollbackEngine

router = APIRouter(prefix="/api/v1/features/{feature}", tags=["rollbacks"])


@router.get("/records/{record_id}/states", response_model=list[StateResponse])
async def list_states(
    feature: str, record_id: str,
    engine: RollbackEngine = Depends(get_rollback_engine),
):
    states = await engine.get_available_states(feature, record_id)
    return [StateResponse.from_domain(s) for s in states]


@router.post(
    "/records/{record_id}/rollbacks",
    response_model=RollbackResponse,
    status_code=status.HTTP_201_CREATED,
)
async def rollback_record(
    feature: str, record_id: str, body: RollbackRequest,
    engine: RollbackEngine = Depends(get_rollback_engine),
):
    """Full rollback, or selective when fields are given.

    A conflicted rollback is still recorded (status conflict) unless
    fail_on_conflict is set, which answers 409 and records nothing.
    """
    if body.fail_on_conflict:
        rollback = await engine.rollback_with_conflict_check(
            feature, record_id, body.state_id, body.fields, body.reason, body.author,
        )
    elif body.fields is not None:
        rollback = await engine.rollback_fields(
            feature, record_id, body.state_id, body.fields, body.reason, body.author,
        )
    else:
        rollback = await engine.rollback_to_state(
            feature, record_id, body.state_id, body.reason, body.author,
        )
    return RollbackResponse.from_domain(rollback)


@router.get("/records/{record_id}/rollbacks", response_model=list[RollbackResponse])
async def record_rollback_history(
    feature: str, record_id: str,
    engine: RollbackEngine = Depends(get_rollback_engine),
):
    history = await engine.get_rollback_history(feature, record_id)
    return [RollbackResponse.from_domain(r) for r in history]


@router.get("/rollbacks", response_model=list[RollbackResponse])
async def rollback_history(
    feature: str, engine: RollbackEngine = Depends(get_rollback_engine),
):
    return [RollbackResponse.from_domain(r) for r in await engine.get_rollback_history(feature)]


@router.post("/rollbacks/{rollback_id}/cancel", response_model=RollbackResponse)
async def cancel_rollback(
    feature: str, rollback_id: str,
    engine: RollbackEngine = Depends(get_rollback_engine),
):
    return RollbackResponse.from_domain(await engine.cancel_rollback(feature, rollback_id))
