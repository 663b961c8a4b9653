"""Citation Routes — create, query, look up, review and dismiss citations."""

from fastapi import APIRouter, Depends, Query, status

from tierledger.api.dependencies import get_citation_tracker
from tierledger.core.citation_rules import CitationFilters
from tierledger.core.domain_types import CitationContext, CitationType, Priority
from tierledger.schemas.citation import CitationCreate, CitationResponse, TriggerResponse
from tierledger.services.citation_tracker import CitationTracker

router = APIRouter(prefix="/api/v1/features/{feature}", tags=["citations"])


@router.post(
    "/citations",
    response_model=list[CitationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_citations(
    feature: str, body: CitationCreate,
    tracker: CitationTracker = Depends(get_citation_tracker),
):
    if body.derived:
        citations = await tracker.create_citations_for_change(
            feature, body.change_log_id, body.record_ids, body.context,
        )
    else:
        citations = [
            await tracker.create_citation(
                feature, record_id, body.change_log_id, body.type,
                body.context, body.priority, body.metadata(),
            )
            for record_id in body.record_ids
        ]
    return [CitationResponse.from_domain(c) for c in citations]


@router.get("/citations", response_model=list[CitationResponse])
async def query_citations(
    feature: str,
    record_id: str | None = None,
    change_log_id: str | None = None,
    type: CitationType | None = None,
    priority: Priority | None = None,
    context: CitationContext | None = None,
    unreviewed: bool = False,
    tracker: CitationTracker = Depends(get_citation_tracker),
):
    filters = CitationFilters(
        record_id=record_id, change_log_id=change_log_id, type=type,
        priority=priority, context=context, unreviewed=unreviewed,
    )
    return [CitationResponse.from_domain(c) for c in await tracker.query_citations(feature, filters)]


@router.get("/citations/high-priority", response_model=list[CitationResponse])
async def high_priority_citations(
    feature: str,
    min_priority: Priority = Priority.HIGH,
    record_id: str | None = None,
    tracker: CitationTracker = Depends(get_citation_tracker),
):
    citations = await tracker.get_high_priority_citations(feature, min_priority, record_id)
    return [CitationResponse.from_domain(c) for c in citations]


@router.get("/records/{record_id}/citations", response_model=list[CitationResponse])
async def lookup_citations(
    feature: str, record_id: str,
    context: CitationContext = Query(...),
    tracker: CitationTracker = Depends(get_citation_tracker),
):
    citations = await tracker.lookup_citations(feature, record_id, context)
    return [CitationResponse.from_domain(c) for c in citations]


@router.post(
    "/records/{record_id}/citations/{citation_id}/review",
    response_model=CitationResponse,
)
async def review_citation(
    feature: str, record_id: str, citation_id: str,
    tracker: CitationTracker = Depends(get_citation_tracker),
):
    citation = await tracker.review_citation(feature, record_id, citation_id)
    return CitationResponse.from_domain(citation)


@router.post(
    "/records/{record_id}/citations/{citation_id}/dismiss",
    response_model=CitationResponse,
)
async def dismiss_citation(
    feature: str, record_id: str, citation_id: str,
    tracker: CitationTracker = Depends(get_citation_tracker),
):
    citation = await tracker.dismiss_citation(feature, record_id, citation_id)
    return CitationResponse.from_domain(citation)


@router.get("/records/{record_id}/triggers", response_model=list[TriggerResponse])
async def detect_triggers(
    feature: str, record_id: str,
    junction: CitationContext = Query(...),
    tracker: CitationTracker = Depends(get_citation_tracker),
):
    triggers = await tracker.detect_triggers(feature, record_id, junction)
    return [TriggerResponse.from_domain(t) for t in triggers]
