"""Citation Store — SQL implementation of CitationRepository."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tierledger.core.domain_types import CitationContext, CitationType, Priority
from tierledger.core.errors import ResourceNotFoundError
from tierledger.core.record_snapshot import as_utc
from tierledger.core.records import Citation, CitationMetadata
from tierledger.models.citation import CitationRow


def _metadata_to_dict(metadata: CitationMetadata) -> dict:
    return {
        "reason": metadata.reason,
        "impact": metadata.impact,
        "affected_records": list(metadata.affected_records),
    }


def citation_from_row(row: CitationRow) -> Citation:
    meta = row.citation_metadata or {}
    return Citation(
        id=row.id,
        record_id=row.record_id,
        change_log_id=row.change_log_id,
        type=CitationType(row.type),
        context=tuple(CitationContext(c) for c in row.context or []),
        priority=Priority(row.priority),
        created_at=as_utc(row.created_at),
        reviewed_at=as_utc(row.reviewed_at) if row.reviewed_at else None,
        dismissed_at=as_utc(row.dismissed_at) if row.dismissed_at else None,
        metadata=CitationMetadata(
            reason=meta.get("reason"),
            impact=meta.get("impact"),
            affected_records=list(meta.get("affected_records", [])),
        ),
    )


class SqlCitationStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _row(self, feature: str, citation_id: str) -> CitationRow | None:
        result = await self.db.execute(
            select(CitationRow)
            .where(CitationRow.feature == feature)
            .where(CitationRow.id == citation_id)
        )
        return result.scalar_one_or_none()

    async def add(self, feature: str, citation: Citation) -> None:
        self.db.add(CitationRow(
            id=citation.id,
            feature=feature,
            record_id=citation.record_id,
            change_log_id=citation.change_log_id,
            type=citation.type.value,
            context=[c.value for c in citation.context],
            priority=citation.priority.value,
            created_at=citation.created_at,
            reviewed_at=citation.reviewed_at,
            dismissed_at=citation.dismissed_at,
            citation_metadata=_metadata_to_dict(citation.metadata),
        ))
        await self.db.flush()

    async def update(self, feature: str, citation: Citation) -> None:
        """Persist review/dismissal markers. Never clears reviewed_at."""
        row = await self._row(feature, citation.id)
        if row is None:
            raise ResourceNotFoundError("Citation", citation.id)
        if citation.reviewed_at is not None:
            row.reviewed_at = citation.reviewed_at
        row.dismissed_at = citation.dismissed_at
        await self.db.flush()

    async def get(self, feature: str, citation_id: str) -> Citation | None:
        row = await self._row(feature, citation_id)
        return citation_from_row(row) if row else None

    async def list_all(self, feature: str, record_id: str | None = None) -> list[Citation]:
        query = select(CitationRow).where(CitationRow.feature == feature)
        if record_id:
            query = query.where(CitationRow.record_id == record_id)
        result = await self.db.execute(query.order_by(CitationRow.seq))
        return [citation_from_row(r) for r in result.scalars().all()]
