"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - Every collection is namespaced by feature
    - Repositories stage writes only; the engine owning a composite operation commits

Design Decisions:
    - Protocol over ABC: structural subtyping, test doubles need no inheritance
    - Async in Protocol: implementations do IO, core functions that consume
      their results stay synchronous — the shell orchestrates the awaits
"""

from typing import Protocol

from tierledger.core.records import ChangeLogEntry, Citation, PreviousState, Record, Rollback


class RecordRepository(Protocol):
    """Record Store — key lookup plus parent/child listing."""
    async def get(self, feature: str, record_id: str) -> Record | None: ...
    async def put(self, feature: str, record: Record) -> None: ...
    async def list_children(self, feature: str, parent_id: str) -> list[Record]: ...
    async def list_all(self, feature: str) -> list[Record]: ...


class ChangeLogRepository(Protocol):
    """Append-only Change Log. Iteration order is append order."""
    async def append(self, feature: str, entry: ChangeLogEntry) -> None: ...
    async def get(self, feature: str, change_log_id: str) -> ChangeLogEntry | None: ...
    async def list_for_record(
        self, feature: str, record_id: str,
    ) -> list[ChangeLogEntry]: ...
    async def latest_for_record(
        self, feature: str, record_id: str,
    ) -> ChangeLogEntry | None: ...


class StateRepository(Protocol):
    """Stored previous states, keyed by state id."""
    async def save(self, feature: str, state: PreviousState) -> None: ...
    async def get(self, feature: str, state_id: str) -> PreviousState | None: ...
    async def list_for_record(
        self, feature: str, record_id: str,
    ) -> list[PreviousState]: ...


class RollbackHistoryRepository(Protocol):
    async def append(self, feature: str, rollback: Rollback) -> None: ...
    async def update(self, feature: str, rollback: Rollback) -> None: ...
    async def get(self, feature: str, rollback_id: str) -> Rollback | None: ...
    async def list_all(self, feature: str, record_id: str | None = None) -> list[Rollback]: ...


class CitationRepository(Protocol):
    async def add(self, feature: str, citation: Citation) -> None: ...
    async def update(self, feature: str, citation: Citation) -> None: ...
    async def get(self, feature: str, citation_id: str) -> Citation | None: ...
    async def list_all(
        self, feature: str, record_id: str | None = None,
    ) -> list[Citation]: ...
