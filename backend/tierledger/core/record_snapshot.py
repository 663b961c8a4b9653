"""Record Snapshot — serialization / deserialization for Record and Scope.

Invariants:
    - record_to_snapshot produces a JSON-safe dict (no sets, no Enums, ISO timestamps)
    - record_from_snapshot reconstructs a Record from any full snapshot dict
    - A partial snapshot is overlaid on a base record (missing keys keep base values)

Design Decisions:
    - Same shape for Change Log before/after, stored states and API payloads
      (ADR: one serialization path)
    - Timestamps without tzinfo are treated as UTC (SQLite drops the offset)
"""

from datetime import datetime, timezone

from tierledger.core.domain_types import (
    Abstraction, DetailLevel, Priority, RecordStatus, Tier,
)
from tierledger.core.records import Record, Scope


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, leave aware ones untouched."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _parse_timestamp(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(value))


def scope_to_dict(scope: Scope) -> dict:
    return {
        "level": scope.level.value,
        "abstraction": scope.abstraction.value,
        "detail_level": scope.detail_level.value,
        "allowed_details": sorted(scope.allowed_details),
        "forbidden_details": sorted(scope.forbidden_details),
        "inherited_from": scope.inherited_from,
    }


def scope_from_dict(data: dict) -> Scope:
    return Scope(
        level=Tier(data["level"]),
        abstraction=Abstraction(data["abstraction"]),
        detail_level=DetailLevel(data["detail_level"]),
        allowed_details=frozenset(data.get("allowed_details", [])),
        forbidden_details=frozenset(data.get("forbidden_details", [])),
        inherited_from=data.get("inherited_from"),
    )


def record_to_snapshot(record: Record) -> dict:
    """Serialize Record to JSON-safe dict. Pure, no IO."""
    return {
        "id": record.id,
        "tier": record.tier.value,
        "parent_id": record.parent_id,
        "title": record.title,
        "description": record.description,
        "status": record.status.value,
        "priority": record.priority.value if record.priority else None,
        "tags": sorted(record.tags),
        "blocked_by": list(record.blocked_by),
        "planning_doc_path": record.planning_doc_path,
        "planning_doc_section": record.planning_doc_section,
        "scope": scope_to_dict(record.scope) if record.scope else None,
        "created_at": record.created_at.isoformat(),
        "updated_at": record.updated_at.isoformat(),
    }


SNAPSHOT_FIELDS: frozenset[str] = frozenset({
    "id", "tier", "parent_id", "title", "description", "status", "priority",
    "tags", "blocked_by", "planning_doc_path", "planning_doc_section",
    "scope", "created_at", "updated_at",
})

# Keys whose snapshot value needs conversion back into a domain type
_DECODERS = {
    "tier": Tier,
    "status": RecordStatus,
    "priority": lambda v: Priority(v) if v else None,
    "tags": set,
    "blocked_by": list,
    "scope": lambda v: scope_from_dict(v) if v else None,
    "created_at": _parse_timestamp,
    "updated_at": _parse_timestamp,
}


def record_from_snapshot(data: dict, base: Record | None = None) -> Record:
    """Reconstruct a Record from a snapshot dict. Pure, no IO.

    With ``base`` the snapshot may be partial: only the keys present are
    applied on top of a copy of ``base``.
    """
    if base is None:
        values = {
            "id": data["id"],
            "tier": Tier(data["tier"]),
            "title": data["title"],
        }
        record = Record(**values)
    else:
        record = record_from_snapshot(record_to_snapshot(base))

    for key, raw in data.items():
        if key not in SNAPSHOT_FIELDS:
            continue
        decode = _DECODERS.get(key)
        setattr(record, key, decode(raw) if decode else raw)
    return record


def copy_record(record: Record) -> Record:
    """Deep copy through the snapshot path."""
    return record_from_snapshot(record_to_snapshot(record))
