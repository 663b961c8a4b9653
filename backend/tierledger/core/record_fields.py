"""Record Fields — the enumerated set of mutable record fields and their typed setters.

Invariants:
    - Only fields named in RecordField can be updated or selectively rolled back
    - id, tier, created_at and updated_at are never copied field-by-field
    - Unknown field names raise RecordValidationError before any mutation
    - Coercion failures (bad enum value, empty title) raise RecordValidationError

Design Decisions:
    - Explicit copier/coercer tables instead of setattr on arbitrary keys
      (ADR: selective rollback must not copy fields by untrusted name)
"""

from collections.abc import Callable, Iterable
from enum import Enum

from tierledger.core.domain_types import ChangeType, Priority, RecordStatus
from tierledger.core.errors import RecordValidationError
from tierledger.core.records import Record, Scope
from tierledger.core.record_snapshot import scope_from_dict, scope_to_dict


class RecordField(str, Enum):
    TITLE = "title"
    DESCRIPTION = "description"
    STATUS = "status"
    PRIORITY = "priority"
    TAGS = "tags"
    BLOCKED_BY = "blocked_by"
    PARENT_ID = "parent_id"
    PLANNING_DOC_PATH = "planning_doc_path"
    PLANNING_DOC_SECTION = "planning_doc_section"
    SCOPE = "scope"


def _copy_scope(scope: Scope | None) -> Scope | None:
    return scope_from_dict(scope_to_dict(scope)) if scope else None


# Copy one field from source onto target
_COPIERS: dict[RecordField, Callable[[Record, Record], None]] = {
    RecordField.TITLE: lambda t, s: setattr(t, "title", s.title),
    RecordField.DESCRIPTION: lambda t, s: setattr(t, "description", s.description),
    RecordField.STATUS: lambda t, s: setattr(t, "status", s.status),
    RecordField.PRIORITY: lambda t, s: setattr(t, "priority", s.priority),
    RecordField.TAGS: lambda t, s: setattr(t, "tags", set(s.tags)),
    RecordField.BLOCKED_BY: lambda t, s: setattr(t, "blocked_by", list(s.blocked_by)),
    RecordField.PARENT_ID: lambda t, s: setattr(t, "parent_id", s.parent_id),
    RecordField.PLANNING_DOC_PATH: lambda t, s: setattr(
        t, "planning_doc_path", s.planning_doc_path,
    ),
    RecordField.PLANNING_DOC_SECTION: lambda t, s: setattr(
        t, "planning_doc_section", s.planning_doc_section,
    ),
    RecordField.SCOPE: lambda t, s: setattr(t, "scope", _copy_scope(s.scope)),
}


# --- Coercers for raw (API / caller supplied) values ------------------------

def _coerce_title(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise RecordValidationError("title must be a non-empty string", "title")
    return value.strip()


def _coerce_text(name: str) -> Callable[[object], str]:
    def coerce(value: object) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise RecordValidationError(f"{name} must be a string", name)
        return value
    return coerce


def _coerce_enum(name: str, enum_type: type[Enum], nullable: bool = False):
    def coerce(value: object):
        if value is None and nullable:
            return None
        try:
            return enum_type(value)
        except ValueError:
            allowed = ", ".join(m.value for m in enum_type)
            raise RecordValidationError(
                f"Invalid {name} '{value}'. Expected one of: {allowed}", name,
            )
    return coerce


def _coerce_str_list(name: str) -> Callable[[object], list[str]]:
    def coerce(value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str) or not isinstance(value, Iterable):
            raise RecordValidationError(f"{name} must be a list of strings", name)
        items = list(value)
        if not all(isinstance(i, str) for i in items):
            raise RecordValidationError(f"{name} must be a list of strings", name)
        return items
    return coerce


def _coerce_parent(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str) or not value:
        raise RecordValidationError("parent_id must be a record id or null", "parent_id")
    return value


def _coerce_scope(value: object) -> Scope | None:
    if value is None or isinstance(value, Scope):
        return value
    if not isinstance(value, dict):
        raise RecordValidationError("scope must be an object", "scope")
    try:
        return scope_from_dict(value)
    except (KeyError, ValueError) as e:
        raise RecordValidationError(f"Malformed scope: {e}", "scope")


_COERCERS: dict[RecordField, Callable[[object], object]] = {
    RecordField.TITLE: _coerce_title,
    RecordField.DESCRIPTION: _coerce_text("description"),
    RecordField.STATUS: _coerce_enum("status", RecordStatus),
    RecordField.PRIORITY: _coerce_enum("priority", Priority, nullable=True),
    RecordField.TAGS: lambda v: set(_coerce_str_list("tags")(v)),
    RecordField.BLOCKED_BY: _coerce_str_list("blocked_by"),
    RecordField.PARENT_ID: _coerce_parent,
    RecordField.PLANNING_DOC_PATH: _coerce_text("planning_doc_path"),
    RecordField.PLANNING_DOC_SECTION: _coerce_text("planning_doc_section"),
    RecordField.SCOPE: _coerce_scope,
}


# --- Public API ---------------------------------------------------------------

def parse_fields(names: Iterable[str]) -> list[RecordField]:
    """Validate field names, preserving order and dropping duplicates."""
    parsed: list[RecordField] = []
    for name in names:
        try:
            field = RecordField(name)
        except ValueError:
            raise RecordValidationError(
                f"Field '{name}' cannot be updated or rolled back", name,
            )
        if field not in parsed:
            parsed.append(field)
    if not parsed:
        raise RecordValidationError("At least one field is required", "fields")
    return parsed


def copy_fields(target: Record, source: Record, fields: Iterable[RecordField]) -> None:
    """Copy the listed fields from source onto target in place."""
    for field in fields:
        _COPIERS[field](target, source)


def coerce_changes(changes: dict[str, object]) -> dict[RecordField, object]:
    """Turn a raw {name: value} mapping into typed field values."""
    fields = parse_fields(changes.keys())
    return {field: _COERCERS[field](changes[field.value]) for field in fields}


def apply_changes(record: Record, changes: dict[RecordField, object]) -> None:
    """Assign already-coerced values onto the record in place."""
    for field, value in changes.items():
        setattr(record, field.value, value)


def change_type_for(fields: Iterable[RecordField]) -> ChangeType:
    """Change Log kind for an ordinary update touching the given fields."""
    touched = set(fields)
    if RecordField.STATUS in touched:
        return ChangeType.RECORD_STATUS_CHANGED
    if RecordField.PARENT_ID in touched:
        return ChangeType.RECORD_MOVED
    if touched & {RecordField.PLANNING_DOC_PATH, RecordField.PLANNING_DOC_SECTION}:
        return ChangeType.PLANNING_DOC_UPDATED
    return ChangeType.RECORD_UPDATED
