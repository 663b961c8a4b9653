"""Record Fields — enumerated field names, coercion and typed copying.

Tests:
    - Unknown field names are rejected before anything is touched
    - Coercion validates enum values and list shapes
    - copy_fields copies only the listed fields
    - change_type_for picks the most specific change kind
"""

import pytest

from tierledger.core.domain_types import ChangeType, Priority, RecordStatus, Tier
from tierledger.core.errors import RecordValidationError
from tierledger.core.record_fields import (
    RecordField, apply_changes, change_type_for, coerce_changes, copy_fields,
    parse_fields,
)
from tierledger.core.record_snapshot import copy_record
from tierledger.core.records import Record


def test_parse_fields_dedups_and_keeps_order():
    assert parse_fields(["status", "title", "status"]) == [
        RecordField.STATUS, RecordField.TITLE,
    ]


@pytest.mark.parametrize("name", ["id", "tier", "updated_at", "created_at", "text", "bogus"])
def test_parse_fields_rejects_non_updatable(name):
    with pytest.raises(RecordValidationError):
        parse_fields([name])


def test_parse_fields_rejects_empty():
    with pytest.raises(RecordValidationError):
        parse_fields([])


def test_coerce_changes_types_values():
    typed = coerce_changes({"status": "completed", "tags": ["a", "b"], "priority": None})
    assert typed[RecordField.STATUS] == RecordStatus.COMPLETED
    assert typed[RecordField.TAGS] == {"a", "b"}
    assert typed[RecordField.PRIORITY] is None


def test_coerce_rejects_bad_enum():
    with pytest.raises(RecordValidationError) as exc_info:
        coerce_changes({"status": "done"})
    assert exc_info.value.field == "status"


def test_coerce_rejects_string_as_list():
    with pytest.raises(RecordValidationError):
        coerce_changes({"blocked_by": "task-1"})


def test_copy_fields_only_touches_listed_fields():
    current = Record(id="r", tier=Tier.TASK, title="Now", parent_id="s",
                     status=RecordStatus.COMPLETED, priority=Priority.LOW)
    source = Record(id="r", tier=Tier.TASK, title="Then", parent_id="s",
                    status=RecordStatus.PENDING, priority=Priority.HIGH)
    target = copy_record(current)
    copy_fields(target, source, [RecordField.STATUS])
    assert target.status == RecordStatus.PENDING
    assert target.title == "Now"
    assert target.priority == Priority.LOW


def test_apply_changes_assigns_values():
    record = Record(id="r", tier=Tier.TASK, title="T", parent_id="s")
    apply_changes(record, coerce_changes({"description": "new"}))
    assert record.description == "new"


def test_change_type_for():
    assert change_type_for([RecordField.STATUS, RecordField.TITLE]) == ChangeType.RECORD_STATUS_CHANGED
    assert change_type_for([RecordField.PARENT_ID]) == ChangeType.RECORD_MOVED
    assert change_type_for([RecordField.PLANNING_DOC_PATH]) == ChangeType.PLANNING_DOC_UPDATED
    assert change_type_for([RecordField.DESCRIPTION]) == ChangeType.RECORD_UPDATED
