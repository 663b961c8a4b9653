"""Record Snapshot — JSON-safe serialization and partial overlays."""

import json
from datetime import datetime, timezone

from tierledger.core.domain_types import Priority, RecordStatus, Tier
from tierledger.core.record_snapshot import (
    as_utc, copy_record, record_from_snapshot, record_to_snapshot,
)
from tierledger.core.records import Record
from tierledger.core.scope_rules import default_scope


def _record() -> Record:
    return Record(
        id="phase-1", tier=Tier.PHASE, title="Foundations", parent_id="auth-revamp",
        status=RecordStatus.IN_PROGRESS, priority=Priority.HIGH,
        tags={"b", "a"}, blocked_by=["phase-0"], scope=default_scope(Tier.PHASE),
    )


def test_snapshot_is_json_safe():
    snapshot = record_to_snapshot(_record())
    json.dumps(snapshot)
    assert snapshot["tags"] == ["a", "b"]
    assert snapshot["status"] == "in_progress"
    assert snapshot["scope"]["abstraction"] == "medium-high"


def test_full_snapshot_reconstructs_record():
    original = _record()
    assert record_from_snapshot(record_to_snapshot(original)) == original


def test_partial_snapshot_overlays_base():
    base = _record()
    restored = record_from_snapshot({"status": "pending"}, base=base)
    assert restored.status == RecordStatus.PENDING
    assert restored.title == base.title
    assert base.status == RecordStatus.IN_PROGRESS


def test_unknown_snapshot_keys_are_ignored():
    restored = record_from_snapshot({"text": "x", "bogus": 1}, base=_record())
    assert restored.title == "Foundations"


def test_copy_record_is_deep():
    original = _record()
    clone = copy_record(original)
    clone.tags.add("c")
    clone.scope.inherited_from = "other"
    assert "c" not in original.tags
    assert original.scope.inherited_from is None


def test_as_utc_attaches_timezone_to_naive():
    naive = datetime(2026, 1, 1, 12, 0)
    assert as_utc(naive).tzinfo == timezone.utc
