"""Error Hierarchy — response envelope and status mapping."""

from tierledger.core.domain_types import ConflictSeverity, ConflictType, ViolationType
from tierledger.core.errors import (
    ErrorCategory, ErrorContext, InvalidTransitionError, LockTimeoutError,
    RecordValidationError, ResourceNotFoundError, RollbackConflictError,
    ScopeViolationError,
)
from tierledger.core.records import RollbackConflict, ScopeError, ScopeViolation


def test_not_found_envelope():
    error = ResourceNotFoundError("Record", "task-9", ErrorContext(feature="auth"))
    body = error.to_response()["error"]
    assert error.http_status == 404
    assert body["code"] == "RESOURCE_NOT_FOUND"
    assert body["context"]["feature"] == "auth"
    assert "details" not in body


def test_validation_error_carries_field():
    error = RecordValidationError("bad", "status")
    assert error.http_status == 400
    assert error.to_response()["error"]["details"] == {"field": "status"}


def test_invalid_transition_is_a_validation_error():
    error = InvalidTransitionError("Rollback", "completed", "cancelled")
    assert isinstance(error, RecordValidationError)
    assert error.code == "INVALID_TRANSITION"
    assert error.http_status == 400


def test_scope_violation_lists_everything():
    violation = ScopeViolation(
        ViolationType.FORBIDDEN_DETAIL, "code in phase",
        detail_type="code", category="code_snippets", location="description",
    )
    error = ScopeViolationError(
        [violation], [ScopeError("scope_creep", "Record contains forbidden details")],
    )
    details = error.to_response()["error"]["details"]
    assert error.http_status == 422
    assert details["violations"][0]["category"] == "code_snippets"
    assert details["errors"][0]["type"] == "scope_creep"


def test_rollback_conflict_is_409():
    conflict = RollbackConflict(
        ConflictType.RELATIONSHIP_CONFLICT, "Parent gone", ConflictSeverity.HIGH,
    )
    error = RollbackConflictError([conflict])
    assert error.http_status == 409
    assert error.category == ErrorCategory.CONFLICT
    assert error.details()["conflicts"][0]["severity"] == "high"


def test_lock_timeout_names_records():
    error = LockTimeoutError(["task-1", "task-2"], 0.5)
    assert error.http_status == 423
    assert "task-1, task-2" in error.message
