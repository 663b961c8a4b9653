"""Error Hierarchy — typed, categorized exceptions for all ledger failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) leave persisted state unmodified
    - to_response() produces the REST envelope; rendering text is the caller's job
    - ScopeViolationError and RollbackConflictError carry their full lists

Design Decisions:
    - Single hierarchy with TierLedgerError base: FastAPI global handler catches all
      (ADR: uniform error shape)
    - ErrorContext as dataclass: rich observability without coupling to logging framework
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    INTERNAL = "internal"
    CONFLICT = "conflict"
    TIMEOUT = "timeout"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    feature: str | None = None
    record_id: str | None = None
    debug_info: dict[str, Any] | None = None


class TierLedgerError(Exception):
    """Base exception for all ledger errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def details(self) -> dict | None:
        """Structured payload specific to the error type."""
        return None

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        body = {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "timestamp": self.context.timestamp.isoformat(),
            "context": {
                "feature": self.context.feature,
                "record_id": self.context.record_id,
            },
        }
        details = self.details()
        if details is not None:
            body["details"] = details
        return {"error": body}


# ─── Domain Errors (400-level) ──────────────────────────────────

class ResourceNotFoundError(TierLedgerError):
    """Requested record, state, rollback or citation does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class RecordValidationError(TierLedgerError):
    """Malformed field, missing required field, bad enum or dangling reference."""
    def __init__(
        self,
        message: str,
        field: str | None = None,
        context: ErrorContext | None = None,
        code: str = "VALIDATION_ERROR",
    ):
        super().__init__(
            message, code, ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field

    def details(self) -> dict | None:
        return {"field": self.field} if self.field else None


class InvalidTransitionError(RecordValidationError):
    """State-machine move that the lifecycle does not permit."""
    def __init__(
        self, entity: str, current: str, target: str,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{entity} cannot move from '{current}' to '{target}'",
            field="status", context=context, code="INVALID_TRANSITION",
        )
        self.entity = entity
        self.current = current
        self.target = target


class ScopeViolationError(TierLedgerError):
    """Strict-mode scope enforcement failed. Nothing was persisted."""
    def __init__(
        self, violations: list, errors: list | None = None,
        context: ErrorContext | None = None,
    ):
        self.errors = errors or []
        summary = "; ".join(e.description for e in self.errors)
        if not summary:
            summary = f"{len(violations)} violation(s)"
        super().__init__(
            f"Scope validation failed: {summary}",
            "SCOPE_VIOLATION", ErrorCategory.BUSINESS_RULE,
            ErrorSeverity.ERROR, context, 422,
        )
        self.violations = violations

    def details(self) -> dict | None:
        return {
            "violations": [v.to_dict() for v in self.violations],
            "errors": [
                {"type": e.type, "description": e.description} for e in self.errors
            ],
        }


class RollbackConflictError(TierLedgerError):
    """Rollback blocked by one or more conflicts. The record is untouched."""
    def __init__(self, conflicts: list, context: ErrorContext | None = None):
        kinds = ", ".join(sorted({c.type.value for c in conflicts}))
        super().__init__(
            f"Rollback blocked by conflicts: {kinds}",
            "ROLLBACK_CONFLICT", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 409,
        )
        self.conflicts = conflicts

    def details(self) -> dict | None:
        return {"conflicts": [c.to_dict() for c in self.conflicts]}


class LockTimeoutError(TierLedgerError):
    """Per-record lock could not be acquired within the wait bound."""
    def __init__(
        self, record_ids: list[str], timeout: float,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Records busy ({', '.join(record_ids)}); gave up after {timeout:g}s",
            "LOCK_TIMEOUT", ErrorCategory.TIMEOUT,
            ErrorSeverity.WARNING, context, 423,
        )
        self.record_ids = record_ids
        self.timeout = timeout


# ─── Infrastructure Errors (500-level) ──────────────────────────

class DatabaseError(TierLedgerError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
