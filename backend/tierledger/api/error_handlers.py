"""Error handlers — ledger failures become the JSON error envelope.

Ledger errors answer with their own status and to_response() body; 4xx are
logged as warnings with the feature and record they concern, 5xx as errors.
A LockTimeoutError also carries Retry-After so clients back off for the lock
wait bound. Request body problems answer 400 with one entry per bad field,
and anything unexpected answers 500 without internals.
"""

import logging
import math

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from tierledger.core.errors import ErrorSeverity, LockTimeoutError, TierLedgerError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TierLedgerError, ledger_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)


async def ledger_error_handler(request: Request, exc: TierLedgerError) -> JSONResponse:
    log = logger.error if exc.http_status >= 500 else logger.warning
    log(
        f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}",
        extra={
            "error_code": exc.code,
            "path": request.url.path,
            "feature": exc.context.feature or request.path_params.get("feature"),
            "record_id": exc.context.record_id or request.path_params.get("record_id"),
        },
    )
    headers = None
    if isinstance(exc, LockTimeoutError):
        headers = {"Retry-After": str(max(1, math.ceil(exc.timeout)))}
    return JSONResponse(
        status_code=exc.http_status, content=exc.to_response(), headers=headers,
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError,
) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(loc) for loc in e["loc"] if loc != "body"),
            "message": e["msg"],
            "type": e["type"],
        }
        for e in exc.errors()
    ]
    logger.warning(
        f"Rejected request body on {request.url.path}: "
        f"{', '.join(d['field'] or 'body' for d in details)}",
        extra={"path": request.url.path, "feature": request.path_params.get("feature")},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Invalid request data",
                "category": "validation",
                "severity": ErrorSeverity.ERROR.value,
                "details": details,
            },
        },
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception on {request.url.path}: {exc}",
        exc_info=True,
        extra={"path": request.url.path, "feature": request.path_params.get("feature")},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "category": "internal",
                "severity": ErrorSeverity.CRITICAL.value,
            },
        },
    )
