"""HTTP API for RMVS.

Every error leaves the API in the same envelope: `success=false`, a
message, a machine-readable `error_code` and optional per-field details.
"""

from typing import Any
from uuid import UUID

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..errors import IntakeValidationError
from ..logging import get_logger

logger = get_logger(__name__)


# =========================
# Error Envelope
# =========================


class ErrorDetail(BaseModel):
    """One violation, e.g. a bad field in batch entry 3."""

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    error_code: str
    details: list[ErrorDetail] | None = None


def _error_response(
    status_code: int,
    error: str,
    error_code: str,
    details: list[ErrorDetail] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, error_code=error_code, details=details).model_dump(),
        headers={"X-Error-Code": error_code},
    )


class APIError(HTTPException):
    """HTTP error rendered in the error envelope."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: list[ErrorDetail] | None = None,
    ):
        self.error_code = error_code
        self.message = message
        self.details = details
        super().__init__(status_code=status_code, detail=message)


class NotFoundError(APIError):
    def __init__(self, resource: str, identifier: str | UUID):
        super().__init__(
            status_code=404,
            error_code="NOT_FOUND",
            message=f"{resource} not found: {identifier}",
        )


# =========================
# Handlers
# =========================


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return _error_response(exc.status_code, exc.message, exc.error_code, exc.details)


async def intake_validation_handler(request: Request, exc: IntakeValidationError) -> JSONResponse:
    """Reject an invalid batch with one detail per schema violation.

    The entry position is carried in `details.index` so agents can fix
    the offending suggestion and resubmit.
    """
    details = [
        ErrorDetail(
            code="INVALID_FIELD",
            message=err["message"],
            field=err.get("field"),
            details={"index": err["index"]} if err.get("index") is not None else None,
        )
        for err in exc.errors
    ]
    logger.info(f"Rejected batch with {len(details)} schema violation(s)")
    return _error_response(422, str(exc), "VALIDATION_ERROR", details)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Path and body errors, e.g. a malformed suggestion UUID
    details = [
        ErrorDetail(
            code="INVALID_FIELD",
            message=err["msg"],
            field=".".join(str(part) for part in err["loc"][1:]) or None,
        )
        for err in exc.errors()
    ]
    return _error_response(422, "Request validation failed", "VALIDATION_ERROR", details)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail), "HTTP_ERROR")


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    return _error_response(500, "An unexpected error occurred", "INTERNAL_ERROR")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(IntakeValidationError, intake_validation_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
