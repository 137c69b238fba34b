import uuid
from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from pulse.config.logging import add_request_context, get_logger

logger = get_logger(__name__)


class PulseException(Exception):
    """Base exception for the Pulse engine."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(PulseException):
    """Raised when a job or reminder definition is rejected at creation."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY, details)


class NotFoundError(PulseException):
    """Raised when a resource is not found."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class HandlerNotFoundError(PulseException):
    """No handler is registered for a job type."""

    def __init__(self, job_type: str):
        self.job_type = job_type
        super().__init__(
            f"No handler registered for job type: {job_type}",
            details={"job_type": job_type},
        )


class HandlerExecutionError(PulseException):
    """A job handler raised or exceeded its timeout."""

    def __init__(self, job_type: str, message: str, timed_out: bool = False):
        self.job_type = job_type
        self.timed_out = timed_out
        super().__init__(
            message, details={"job_type": job_type, "timed_out": timed_out}
        )


class TransientExternalError(PulseException):
    """An external collaborator failed; the loop retries on its next tick."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY, details)


class ConflictAlreadySatisfied(PulseException):
    """The external system already holds the registration being created."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_409_CONFLICT, details)


class ResourceNotFound(PulseException):
    """The external resource does not exist or is invisible to us."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class ResourceForbidden(PulseException):
    """Our credentials may not manage the external resource."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_403_FORBIDDEN, details)


def create_error_response(
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Create standardized error response envelope."""
    return {
        "ok": False,
        "error": {
            "message": message,
            "code": status_code,
            "details": details or {},
        },
        "request_id": request_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def create_success_response(
    data: Any, message: str | None = None, request_id: str | None = None
) -> dict[str, Any]:
    """Create standardized success response envelope."""
    return {
        "ok": True,
        "data": data,
        "message": message,
        "request_id": request_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _error_json(
    request: Request,
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(
            status_code=status_code,
            message=message,
            details=details,
            request_id=_request_id(request),
        ),
    )


async def pulse_exception_handler(
    request: Request, exc: PulseException
) -> JSONResponse:
    """Handle Pulse specific exceptions."""
    # Rejected input is routine; only server-side failures are errors
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Application exception",
        exception=exc.__class__.__name__,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        request_id=_request_id(request),
    )
    return _error_json(request, exc.status_code, exc.message, exc.details)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed request bodies and parameters in the standard envelope."""
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", ""),
        }
        for error in exc.errors()
    ]
    logger.info(
        "Request validation failed",
        path=request.url.path,
        errors=errors,
        request_id=_request_id(request),
    )
    return _error_json(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Request validation failed",
        {"errors": errors},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=_request_id(request),
    )
    return _error_json(request, exc.status_code, str(exc.detail))


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        "Unhandled exception",
        exception=exc.__class__.__name__,
        message=str(exc),
        request_id=_request_id(request),
        exc_info=True,
    )
    return _error_json(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Attach a correlation ID to the request, its log context and the response."""

    header = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        # A proxy in front of us may already have assigned one
        request_id = request.headers.get(self.header) or str(uuid.uuid4())
        request.state.request_id = request_id

        add_request_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[self.header] = request_id
        return response
