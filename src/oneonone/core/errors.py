"""Domain error taxonomy and its HTTP mapping.

Services raise these; routers never translate them by hand. The handlers
installed by install_error_handlers() turn each into a JSON response
with a {"detail": ...} body.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


class DomainError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Missing or invalid input (e.g. no employee selected)."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(DomainError):
    """Caller's role or ownership does not allow the operation."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(DomainError):
    """Referenced entity does not exist or was deleted."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(DomainError):
    """Operation clashes with current state (duplicates, bad transitions)."""

    status_code = status.HTTP_409_CONFLICT


class ExternalServiceError(DomainError):
    """Storage, speech/LLM or email collaborator failed."""

    status_code = status.HTTP_502_BAD_GATEWAY


class ServiceNotConfiguredError(DomainError):
    """A required external collaborator has no credentials configured."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


async def _domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning(
            "api.domain_error",
            path=request.url.path,
            error_type=type(exc).__name__,
            error=exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = "Invalid request"
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", message)
        if location:
            message = f"{location}: {message}"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": message})


def install_error_handlers(app: FastAPI) -> None:
    """Register the DomainError -> HTTP response mapping on an app.

    Request body and query validation failures are reported as 400 with
    the same {"detail": ...} shape.
    """
    app.add_exception_handler(DomainError, _domain_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
