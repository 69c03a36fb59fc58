import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    default_status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status_code
        super().__init__(self.message)


class ValidationFailed(AppError):
    """Bad payload shape or business validation failure. Never mutates state."""

    default_status_code = status.HTTP_400_BAD_REQUEST


class Unauthenticated(AppError):
    default_status_code = status.HTTP_401_UNAUTHORIZED


class NotAuthorized(AppError):
    """The actor holds no authority over the target entity."""

    default_status_code = status.HTTP_403_FORBIDDEN


class SelfApprovalForbidden(NotAuthorized):
    """A requester attempted to decide on their own request."""


class NotFound(AppError):
    default_status_code = status.HTTP_404_NOT_FOUND


class RequestNotFound(NotFound):
    pass


class Conflict(AppError):
    default_status_code = status.HTTP_409_CONFLICT


class AlreadyDecided(Conflict):
    """The targeted approval record is no longer PENDING."""


class RequestNotPending(Conflict):
    """The request has left the state the operation requires."""


class InsufficientBalance(AppError):
    default_status_code = status.HTTP_400_BAD_REQUEST


class LedgerInconsistency(AppError):
    """A ledger bucket lacked the days a caller tried to move out of it.

    Signals a bug in an earlier transition, never a user error.
    """

    default_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.context = context or {}
        super().__init__(message)


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
        ).model_dump(),
    )


async def _ledger_exception_handler(request: Request, exc: LedgerInconsistency) -> JSONResponse:
    logger.error(
        "Ledger inconsistency on %s %s: %s context=%s",
        request.method,
        request.url.path,
        exc.message,
        exc.context,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail="Internal ledger error",
            status_code=exc.status_code,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(LedgerInconsistency, _ledger_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
