from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int


class AppError(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class StorageError(AppError):
    """A ledger write or read could not be committed. Safe to retry."""

    def __init__(self, message: str = "Storage is unavailable, please retry") -> None:
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


class KeyConflictError(StorageError):
    """A write collided with a uniqueness constraint."""


class NotFoundError(AppError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class ValidationError(AppError):
    """Malformed hours, dates or keys, rejected before any write."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


class AlreadyProcessed(AppError):
    def __init__(self, message: str = "TOIL for this month has already been submitted") -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class NotProcessable(AppError):
    def __init__(self, message: str = "This month cannot be processed until it has ended") -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class InvalidTransition(AppError):
    def __init__(self, message: str = "Only pending TOIL requests can be approved or rejected") -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class SelfApproval(AppError):
    def __init__(self, message: str = "Cannot approve your own TOIL request") -> None:
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN)


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
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
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
