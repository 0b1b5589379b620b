"""Global error handler: consistent JSON error responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from poapgate.errors import (
    DuplicateActionError,
    LedgerQueryError,
    MirrorWriteError,
    NotEligibleError,
    PlatformError,
    ProposalClosedError,
    ProposalNotConfirmedError,
    ProposalRejectedError,
    RecordNotFoundError,
    TransactionSubmissionError,
    UniqueConstraintViolation,
)

logger = structlog.get_logger()

STATUS_BY_ERROR: dict[type[PlatformError], int] = {
    NotEligibleError: 403,
    RecordNotFoundError: 404,
    DuplicateActionError: 409,
    UniqueConstraintViolation: 409,
    ProposalClosedError: 409,
    ProposalNotConfirmedError: 409,
    ProposalRejectedError: 409,
    TransactionSubmissionError: 502,
    LedgerQueryError: 503,
    MirrorWriteError: 500,
}


def status_for(exc: PlatformError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return 500


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent JSON format."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Handle validation errors with consistent JSON format."""
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(PlatformError)
    async def platform_exception_handler(request: Request, exc: PlatformError) -> JSONResponse:
        """Domain failures: user-facing message, retry hint, mapped status."""
        status_code = status_for(exc)
        if status_code >= 500:
            logger.warning(
                "platform_error",
                path=request.url.path,
                error_type=type(exc).__name__,
                error=str(exc),
            )
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.user_message, "retryable": exc.retryable},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions: always return JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
