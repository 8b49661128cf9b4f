"""
Mapping of domain errors to HTTP responses.
"""

from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from core.config import settings
from core.exceptions import (
    AuthenticationRequired,
    AuthorizationDenied,
    BusinessRuleViolation,
    ConflictError,
    NotFound,
    SurveyError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

# Most specific first: ConflictError is a BusinessRuleViolation
STATUS_BY_ERROR: list[tuple[type[SurveyError], int]] = [
    (AuthenticationRequired, status.HTTP_401_UNAUTHORIZED),
    (AuthorizationDenied, status.HTTP_403_FORBIDDEN),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ValidationError, 422),
    (ConflictError, status.HTTP_409_CONFLICT),
    (BusinessRuleViolation, status.HTTP_409_CONFLICT),
]


def status_for(exc: SurveyError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def survey_error_handler(request: Request, exc: SurveyError) -> JSONResponse:
    status_code = status_for(exc)
    logger.info(
        "request_rejected",
        error_code=exc.error_code,
        status_code=status_code,
        path=request.url.path,
        method=request.method,
    )
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the traceback and answer with an opaque 500."""
    error_id = str(uuid4())
    logger.exception(
        "unhandled_exception",
        error_id=error_id,
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "INTERNAL_ERROR",
            "detail": str(exc) if settings.DEBUG else "An internal server error occurred",
            "error_id": error_id,
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SurveyError, survey_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
