"""
Error handling for the HTTP surface.
"""

import logging
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import (
    ValidationError,
    NotFoundError,
    ExternalServiceError,
)

logger = logging.getLogger(__name__)

APPLICATION_ERRORS = (
    ValidationError,
    NotFoundError,
    ExternalServiceError,
)


def _error_body(message, details=None) -> dict:
    error = {"message": message}
    if details is not None:
        error["details"] = details
    return {"error": error}


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Translate any escaped exception into the API error envelope."""
    route = f"{request.method} {request.url.path}"

    if isinstance(exc, APPLICATION_ERRORS):
        # 5xx application errors are ours, 4xx are the caller's
        log = logger.error if exc.status_code >= 500 else logger.info
        log(f"Application error on {route}: {exc.detail}")
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.detail))
    elif isinstance(exc, HTTPException):
        logger.warning(f"HTTP exception on {route}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code, content=_error_body(str(exc.detail))
        )
    elif isinstance(exc, RequestValidationError):
        logger.warning(f"Validation error on {route}: {exc.errors()}")
        return JSONResponse(
            status_code=422,
            content=_error_body("Validation failed", jsonable_errors(exc)),
        )
    elif isinstance(exc, SQLAlchemyError):
        logger.error(f"Database error on {route}: {str(exc)}")
        return JSONResponse(
            status_code=500, content=_error_body("Database operation failed")
        )
    else:
        logger.error(f"Unexpected error on {route}: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=500, content=_error_body("An unexpected error occurred")
        )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Drop non-serializable context (e.g. raised ValueErrors) from pydantic errors."""
    return [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]
