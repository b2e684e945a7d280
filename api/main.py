"""
FastAPI application exposing the auth core as a JSON API.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from api.auth import router as auth_router

logger = logging.getLogger(__name__)


def create_error_response(status_code: int, message: str, data: dict | None = None) -> JSONResponse:
    """Create a standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": message,
            "data": data,
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with standardized response format."""
    if isinstance(exc.detail, dict):
        return create_error_response(
            exc.status_code,
            str(exc.detail.get("message")),
            {"errors": exc.detail.get("errors", [])},
        )
    return create_error_response(exc.status_code, str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request body validation errors with standardized format."""
    error_details = []
    for error in exc.errors():
        field = error["loc"][-1] if error.get("loc") else "unknown"
        message = error.get("msg", "")
        if message.startswith("Value error, "):
            message = message[13:]
        error_details.append({"field": field, "message": message})

    return create_error_response(
        status_code=422,
        message="Validation error",
        data={"validation_errors": error_details},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all other unhandled exceptions with error logging."""
    logger.exception(
        "Unhandled exception occurred",
        extra={"path": request.url.path, "method": request.method},
    )
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="Internal server error",
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="csvauth",
        description="Credential and session manager backed by CSV tables",
    )
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
    app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
    return app


app = create_app()
