# studio/middleware/error_handler.py
# Structured error handling for the preview API
# Every failure leaves the API as {"error": {"code", "message", "details"?, "request_id"?}}

import traceback
import logging
import uuid
from typing import Callable
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from studio.utils.logger import log_exception

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class AppError(Exception):
    """Base application error with structured response."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: dict = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}


class DatabaseError(AppError):
    """Session registry unreachable."""
    def __init__(self, message: str = "Preview registry is unavailable", details: dict = None):
        super().__init__(
            message=message,
            error_code="DATABASE_ERROR",
            status_code=503,
            details=details
        )


class ValidationError(AppError):
    """Tier or feature selection rejected."""
    def __init__(self, message: str = "Validation failed", details: dict = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details=details
        )


class NotFoundError(AppError):
    """Unknown or expired preview session."""
    def __init__(self, message: str = "Resource not found", details: dict = None):
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=404,
            details=details
        )


class ConflictError(AppError):
    """Requested transition does not match the session's current status."""
    def __init__(self, message: str = "Conflicting resource state", details: dict = None):
        super().__init__(
            message=message,
            error_code="CONFLICT",
            status_code=409,
            details=details
        )


def _request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", None)
    if rid is None:
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = rid
    return rid


def create_error_response(
    error_code: str,
    message: str,
    status_code: int,
    details: dict = None,
    request_id: str = None
) -> JSONResponse:
    """Create a standardized JSON error response."""
    content = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    headers = None
    if request_id:
        content["error"]["request_id"] = request_id
        headers = {REQUEST_ID_HEADER: request_id}

    return JSONResponse(status_code=status_code, content=content, headers=headers)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Outermost safety net: assigns the request id, echoes it back, and turns
    anything that escaped the exception handlers into a JSON 500.
    """

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = _request_id(request)

        try:
            response = await call_next(request)
        except Exception as e:
            error_details = None
            if self.debug:
                error_details = {
                    "type": type(e).__name__,
                    "traceback": traceback.format_exc()
                }

            log_exception(e, context=f"unhandled error on {request.url.path}", request_id=request_id)
            return create_error_response(
                error_code="INTERNAL_ERROR",
                message="An internal error occurred. Please try again later.",
                status_code=500,
                details=error_details,
                request_id=request_id
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def setup_exception_handlers(app):
    """Register exception handlers on FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        logger.warning(
            f"AppError: {exc.error_code} - {exc.message}",
            extra={"request_id": _request_id(request), "path": request.url.path}
        )
        return create_error_response(
            error_code=exc.error_code,
            message=exc.message,
            status_code=exc.status_code,
            details=exc.details,
            request_id=_request_id(request)
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
            for err in exc.errors()
        ]
        return create_error_response(
            error_code="VALIDATION_ERROR",
            message="Request body or parameters are invalid",
            status_code=422,
            details={"errors": errors},
            request_id=_request_id(request)
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return create_error_response(
            error_code="HTTP_ERROR",
            message=str(exc.detail),
            status_code=exc.status_code,
            request_id=_request_id(request)
        )

    @app.exception_handler(DBAPIError)
    @app.exception_handler(ConnectionRefusedError)
    async def database_error_handler(request: Request, exc: Exception):
        # Registry outages surface as 503 so clients retry instead of giving up
        log_exception(exc, context=f"database error on {request.url.path}")
        err = DatabaseError()
        return create_error_response(
            error_code=err.error_code,
            message=err.message,
            status_code=err.status_code,
            request_id=_request_id(request)
        )
