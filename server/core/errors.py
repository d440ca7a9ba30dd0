# server/core/errors.py

import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException


logger = logging.getLogger(__name__)

REQUIRED_ERROR_TYPES = {"missing", "string_too_short"}


class AppError(Exception):
    """
    Error raised by request handlers. Rendered as
    {"success": false, "message": ...} with the given status code.
    """

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message},
        headers=headers,
    )


def _message_from_validation(exc: RequestValidationError) -> str:
    errors = exc.errors() or []
    if not errors:
        return "Request validation failed"
    if any(err.get("type") in REQUIRED_ERROR_TYPES for err in errors):
        return "All fields are required"

    first = errors[0]
    field = ".".join(str(x) for x in first.get("loc", []) if x != "body")
    msg = first.get("msg") or "Invalid input"
    return f"{field}: {msg}" if field else msg


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return error_response(exc.status_code, exc.message)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return error_response(exc.status_code, message, getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response(status.HTTP_400_BAD_REQUEST, _message_from_validation(exc))


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("%s %s raised an unhandled error", request.method, request.url.path, exc_info=exc)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_error_handlers(app: FastAPI):
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
