import logging
import sqlite3

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.responses import error_response

logger = logging.getLogger(__name__)

BAD_REQUEST = "BAD_REQUEST"
UNAUTHORIZED = "UNAUTHORIZED"
FORBIDDEN = "FORBIDDEN"
NOT_FOUND = "NOT_FOUND"
CONFLICT = "CONFLICT"
UNPROCESSABLE_ENTITY = "UNPROCESSABLE_ENTITY"
INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class AppError(Exception):
    """Error raised on purpose by the service layer; rendered as-is to the client."""

    code = INTERNAL_SERVER_ERROR
    status_code = 500

    def __init__(self, message: str, details: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class BadRequest(AppError):
    code = BAD_REQUEST
    status_code = 400


class Unauthorized(AppError):
    code = UNAUTHORIZED
    status_code = 401


class Forbidden(AppError):
    code = FORBIDDEN
    status_code = 403


class NotFound(AppError):
    code = NOT_FOUND
    status_code = 404


class Conflict(AppError):
    code = CONFLICT
    status_code = 409


class UnprocessableEntity(AppError):
    code = UNPROCESSABLE_ENTITY
    status_code = 422


class InternalServerError(AppError):
    pass


def _validation_details(exc: RequestValidationError) -> dict[str, str]:
    details: dict[str, str] = {}
    for err in exc.errors():
        # drop the "body"/"query"/"path" prefix
        loc = [str(part) for part in err.get("loc", ())][1:]
        field = ".".join(loc) or "body"
        details.setdefault(field, str(err.get("msg", "Invalid value")))
    return details


async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    return error_response(exc.code, exc.message, exc.status_code, exc.details)


async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    if any(err.get("type") == "json_invalid" for err in exc.errors()):
        return error_response(BAD_REQUEST, "Malformed JSON body", 400)
    return error_response(
        UNPROCESSABLE_ENTITY,
        "Validation failed",
        422,
        _validation_details(exc),
    )


async def integrity_error_handler(_request: Request, exc: sqlite3.IntegrityError) -> JSONResponse:
    message = str(exc)
    if "FOREIGN KEY" in message:
        return error_response(BAD_REQUEST, "Referenced resource does not exist", 400)
    if "UNIQUE" in message:
        return error_response(CONFLICT, "Resource already exists", 409)
    logger.error("Unhandled integrity error: %s", message)
    return error_response(INTERNAL_SERVER_ERROR, "An unexpected error occurred", 500)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(INTERNAL_SERVER_ERROR, "An unexpected error occurred", 500)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(sqlite3.IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
