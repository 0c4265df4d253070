"""
Uniform JSON error responses and the exception handlers that produce them.
"""

from typing import Any

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from backend.http.envelope import DecodeError, Envelope, write_json
from backend.http.query import InvalidIDError
from backend.infrastructure.observability.logging import get_logger
from backend.validation.validator import ValidationFailedError

logger = get_logger(__name__)


def error_response(request: Request, status: int, message: Any) -> Response:
    payload: Envelope = {"error": message}
    return write_json(status, payload)


def server_error_response(request: Request, exc: Exception) -> Response:
    logger.error(
        "Unhandled error",
        method=request.method,
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    message = "the server encountered a problem and could not process your request"
    return error_response(request, 500, message)


def not_found_response(request: Request) -> Response:
    return error_response(request, 404, "the requested resource could not be found")


def method_not_allowed_response(request: Request) -> Response:
    message = f"the {request.method} method is not supported for this resource"
    return error_response(request, 405, message)


def bad_request_response(request: Request, exc: Exception) -> Response:
    return error_response(request, 400, str(exc))


def failed_validation_response(request: Request, errors: dict[str, str]) -> Response:
    return error_response(request, 422, errors)


async def _handle_decode_error(request: Request, exc: DecodeError) -> Response:
    logger.info("Rejected request body", path=request.url.path, kind=exc.kind.value)
    return bad_request_response(request, exc)


async def _handle_invalid_id(request: Request, exc: InvalidIDError) -> Response:
    return not_found_response(request)


async def _handle_validation_failed(request: Request, exc: ValidationFailedError) -> Response:
    return failed_validation_response(request, exc.errors)


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> Response:
    if exc.status_code == 404:
        return not_found_response(request)
    if exc.status_code == 405:
        return method_not_allowed_response(request)
    return write_json(exc.status_code, {"error": exc.detail}, headers=exc.headers)


async def _handle_unexpected(request: Request, exc: Exception) -> Response:
    return server_error_response(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DecodeError, _handle_decode_error)
    app.add_exception_handler(InvalidIDError, _handle_invalid_id)
    app.add_exception_handler(ValidationFailedError, _handle_validation_failed)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(Exception, _handle_unexpected)
