"""Centralized error handling.

Every failure, whether raised by a route, a dependency, the router itself or
the storage layer, ends up in ``global_error_handler``, which is the only
place that turns an error into a client response.
"""
import functools
import logging
import traceback
from typing import Optional

import jwt
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .db_errors import StorageValidationError, classify_storage_error, translate_storage_error
from .errors import AppError, ErrorKind
from .responses import error_response, rate_limit_response

logger = logging.getLogger(__name__)

_STATUS_KINDS = {
    400: ErrorKind.BAD_REQUEST,
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    413: ErrorKind.PAYLOAD_TOO_LARGE,
    429: ErrorKind.RATE_LIMIT,
}


def _field_name(loc) -> str:
    parts = [str(p) for p in loc[1:]] or [str(p) for p in loc]
    return ".".join(parts)


def _request_validation_error(exc: RequestValidationError) -> AppError:
    errors = exc.errors()
    if errors and all(err.get("loc", ("",))[0] == "path" for err in errors):
        err = errors[0]
        return AppError(ErrorKind.CAST, f"Invalid {_field_name(err['loc'])}: {err.get('input')}")
    details = [{"field": _field_name(err.get("loc", ())), "message": err.get("msg", "")} for err in errors]
    summary = "; ".join(f"{d['field']}: {d['message']}" for d in details)
    return AppError(ErrorKind.VALIDATION, f"Invalid input data. {summary}", details=details, public_details=True)


def _http_error(exc: StarletteHTTPException, path: Optional[str]) -> AppError:
    if exc.status_code == 404:
        return AppError(ErrorKind.NOT_FOUND, f"Route {path} not found" if path else str(exc.detail))
    kind = _STATUS_KINDS.get(exc.status_code)
    if kind is None:
        kind = ErrorKind.SERVER if exc.status_code >= 500 else ErrorKind.BAD_REQUEST
    return AppError(kind, str(exc.detail), status_code=exc.status_code)


def normalize_error(exc: BaseException, path: Optional[str] = None) -> AppError:
    """Reduce any raised value to an ``AppError``."""
    if isinstance(exc, AppError):
        return exc
    if isinstance(exc, (SQLAlchemyError, StorageValidationError)) or classify_storage_error(exc) is not None:
        return translate_storage_error(exc)
    if isinstance(exc, jwt.ExpiredSignatureError):
        return AppError(ErrorKind.TOKEN_EXPIRED, str(exc))
    if isinstance(exc, jwt.PyJWTError):
        return AppError(ErrorKind.TOKEN_INVALID, str(exc))
    if isinstance(exc, RateLimitExceeded):
        return AppError(ErrorKind.RATE_LIMIT, f"Rate limit exceeded: {exc.detail}")
    if isinstance(exc, StarletteHTTPException):
        return _http_error(exc, path)
    if isinstance(exc, RequestValidationError):
        return _request_validation_error(exc)
    return AppError(ErrorKind.SERVER, str(exc) or type(exc).__name__)


def _stack(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def render_error(error: AppError, development: bool, exc: Optional[BaseException] = None) -> JSONResponse:
    details = error.details if (development or error.public_details) else None
    stack = _stack(exc if exc is not None else error) if development else None
    return error_response(
        error.status_code,
        error.message_for(development),
        details=details,
        error_type=error.kind.type_name,
        stack=stack,
    )


def _retry_after(exc: BaseException) -> Optional[int]:
    limit = getattr(getattr(exc, "limit", None), "limit", None)
    return limit.get_expiry() if limit is not None else None


def _log_error(request: Request, error: AppError, exc: BaseException, development: bool) -> None:
    level = logging.ERROR if error.status_code >= 500 else logging.WARNING
    if development:
        logger.log(
            level,
            "%s %s -> %d %s: %s",
            request.method,
            request.url.path,
            error.status_code,
            error.kind.name,
            error.message,
            exc_info=(type(exc), exc, exc.__traceback__) if error.status_code >= 500 else None,
        )
    else:
        logger.log(level, "Error: %s", error.message)


async def global_error_handler(request: Request, exc: Exception) -> JSONResponse:
    development = request.app.state.settings.development
    error = normalize_error(exc, request.url.path)
    _log_error(request, error, exc, development)
    if error.kind is ErrorKind.RATE_LIMIT:
        return rate_limit_response(error.message_for(development), _retry_after(exc))
    return render_error(error, development, exc)


async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
    """Requests that matched no route."""
    error = AppError(ErrorKind.NOT_FOUND, f"Route {request.url.path} not found")
    return await global_error_handler(request, error)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(404, not_found_handler)
    for exc_class in (
        AppError,
        StarletteHTTPException,
        RequestValidationError,
        RateLimitExceeded,
        jwt.PyJWTError,
        SQLAlchemyError,
        StorageValidationError,
        Exception,
    ):
        app.add_exception_handler(exc_class, global_error_handler)


def async_handler(func):
    """Forward any failure of an async route to the global handler as an ``AppError``.

    Route bodies can then raise freely without local try/except blocks.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (AppError, StarletteHTTPException):
            raise
        except Exception as exc:
            raise normalize_error(exc) from exc

    return wrapper
