"""Translation of storage-layer failures into application errors.

SQLAlchemy and the DBAPI drivers report failures through a handful of
exception types whose meaning depends on the driver message or SQLSTATE.
``classify_storage_error`` reduces them to an ``ErrorKind``;
``translate_storage_error`` builds the ``AppError`` that is shown to clients.
"""
import functools
import logging
import re
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Tuple

from sqlalchemy.exc import (
    DataError,
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    StatementError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from .errors import AppError, ErrorKind

logger = logging.getLogger(__name__)

SQLSTATE_UNIQUE_VIOLATION = "23505"
SQLSTATE_NOT_NULL_VIOLATION = "23502"
SQLSTATE_FOREIGN_KEY_VIOLATION = "23503"
SQLSTATE_CHECK_VIOLATION = "23514"
MYSQL_DUPLICATE_ENTRY = 1062

# Conditions worth retrying: write conflicts, dropped connections and
# interruptions caused by a server failover or shutdown.
RETRYABLE_SQLSTATES = {
    "40001": "serialization_failure",
    "40P01": "deadlock_detected",
    "57P01": "admin_shutdown",
    "57P02": "crash_shutdown",
    "57P03": "cannot_connect_now",
    "08000": "connection_exception",
    "08003": "connection_does_not_exist",
    "08006": "connection_failure",
}

_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: (?:\w+\.)?(\w+)")
_PG_KEY = re.compile(r"Key \((?P<field>[^)]+)\)=\((?P<value>.*?)\)")
_MYSQL_DUPLICATE = re.compile(r"Duplicate entry '(?P<value>.*?)' for key '(?:\w+\.)?(?P<field>[^']+)'")
_LOCKED_MESSAGES = ("database is locked", "database table is locked", "deadlock")
_BAD_PARAMETER_ERRORS = (ValueError, TypeError, OverflowError)


class StorageValidationError(Exception):
    """Raised by model validators when a field value is rejected."""

    def __init__(self, errors: Dict[str, str]) -> None:
        self.errors = errors
        super().__init__(". ".join(errors.values()))


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = exc.orig
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _driver_code(exc: DBAPIError) -> Any:
    args = getattr(exc.orig, "args", ())
    return args[0] if args else None


def _driver_message(exc: StatementError) -> str:
    return str(exc.orig) if exc.orig is not None else str(exc)


def _is_unique_violation(exc: IntegrityError) -> bool:
    if _sqlstate(exc) == SQLSTATE_UNIQUE_VIOLATION or _driver_code(exc) == MYSQL_DUPLICATE_ENTRY:
        return True
    message = _driver_message(exc)
    return "UNIQUE constraint failed" in message or "duplicate key" in message.lower()


def duplicate_key_field(exc: IntegrityError) -> Tuple[str, Optional[str]]:
    """Best effort extraction of the offending field and value from the driver message."""
    message = _driver_message(exc)
    match = _PG_KEY.search(message) or _MYSQL_DUPLICATE.search(message)
    if match:
        return match.group("field"), match.group("value")
    match = _SQLITE_UNIQUE.search(message)
    if match:
        return match.group(1), None
    return "value", None


def classify_storage_error(exc: BaseException) -> Optional[ErrorKind]:
    """Return the kind of a storage failure, or None when it is not one we recognise."""
    if isinstance(exc, StorageValidationError):
        return ErrorKind.VALIDATION
    if isinstance(exc, IntegrityError):
        if _is_unique_violation(exc):
            return ErrorKind.DUPLICATE_KEY
        return ErrorKind.VALIDATION
    if isinstance(exc, DataError):
        return ErrorKind.CAST
    if isinstance(exc, (DisconnectionError, PoolTimeoutError, OperationalError, InterfaceError)):
        return ErrorKind.CONNECTIVITY
    if isinstance(exc, DBAPIError):
        return ErrorKind.CONNECTIVITY if exc.connection_invalidated else None
    if isinstance(exc, StatementError) and isinstance(exc.orig, _BAD_PARAMETER_ERRORS):
        return ErrorKind.CAST
    if isinstance(exc, OverflowError):
        # sqlite3 rejects ints wider than 64 bits before the statement runs
        return ErrorKind.CAST
    return None


def _validation_error(exc: BaseException) -> AppError:
    if isinstance(exc, StorageValidationError):
        messages = list(exc.errors.values())
        details = exc.errors
    else:
        messages = [_driver_message(exc).splitlines()[0]]
        details = None
    return AppError(ErrorKind.VALIDATION, f"Invalid input data. {'. '.join(messages)}", details=details)


def _duplicate_key_error(exc: IntegrityError) -> AppError:
    field, value = duplicate_key_field(exc)
    details = {"field": field}
    if value is not None:
        details["value"] = value
    return AppError(
        ErrorKind.DUPLICATE_KEY,
        f"Duplicate field value: {field}. Please use another value!",
        details=details,
    )


def _cast_error(exc: BaseException) -> AppError:
    value = getattr(exc, "orig", None) or exc
    path = "value"
    params = getattr(exc, "params", None)
    if isinstance(params, dict) and len(params) == 1:
        path = next(iter(params))
    return AppError(ErrorKind.CAST, f"Invalid {path}: {str(value).splitlines()[0]}")


def _connection_error(exc: BaseException) -> AppError:
    return AppError(ErrorKind.CONNECTIVITY, "Database connection failed. Please try again later.")


def translate_storage_error(exc: BaseException) -> AppError:
    """Map a raw storage failure to an ``AppError``.

    Already normalized errors are returned untouched so that nested
    wrappers do not re-wrap them.
    """
    if isinstance(exc, AppError):
        return exc
    kind = classify_storage_error(exc)
    if kind is ErrorKind.VALIDATION:
        return _validation_error(exc)
    if kind is ErrorKind.DUPLICATE_KEY:
        return _duplicate_key_error(exc)
    if kind is ErrorKind.CAST:
        return _cast_error(exc)
    if kind is ErrorKind.CONNECTIVITY:
        return _connection_error(exc)
    return AppError(
        ErrorKind.SERVER,
        str(exc) or type(exc).__name__,
        public_message="Something went wrong with database operation",
    )


def is_retryable_error(exc: BaseException) -> bool:
    """Whether repeating the failed operation could succeed.

    Informational only; nothing in the service retries automatically.
    """
    if isinstance(exc, (DisconnectionError, PoolTimeoutError)):
        return True
    if not isinstance(exc, DBAPIError):
        return False
    if exc.connection_invalidated or _sqlstate(exc) in RETRYABLE_SQLSTATES:
        return True
    if isinstance(exc, OperationalError):
        message = _driver_message(exc).lower()
        return any(text in message for text in _LOCKED_MESSAGES)
    return False


def storage_operation(func):
    """Decorate a data access function so its failures surface as ``AppError``."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except AppError:
            raise
        except Exception as exc:
            error = translate_storage_error(exc)
            if is_retryable_error(exc):
                logger.warning("Retryable storage failure in %s: %s", func.__name__, error.message)
            raise error from exc

    return wrapper


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """Commit the unit of work on success, roll it back on any failure."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
