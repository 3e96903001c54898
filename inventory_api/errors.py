"""Application error taxonomy.

Every failure that reaches a client is described by an ``AppError`` carrying
one ``ErrorKind``. The kind fixes the default HTTP status, the ``type`` label
shown in the error envelope and the generic message used outside development.
"""
from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    VALIDATION = "validation"
    DUPLICATE_KEY = "duplicate_key"
    CAST = "cast"
    CONNECTIVITY = "connectivity"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    RATE_LIMIT = "rate_limit"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    BAD_REQUEST = "bad_request"
    SERVER = "server"

    @property
    def status_code(self) -> int:
        return _KIND_TABLE[self][0]

    @property
    def type_name(self) -> str:
        return _KIND_TABLE[self][1]

    @property
    def public_message(self) -> Optional[str]:
        return _KIND_TABLE[self][2]


# kind -> (default status, envelope type, production message or None to show as is)
_KIND_TABLE = {
    ErrorKind.VALIDATION: (400, "ValidationError", "Invalid input data"),
    ErrorKind.DUPLICATE_KEY: (400, "DuplicateKeyError", "Duplicate data found"),
    ErrorKind.CAST: (400, "CastError", "Invalid data format"),
    ErrorKind.CONNECTIVITY: (503, "ConnectionError", "Database connection failed"),
    ErrorKind.TOKEN_EXPIRED: (401, "TokenExpiredError", "Token expired"),
    ErrorKind.TOKEN_INVALID: (401, "JsonWebTokenError", "Invalid token"),
    ErrorKind.PAYLOAD_TOO_LARGE: (400, "PayloadTooLargeError", "File size too large"),
    ErrorKind.RATE_LIMIT: (429, "RateLimitError", "Too many requests, please try again later"),
    ErrorKind.NOT_FOUND: (404, "NotFoundError", None),
    ErrorKind.UNAUTHORIZED: (401, "UnauthorizedError", None),
    ErrorKind.FORBIDDEN: (403, "ForbiddenError", None),
    ErrorKind.BAD_REQUEST: (400, "BadRequestError", None),
    ErrorKind.SERVER: (500, "ServerError", "Something went wrong"),
}


class AppError(Exception):
    """A normalized, client-facing error."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status_code: Optional[int] = None,
        public_message: Optional[str] = None,
        details: Any = None,
        public_details: bool = False,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code or kind.status_code
        self.public_message = public_message or kind.public_message
        self.details = details
        # details safe to show outside development (e.g. which field is missing)
        self.public_details = public_details

    def message_for(self, development: bool) -> str:
        if development or not self.public_message:
            return self.message
        return self.public_message

    def __repr__(self) -> str:
        return f"AppError({self.kind.name}, {self.status_code}, {self.message!r})"


def not_found(resource: str = "Resource") -> AppError:
    return AppError(ErrorKind.NOT_FOUND, f"{resource} not found")


def bad_request(message: str = "Bad Request", details: Any = None) -> AppError:
    return AppError(ErrorKind.BAD_REQUEST, message, details=details, public_details=details is not None)


def missing_field(field: str) -> AppError:
    return AppError(ErrorKind.BAD_REQUEST, f"{field} is required", details={"field": field}, public_details=True)


def unauthorized(message: str = "Unauthorized") -> AppError:
    return AppError(ErrorKind.UNAUTHORIZED, message)


def forbidden(message: str = "Access forbidden") -> AppError:
    return AppError(ErrorKind.FORBIDDEN, message)


def payload_too_large(message: str, status_code: Optional[int] = None) -> AppError:
    return AppError(ErrorKind.PAYLOAD_TOO_LARGE, message, status_code=status_code)
