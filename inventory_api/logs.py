"""
Process-wide logging for the inventory service.

Request lines come from ``RequestLoggingMiddleware`` and storage warnings from
``db_errors``; both go through the handler installed here. Messages carry ids,
paths and statuses only, never passwords, tokens or request bodies.
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# uvicorn repeats what the middleware logs; SQLAlchemy echoes statements at INFO
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")


def configure_logging(level: str = "INFO") -> int:
    """Install one stdout handler at ``level`` and return the numeric level used.

    Unknown level names fall back to INFO. Calling again replaces the handler,
    so apps built one after another in tests do not stack handlers.
    """
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT, stream=sys.stdout, force=True)

    quiet = logging.DEBUG if numeric <= logging.DEBUG else logging.WARNING
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet)
    return numeric
