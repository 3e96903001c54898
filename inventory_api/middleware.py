"""HTTP middleware: request logging and request body size limit."""
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from .errors import payload_too_large
from .handlers import render_error

logger = logging.getLogger("inventory_api.requests")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One line per request: method, path, status and duration."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info("%s %s %d %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
        return response


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject JSON requests whose declared body is larger than ``max_body_bytes``.

    Multipart uploads are bounded separately by the upload route.
    """

    def __init__(self, app, max_body_bytes: int, development: bool = False) -> None:
        super().__init__(app)
        self.max_body_bytes = max_body_bytes
        self.development = development

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        length = request.headers.get("content-length")
        is_json = request.headers.get("content-type", "").startswith("application/json")
        if is_json and length and length.isdigit() and int(length) > self.max_body_bytes:
            error = payload_too_large(
                f"Request body of {length} bytes exceeds the {self.max_body_bytes} byte limit",
                status_code=413,
            )
            logger.warning("Rejected %s %s: %s", request.method, request.url.path, error.message)
            return render_error(error, self.development)
        return await call_next(request)
