"""Uniform JSON envelopes for every response the API sends.

Success: ``{"success": true, "message": ..., "data": ..., "meta": ...}``
Failure: ``{"success": false, "error": {"message": ..., "type": ..., "details": ...}}``
"""
import math
from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response


def _json(status_code: int, body: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


def success_response(status_code: int = 200, message: str = "Success", data: Any = None, meta: Any = None) -> JSONResponse:
    body: Dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    if meta is not None:
        body["meta"] = meta
    return _json(status_code, body)


def error_body(
    message: str,
    error_type: Optional[str] = None,
    details: Any = None,
    stack: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    error: Dict[str, Any] = {"message": message}
    if error_type:
        error["type"] = error_type
    if details is not None:
        error["details"] = details
    if stack:
        error["stack"] = stack
    error.update({k: v for k, v in extra.items() if v is not None})
    return {"success": False, "error": error}


def error_response(
    status_code: int = 500,
    message: str = "Something went wrong",
    details: Any = None,
    error_type: Optional[str] = None,
    stack: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return _json(status_code, error_body(message, error_type, details, stack), headers=headers)


def validation_error_response(errors: Any) -> JSONResponse:
    return error_response(400, "Validation failed", details=errors, error_type="ValidationError")


def not_found_response(resource: str = "Resource") -> JSONResponse:
    return error_response(404, f"{resource} not found", error_type="NotFoundError")


def unauthorized_response(message: str = "Unauthorized access") -> JSONResponse:
    return error_response(401, message, error_type="UnauthorizedError")


def forbidden_response(message: str = "Access forbidden") -> JSONResponse:
    return error_response(403, message, error_type="ForbiddenError")


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    has_next = page < total_pages
    has_prev = page > 1
    pagination: Dict[str, Any] = {
        "currentPage": page,
        "totalPages": total_pages,
        "totalItems": total,
        "itemsPerPage": limit,
        "hasNext": has_next,
        "hasPrev": has_prev,
    }
    if has_next:
        pagination["nextPage"] = page + 1
    if has_prev:
        pagination["prevPage"] = page - 1
    return pagination


def paginated_response(data: Any, page: int, limit: int, total: int, message: str = "Success") -> JSONResponse:
    return _json(
        200,
        {
            "success": True,
            "message": message,
            "data": data,
            "meta": {"pagination": pagination_meta(page, limit, total)},
        },
    )


def created_response(message: str = "Resource created successfully", data: Any = None) -> JSONResponse:
    return success_response(201, message, data)


def updated_response(message: str = "Resource updated successfully", data: Any = None) -> JSONResponse:
    return success_response(200, message, data)


def deleted_response(message: str = "Resource deleted successfully") -> JSONResponse:
    return success_response(200, message)


def no_content_response() -> Response:
    return Response(status_code=204)


def rate_limit_response(message: str = "Too many requests", retry_after: Optional[int] = None) -> JSONResponse:
    headers = {"Retry-After": str(retry_after)} if retry_after else None
    return _json(
        429,
        error_body(message, "RateLimitError", retryAfter=retry_after or None),
        headers=headers,
    )
