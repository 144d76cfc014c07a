import math
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from backend import config


def success_response(data: Any, message: str | None = None, status_code: int = 200) -> JSONResponse:
    body: dict[str, Any] = {"success": True, "data": jsonable_encoder(data)}
    if message:
        body["message"] = message
    return JSONResponse(status_code=status_code, content=body)


def error_response(
    code: str,
    message: str,
    status_code: int,
    details: dict[str, str] | None = None,
) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def parse_pagination(page: int | None, limit: int | None) -> tuple[int, int, int]:
    """Clamp page/limit to safe values and return (page, limit, offset)."""
    clean_page = max(1, page or config.PAGE_DEFAULT)
    clean_limit = min(max(1, limit or config.PAGE_LIMIT_DEFAULT), config.PAGE_LIMIT_MAX)
    return clean_page, clean_limit, (clean_page - 1) * clean_limit


def pagination_metadata(page: int, limit: int, total_items: int) -> dict[str, Any]:
    total_pages = math.ceil(total_items / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total_items": total_items,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1,
    }
