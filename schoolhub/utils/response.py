"""
Standard API response format and utility functions.
"""

import math
import re
import unicodedata
from typing import Any
from urllib.parse import quote


def success_response(data: Any = None, message: str = "Success") -> dict:
    return {"success": True, "data": data, "message": message}


def error_response(error: str = "Error", data: Any = None) -> dict:
    body = {"success": False, "error": error}
    if data is not None:
        body["data"] = data
    return body


def paginated_response(items: list, total: int, page: int, limit: int, message: str = "Success") -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return success_response(
        data={
            "items": items,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": total_pages,
        },
        message=message,
    )


def page_bounds(page: int, limit: int) -> tuple[int, int]:
    """Inclusive row range for a 1-based page, as PostgREST's range() expects."""
    start = (page - 1) * limit
    return start, start + limit - 1


def attachment_headers(filename: str) -> dict:
    """
    Content-Disposition for a download. Header values must be latin-1, so
    non-ASCII names (e.g. Vietnamese subject names) go in filename* and the
    plain filename gets an ASCII fallback.
    """
    ascii_name = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode("ascii")
    ascii_name = re.sub(r"[^A-Za-z0-9._-]+", "_", ascii_name)
    encoded = quote(filename, safe="")
    return {"Content-Disposition": f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{encoded}"}
