"""Page/pageSize handling shared by the list endpoints."""

from __future__ import annotations

import math
from typing import Mapping


def _positive_int(value: object, default: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 1 else default


def parse_pagination(args: Mapping[str, str], *, default_page_size: int = 10, max_page_size: int = 100) -> tuple[int, int]:
    page = _positive_int(args.get("page"), 1)
    page_size = min(_positive_int(args.get("pageSize"), default_page_size), max_page_size)
    return page, page_size


def pagination_payload(page: int, page_size: int, total_items: int) -> dict[str, object]:
    total_pages = math.ceil(total_items / page_size) if page_size else 0
    return {
        "currentPage": page,
        "pageSize": page_size,
        "totalItems": total_items,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPreviousPage": page > 1,
    }


def paginate(query, page: int, page_size: int):
    """Return ``(items, total_items)`` for ``query``."""
    total_items = query.order_by(None).count()
    items = query.limit(page_size).offset((page - 1) * page_size).all()
    return items, total_items
