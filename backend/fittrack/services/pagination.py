# fittrack/services/pagination.py
# Page metadata for list responses
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from fittrack.core.responses import success


def page_meta(page: int, limit: int, total: int) -> Dict[str, Any]:
    # total=0 -> 0 pages, no next/prev
    total_pages = math.ceil(total / limit) if total > 0 else 0
    has_next = page < total_pages
    has_prev = page > 1 and total_pages > 0
    return {
        "currentPage": page,
        "itemsPerPage": limit,
        "totalItems": total,
        "totalPages": total_pages,
        "hasNextPage": has_next,
        "hasPrevPage": has_prev,
        "nextPage": page + 1 if has_next else None,
        "prevPage": page - 1 if has_prev else None,
    }


def paginate(data: List[Any], page: int, limit: int, total: int, message: Optional[str] = None) -> Dict[str, Any]:
    return success(data, message or "Data retrieved successfully", pagination=page_meta(page, limit, total))
