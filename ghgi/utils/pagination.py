from __future__ import annotations

import math


def clamp_per_page(per_page, *, default: int = 20, lo: int = 1, hi: int = 100) -> int:
    try:
        n = int(per_page)
    except (TypeError, ValueError):
        n = default
    return max(lo, min(hi, n))


def paginate(query, page, per_page: int) -> dict:
    """Offset pagination over an ORM query (already ordered)."""
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    page = max(1, page)

    total = query.order_by(None).count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()
    return {
        "items": items,
        "page": page,
        "per_page": per_page,
        "total": total,
        "last_page": max(1, math.ceil(total / per_page)) if per_page else 1,
    }
