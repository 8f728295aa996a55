# Overview: Offset pagination shared by list endpoints.

from __future__ import annotations


def paginate(query, page: int, per_page: int) -> tuple[list, dict]:
    """
    Apply offset pagination to an ordered query.

    Returns (rows, pagination) where pagination matches the list response
    envelope: page, per_page, total, total_pages, has_next, has_prev.
    """
    page = max(page, 1)  # Ensure page >= 1

    total = query.order_by(None).count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return rows, {
        "page": page,
        "per_page": per_page,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
