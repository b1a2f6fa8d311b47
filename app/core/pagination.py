"""Pagination helpers."""

import math

from pydantic import BaseModel


class Pagination(BaseModel):
    total: int
    page: int
    pages: int
    limit: int


def paginate(page: int, limit: int, max_limit: int = 200) -> tuple[int, int]:
    """Clamp page/limit; return (skip, limit)."""
    limit = max(1, min(limit, max_limit))
    page = max(1, page)
    return (page - 1) * limit, limit


def page_info(total: int, page: int, limit: int) -> Pagination:
    return Pagination(total=total, page=max(1, page), pages=math.ceil(total / limit) if limit else 0, limit=limit)
