"""Pagination helpers shared by list endpoints"""

import math
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

MAX_PAGE_SIZE = 100


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class Page(BaseModel, Generic[T]):
    data: list[T]
    pagination: Pagination


def normalize_paging(page: int, limit: int) -> tuple[int, int]:
    """Clamp page/limit to sane bounds"""
    return max(1, page), max(1, min(limit, MAX_PAGE_SIZE))


def build_page(items: list[Any], total: int, page: int, limit: int) -> dict:
    return {
        "data": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if limit else 0,
        },
    }


def paginate_query(query, page: int, limit: int) -> tuple[list, int]:
    """Apply offset/limit to a SQLAlchemy query, returning (items, total)"""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, total
