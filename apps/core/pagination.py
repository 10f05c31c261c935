"""Page/limit pagination shared by list endpoints."""
import math
from dataclasses import dataclass
from typing import List, Tuple

from django.db.models import QuerySet
from ninja import Schema

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PageInfo:
    page: int
    limit: int
    total: int
    total_pages: int


class PaginationOut(Schema):
    page: int
    limit: int
    total: int
    total_pages: int


def paginate(queryset: QuerySet, page: int = 1, limit: int = 10) -> Tuple[List, PageInfo]:
    """
    Slice a queryset for the requested page.

    Pages past the end return an empty list rather than clamping.
    """
    page = max(page or 1, 1)
    limit = min(max(limit or 10, 1), MAX_PAGE_SIZE)

    total = queryset.count()
    offset = (page - 1) * limit
    items = list(queryset[offset:offset + limit])

    return items, PageInfo(
        page=page,
        limit=limit,
        total=total,
        total_pages=math.ceil(total / limit) if total else 0,
    )
