"""Search filters and pagination shared by repository queries"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from sqlalchemy import or_
from sqlalchemy.orm import Query

from ..config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from .errors import DomainValidationError

T = TypeVar("T")


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass
class DateRangeFilter:
    """Half-open range [start, end) on a datetime column; either bound may be open"""

    field: str
    start: Optional[datetime] = None
    end: Optional[datetime] = None


@dataclass
class DataFilters:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    date_ranges: list[DateRangeFilter] = field(default_factory=list)
    sort_by: list[str] = field(default_factory=list)
    sort_direction: SortDirection = SortDirection.ASC
    # column -> substrings, matched case-insensitively (OR within a column)
    like: dict[str, list[str]] = field(default_factory=dict)
    # column -> accepted values
    matches: dict[str, list[Any]] = field(default_factory=dict)
    # False returns every matching row on a single page
    paginated: bool = True

    def normalized(self) -> "DataFilters":
        """Clamp page and page size into their accepted ranges"""
        if not self.paginated:
            self.page = 1
            return self
        self.page = max(self.page, 1)
        if self.page_size < 1:
            self.page_size = DEFAULT_PAGE_SIZE
        self.page_size = min(self.page_size, MAX_PAGE_SIZE)
        return self


@dataclass
class PaginatedResult(Generic[T]):
    data: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int


def _column(columns: dict, name: str):
    try:
        return columns[name]
    except KeyError:
        raise DomainValidationError(f"Unsupported filter field: {name}") from None


def apply_filters(query: Query, filters: DataFilters, columns: dict) -> Query:
    """
    Apply range, like, match and sort filters to a query.
    `columns` maps public field names to ORM columns; anything else is rejected.
    """
    for date_range in filters.date_ranges:
        column = _column(columns, date_range.field)
        if date_range.start is not None:
            query = query.filter(column >= date_range.start)
        if date_range.end is not None:
            query = query.filter(column < date_range.end)

    for name, values in filters.like.items():
        column = _column(columns, name)
        clauses = [column.ilike(f"%{value}%") for value in values if value]
        if clauses:
            query = query.filter(or_(*clauses))

    for name, values in filters.matches.items():
        if values:
            query = query.filter(_column(columns, name).in_(values))

    for name in filters.sort_by:
        column = _column(columns, name)
        query = query.order_by(
            column.desc() if filters.sort_direction == SortDirection.DESC else column.asc()
        )

    return query


def paginate(query: Query, filters: DataFilters) -> PaginatedResult:
    filters.normalized()
    if not filters.paginated:
        data = query.all()
        return PaginatedResult(
            data=data, total=len(data), page=1, page_size=len(data), total_pages=1
        )

    total = query.order_by(None).count()
    offset = (filters.page - 1) * filters.page_size
    data = query.offset(offset).limit(filters.page_size).all()
    return PaginatedResult(
        data=data,
        total=total,
        page=filters.page,
        page_size=filters.page_size,
        total_pages=math.ceil(total / filters.page_size) if total else 0,
    )
