"""Page/per_page query parameters for list endpoints."""

from dataclasses import dataclass
from math import ceil

from fastapi import Query
from sqlalchemy.orm import Query as SQLAlchemyQuery

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


@dataclass(frozen=True)
class PaginationParams:
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    def pages_for(self, total: int) -> int:
        return ceil(total / self.per_page) if total else 0


def get_pagination(
    page: int = Query(1, ge=1),
    per_page: int = Query(DEFAULT_PER_PAGE, ge=1, le=MAX_PER_PAGE),
) -> PaginationParams:
    return PaginationParams(page=page, per_page=per_page)


def paginate_query(query: SQLAlchemyQuery, pagination: PaginationParams) -> tuple[list, int]:
    """Return one page of rows plus the unpaginated row count."""
    total = query.order_by(None).count()
    rows = query.offset(pagination.offset).limit(pagination.per_page).all()
    return rows, total
