"""
Turns raw listing parameters into a validated ``TransactionQuery`` and runs it
against a transaction store.
"""
import math
from typing import Any, List, Optional, Union

from pydantic import ValidationError

from finanalyst.core.errors import BadRequestError
from finanalyst.db.store import TransactionStore
from finanalyst.models.transaction import (
    Pagination,
    Transaction,
    TransactionFilter,
    TransactionPage,
    TransactionQuery,
)

ValueOrValues = Optional[Union[str, List[str]]]


def _as_list(value: ValueOrValues) -> Optional[List[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    return list(value)


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error.get("loc", ()))
    return f"{field}: {error.get('msg')}" if field else error.get("msg", "Invalid query")


def build_query(
    page: int = 1,
    limit: int = 10,
    sort_by: str = "date",
    sort_order: str = "desc",
    category: ValueOrValues = None,
    status: ValueOrValues = None,
    date_from: Any = None,
    date_to: Any = None,
    amount_min: Optional[float] = None,
    amount_max: Optional[float] = None,
    user_id: Optional[str] = None,
) -> TransactionQuery:
    """
    Absent parameters impose no constraint, a range given on one side only is
    half-open and several category/status values match any of them. The sort
    field is not checked against known attributes.
    """
    try:
        return TransactionQuery(
            filter=TransactionFilter(
                user_id=user_id or None,
                categories=_as_list(category),
                statuses=_as_list(status),
                date_from=date_from or None,
                date_to=date_to or None,
                amount_min=amount_min,
                amount_max=amount_max,
            ),
            sort_by=sort_by or "date",
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
    except ValidationError as e:
        raise BadRequestError(_first_error(e))


def build_pagination(page: int, limit: int, total: int) -> Pagination:
    total_pages = math.ceil(total / limit)
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


def paginate(store: TransactionStore, query: TransactionQuery) -> TransactionPage:
    records = store.find(
        query.filter,
        sort_by=query.sort_by,
        sort_order=query.sort_order,
        skip=query.skip,
        limit=query.limit,
    )
    total = store.count(query.filter)
    return TransactionPage(
        transactions=[Transaction(**record) for record in records],
        pagination=build_pagination(query.page, query.limit, total),
    )
