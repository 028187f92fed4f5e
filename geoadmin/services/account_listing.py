"""
Account listing query builder.

Turns a PaginationRequest into three statements: total count, filtered
count and one page of rows. Caller input never reaches query text: the
sort column comes from a closed enum-to-column mapping and search text is
always a bound parameter with LIKE metacharacters escaped.
"""

import time

from sqlalchemy import ColumnElement, Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute
from structlog import get_logger

from geoadmin.db.models import Account
from geoadmin.exceptions import translate_db_errors
from geoadmin.models.domain import (
    AccountListing,
    AccountRow,
    PaginationRequest,
    SortColumn,
    SortDirection,
)
from geoadmin.observability.metrics import metrics
from geoadmin.observability.tracing import trace_operation

logger = get_logger(__name__)

SORT_COLUMNS: dict[SortColumn, InstrumentedAttribute] = {
    SortColumn.ID: Account.id,
    SortColumn.USERNAME: Account.username,
    SortColumn.EMAIL: Account.email,
    SortColumn.CREATED_AT: Account.created_at,
}

# DataTables sends the column index, not its name
DATATABLE_COLUMNS: tuple[SortColumn, ...] = (
    SortColumn.ID,
    SortColumn.USERNAME,
    SortColumn.EMAIL,
    SortColumn.CREATED_AT,
)


def column_for_index(index: int | None) -> SortColumn:
    """Map a DataTables column index onto the allowlist; out-of-range means id."""
    if index is None or not 0 <= index < len(DATATABLE_COLUMNS):
        return SortColumn.ID
    return DATATABLE_COLUMNS[index]


def search_filter(search: str) -> ColumnElement[bool]:
    """Case-insensitive substring match on username OR email, metacharacters literal."""
    return or_(
        Account.username.icontains(search, autoescape=True),
        Account.email.icontains(search, autoescape=True),
    )


def build_count_query(request: PaginationRequest | None = None) -> Select[tuple[int]]:
    """COUNT(*) over accounts, filtered when the request carries search text."""
    query = select(func.count()).select_from(Account)
    if request is not None and request.search:
        query = query.where(search_filter(request.search))
    return query


def build_page_query(request: PaginationRequest) -> Select[tuple[Account]]:
    column = SORT_COLUMNS[request.order_column]
    descending = request.order_direction == SortDirection.DESC

    order_by = [column.desc() if descending else column.asc()]
    if request.order_column != SortColumn.ID:
        order_by.append(Account.id.desc() if descending else Account.id.asc())

    query = select(Account)
    if request.search:
        query = query.where(search_filter(request.search))
    return query.order_by(*order_by).offset(request.offset).limit(request.limit)


async def list_accounts(db: AsyncSession, request: PaginationRequest) -> AccountListing:
    """
    Run the listing for one request.

    The two counts are separate queries, so they can disagree with the
    page under concurrent writes; filtered_count equals total_count when
    there is no search text.
    """
    started = time.perf_counter()

    with trace_operation(
        "list_accounts", order_column=request.order_column.value, searched=bool(request.search)
    ), translate_db_errors("list accounts"):
        total_count = (await db.execute(build_count_query())).scalar_one()
        filtered_count = (await db.execute(build_count_query(request))).scalar_one()

        result = await db.execute(build_page_query(request))
        rows = [
            AccountRow(
                id=account.id,
                username=account.username,
                email=account.email,
                created_at=account.created_at,
            )
            for account in result.scalars().all()
        ]

    metrics.record_listing(
        searched=request.search is not None, duration=time.perf_counter() - started
    )
    logger.debug(
        "accounts_listed",
        offset=request.offset,
        limit=request.limit,
        order_column=request.order_column.value,
        order_direction=request.order_direction.value,
        searched=request.search is not None,
        returned=len(rows),
        filtered_count=filtered_count,
        total_count=total_count,
    )

    return AccountListing(rows=rows, total_count=total_count, filtered_count=filtered_count)
