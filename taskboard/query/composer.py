import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.exceptions import BadRequest
from taskboard.models import Claims, ListFilters, PageMeta, Role, Todo, User
from taskboard.query.expressions import (
    Expr,
    between,
    contains,
    distribute,
    eq,
    to_sqlalchemy,
)

import logging

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
DEFAULT_SORT_BY = "createdAt"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class ResourceQuery:
    """Describes how a model can be listed."""

    model: type
    # public sort name -> model attribute, in the order they are advertised
    sort_fields: dict[str, str]
    search_fields: tuple[str, ...] = ()
    # QuerySpec attribute -> model attribute, equality match
    filter_fields: dict[str, str] = field(default_factory=dict)
    date_field: str = "created_at"
    owner_field: Optional[str] = None


TODO_QUERY = ResourceQuery(
    model=Todo,
    sort_fields={
        "id": "id",
        "title": "title",
        "isDone": "is_done",
        "createdAt": "created_at",
        "updatedAt": "updated_at",
    },
    search_fields=("title", "description"),
    filter_fields={"is_done": "is_done"},
    owner_field="owner_id",
)

USER_QUERY = ResourceQuery(
    model=User,
    sort_fields={
        "id": "id",
        "username": "username",
        "email": "email",
        "role": "role",
        "createdAt": "created_at",
        "updatedAt": "updated_at",
    },
    search_fields=("username", "email"),
    filter_fields={"role": "role"},
)


@dataclass(frozen=True)
class QuerySpec:
    """Normalized, validated description of a list request."""

    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    is_done: Optional[bool] = None
    role: Optional[Role] = None
    search: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    sort_by: str = DEFAULT_SORT_BY
    sort_order: SortOrder = SortOrder.DESC

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def _as_int(name: str, value: Any, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"{name} must be an integer")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _date_range(
    date_from: Optional[datetime], date_to: Optional[datetime]
) -> tuple[Optional[datetime], Optional[datetime]]:
    if date_from is None and date_to is None:
        return None, None
    lower = _as_utc(date_from) if date_from is not None else EPOCH
    upper = _as_utc(date_to) if date_to is not None else datetime.now(timezone.utc)
    if lower > upper:
        raise BadRequest("dateFrom must not be later than dateTo")
    return lower, upper


def build_spec(raw: Mapping[str, Any], resource: ResourceQuery) -> QuerySpec:
    """
    Normalize already type-coerced list parameters.

    Out of range page and limit values are clamped, not rejected. The sort
    field must be one the resource advertises.
    """
    page = max(DEFAULT_PAGE, _as_int("page", raw.get("page"), DEFAULT_PAGE))
    limit = min(MAX_LIMIT, max(1, _as_int("limit", raw.get("limit"), DEFAULT_LIMIT)))

    sort_by = raw.get("sortBy") or DEFAULT_SORT_BY
    if sort_by not in resource.sort_fields:
        allowed = ", ".join(resource.sort_fields)
        raise BadRequest(f"Invalid sort field: {sort_by}. Allowed fields: {allowed}")

    raw_order = raw.get("sortOrder") or SortOrder.DESC.value
    try:
        sort_order = SortOrder(str(raw_order).lower())
    except ValueError:
        raise BadRequest(f"Invalid sort order: {raw_order}. Allowed values: asc, desc")

    search = raw.get("search")
    if search is not None:
        search = str(search).strip() or None

    role = raw.get("role")
    if role is not None:
        try:
            role = Role(role)
        except ValueError:
            raise BadRequest(f"Invalid role: {role}")

    date_from, date_to = _date_range(raw.get("dateFrom"), raw.get("dateTo"))

    return QuerySpec(
        page=page,
        limit=limit,
        is_done=raw.get("isDone"),
        role=role,
        search=search,
        date_from=date_from,
        date_to=date_to,
        sort_by=sort_by,
        sort_order=sort_order,
    )


def build_filter(
    spec: QuerySpec, resource: ResourceQuery, requester: Optional[Claims] = None
) -> Optional[Expr]:
    """
    Compose ownership, equality, date and search constraints.

    With a search term the result is
    ``(filters AND f1 ~ term) OR (filters AND f2 ~ term) ...``.
    """
    filters: list[Expr] = []

    if resource.owner_field and requester is not None and requester.role != Role.ADMIN:
        filters.append(eq(resource.owner_field, requester.id))

    for attr, column in resource.filter_fields.items():
        value = getattr(spec, attr)
        if value is not None:
            filters.append(eq(column, value))

    if spec.date_from is not None and spec.date_to is not None:
        filters.append(between(resource.date_field, spec.date_from, spec.date_to))

    alternatives: list[Expr] = []
    if spec.search:
        alternatives = [contains(column, spec.search) for column in resource.search_fields]

    return distribute(filters, alternatives)


def build_order(spec: QuerySpec, resource: ResourceQuery) -> list:
    column = getattr(resource.model, resource.sort_fields[spec.sort_by])
    order = [column.asc() if spec.sort_order == SortOrder.ASC else column.desc()]
    # id breaks ties so pages do not overlap
    if spec.sort_by != "id":
        order.append(resource.model.id.asc())
    return order


async def paginate(
    db: AsyncSession, resource: ResourceQuery, spec: QuerySpec, where: Optional[Expr]
) -> tuple[list, int]:
    """Run the count and the page query for one list request."""
    model = resource.model
    count_query = select(func.count()).select_from(model)
    query = select(model)
    if where is not None:
        clause = to_sqlalchemy(where, model)
        count_query = count_query.where(clause)
        query = query.where(clause)

    total = (await db.exec(count_query)).one()
    query = query.order_by(*build_order(spec, resource)).offset(spec.skip).limit(spec.limit)
    rows = (await db.exec(query)).all()

    logger.debug(
        f"Listed {model.__tablename__}: page={spec.page} limit={spec.limit} "
        f"returned={len(rows)} total={total}"
    )
    return list(rows), total


def page_meta(page: int, limit: int, total: int) -> PageMeta:
    total_pages = math.ceil(total / limit) if limit else 0
    return PageMeta(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


def filters_meta(spec: QuerySpec) -> ListFilters:
    """Echo of the filters that were applied."""
    return ListFilters(
        is_done=spec.is_done,
        role=spec.role,
        search=spec.search,
        date_from=spec.date_from,
        date_to=spec.date_to,
        sort_by=spec.sort_by,
        sort_order=spec.sort_order.value,
    )
