"""
Tests for list query normalization, filter composition and pagination.
"""

from datetime import datetime, timedelta, timezone

import pytest

from taskboard.core.exceptions import BadRequest
from taskboard.models import Role
from taskboard.query.composer import (
    EPOCH,
    TODO_QUERY,
    USER_QUERY,
    QuerySpec,
    SortOrder,
    build_filter,
    build_spec,
    page_meta,
    paginate,
)
from taskboard.query.expressions import And, Comparison, Op, Or, conjoin, disjoin, eq
from tests.conftest import claims_for, make_todo, make_user


class TestBuildSpec:
    def test_defaults(self):
        spec = build_spec({}, TODO_QUERY)
        assert spec.page == 1
        assert spec.limit == 10
        assert spec.sort_by == "createdAt"
        assert spec.sort_order == SortOrder.DESC
        assert spec.search is None
        assert spec.date_from is None and spec.date_to is None

    def test_skip(self):
        assert build_spec({"page": 3, "limit": 5}, TODO_QUERY).skip == 10

    def test_limit_is_clamped(self):
        assert build_spec({"limit": 150}, TODO_QUERY).limit == 100
        assert build_spec({"limit": 0}, TODO_QUERY).limit == 1

    def test_page_is_clamped(self):
        assert build_spec({"page": 0}, TODO_QUERY).page == 1
        assert build_spec({"page": -4}, TODO_QUERY).page == 1

    def test_non_integer_page(self):
        with pytest.raises(BadRequest, match="page must be an integer"):
            build_spec({"page": "abc"}, TODO_QUERY)

    def test_invalid_sort_field(self):
        with pytest.raises(BadRequest) as exc:
            build_spec({"sortBy": "password"}, TODO_QUERY)
        assert exc.value.message == (
            "Invalid sort field: password. "
            "Allowed fields: id, title, isDone, createdAt, updatedAt"
        )

    def test_user_sort_fields(self):
        assert build_spec({"sortBy": "username"}, USER_QUERY).sort_by == "username"
        with pytest.raises(BadRequest):
            build_spec({"sortBy": "title"}, USER_QUERY)

    def test_invalid_sort_order(self):
        with pytest.raises(BadRequest, match="Invalid sort order: sideways"):
            build_spec({"sortOrder": "sideways"}, TODO_QUERY)

    def test_sort_order_is_case_insensitive(self):
        assert build_spec({"sortOrder": "ASC"}, TODO_QUERY).sort_order == SortOrder.ASC

    def test_blank_search_is_dropped(self):
        assert build_spec({"search": "   "}, TODO_QUERY).search is None
        assert build_spec({"search": "  milk "}, TODO_QUERY).search == "milk"

    def test_role_is_coerced(self):
        assert build_spec({"role": "admin"}, USER_QUERY).role == Role.ADMIN
        with pytest.raises(BadRequest, match="Invalid role"):
            build_spec({"role": "root"}, USER_QUERY)

    def test_open_date_bounds_are_filled(self):
        upper = datetime(2024, 6, 1, tzinfo=timezone.utc)
        spec = build_spec({"dateTo": upper}, TODO_QUERY)
        assert spec.date_from == EPOCH
        assert spec.date_to == upper

        lower = datetime(2024, 1, 1)
        spec = build_spec({"dateFrom": lower}, TODO_QUERY)
        assert spec.date_from == lower.replace(tzinfo=timezone.utc)
        assert spec.date_to <= datetime.now(timezone.utc)

    def test_inverted_date_range(self):
        with pytest.raises(BadRequest, match="dateFrom must not be later than dateTo"):
            build_spec(
                {"dateFrom": datetime(2024, 2, 1), "dateTo": datetime(2024, 1, 1)},
                TODO_QUERY,
            )


class TestPageMeta:
    def test_middle_page(self):
        meta = page_meta(page=3, limit=5, total=25)
        assert meta.total_pages == 5
        assert meta.has_next_page is True
        assert meta.has_prev_page is True

    def test_last_page(self):
        meta = page_meta(page=5, limit=5, total=25)
        assert meta.has_next_page is False

    def test_empty(self):
        meta = page_meta(page=1, limit=10, total=0)
        assert meta.total_pages == 0
        assert meta.has_next_page is False
        assert meta.has_prev_page is False

    def test_page_past_the_end(self):
        meta = page_meta(page=9, limit=10, total=15)
        assert meta.total_pages == 2
        assert meta.has_next_page is False
        assert meta.has_prev_page is True


class TestExpressionTree:
    def test_conjoin_flattens_and_drops_none(self):
        a, b, c = eq("a", 1), eq("b", 2), eq("c", 3)
        assert conjoin(None, And((a, b)), c) == And((a, b, c))
        assert conjoin(a) == a
        assert conjoin() is None

    def test_disjoin_flattens(self):
        a, b, c = eq("a", 1), eq("b", 2), eq("c", 3)
        assert disjoin(Or((a, b)), c) == Or((a, b, c))

    def test_search_is_distributed_over_every_filter(self):
        requester = type("R", (), {"id": 7, "role": Role.USER})()
        spec = QuerySpec(is_done=False, search="milk")
        expr = build_filter(spec, TODO_QUERY, requester)

        assert isinstance(expr, Or)
        assert len(expr.operands) == 2
        for branch, column in zip(expr.operands, ("title", "description")):
            assert isinstance(branch, And)
            assert eq("owner_id", 7) in branch.operands
            assert eq("is_done", False) in branch.operands
            assert Comparison(column, Op.CONTAINS, "milk") in branch.operands

    def test_admin_is_not_scoped(self):
        requester = type("R", (), {"id": 1, "role": Role.ADMIN})()
        assert build_filter(QuerySpec(), TODO_QUERY, requester) is None

    def test_filters_without_search_are_a_single_and(self):
        requester = type("R", (), {"id": 7, "role": Role.USER})()
        expr = build_filter(QuerySpec(is_done=True), TODO_QUERY, requester)
        assert expr == And((eq("owner_id", 7), eq("is_done", True)))


class TestPaginate:
    async def test_search_never_leaks_other_owners(self, db):
        alice = await make_user(db, "alice")
        bob = await make_user(db, "bob")
        await make_todo(db, alice, "Buy milk")
        await make_todo(db, alice, "Walk dog", description="and get milk")
        await make_todo(db, bob, "Milk the cow")
        await make_todo(db, bob, "Other", description="milk again")

        spec = build_spec({"search": "milk"}, TODO_QUERY)
        rows, total = await paginate(
            db, TODO_QUERY, spec, build_filter(spec, TODO_QUERY, claims_for(alice))
        )

        assert total == 2
        assert {row.owner_id for row in rows} == {alice.id}

    async def test_search_respects_done_filter(self, db):
        alice = await make_user(db, "alice")
        await make_todo(db, alice, "milk one", is_done=True)
        await make_todo(db, alice, "milk two")
        await make_todo(db, alice, "bread", description="milk", is_done=True)

        spec = build_spec({"search": "milk", "isDone": False}, TODO_QUERY)
        rows, total = await paginate(
            db, TODO_QUERY, spec, build_filter(spec, TODO_QUERY, claims_for(alice))
        )

        assert total == 1
        assert rows[0].title == "milk two"

    async def test_search_respects_date_range(self, db):
        alice = await make_user(db, "alice")
        old = datetime(2020, 1, 1, tzinfo=timezone.utc)
        await make_todo(db, alice, "old milk", created_at=old, updated_at=old)
        await make_todo(db, alice, "new milk")

        spec = build_spec(
            {"search": "milk", "dateFrom": datetime.now(timezone.utc) - timedelta(days=1)},
            TODO_QUERY,
        )
        rows, total = await paginate(
            db, TODO_QUERY, spec, build_filter(spec, TODO_QUERY, claims_for(alice))
        )

        assert total == 1
        assert rows[0].title == "new milk"

    async def test_pages_and_sorting(self, db):
        alice = await make_user(db, "alice")
        for i in range(25):
            await make_todo(db, alice, f"todo {i:02d}")

        spec = build_spec(
            {"page": 3, "limit": 5, "sortBy": "title", "sortOrder": "asc"}, TODO_QUERY
        )
        rows, total = await paginate(db, TODO_QUERY, spec, None)

        assert total == 25
        assert [row.title for row in rows] == [f"todo {i:02d}" for i in range(10, 15)]

    async def test_admin_sees_everyone(self, db):
        admin = await make_user(db, "root", role=Role.ADMIN)
        bob = await make_user(db, "bob")
        await make_todo(db, admin, "mine")
        await make_todo(db, bob, "his")

        spec = build_spec({}, TODO_QUERY)
        _, total = await paginate(
            db, TODO_QUERY, spec, build_filter(spec, TODO_QUERY, claims_for(admin))
        )
        assert total == 2

    async def test_search_term_is_escaped(self, db):
        alice = await make_user(db, "alice")
        await make_todo(db, alice, "100% done")
        await make_todo(db, alice, "1000 things")

        spec = build_spec({"search": "0%"}, TODO_QUERY)
        _, total = await paginate(db, TODO_QUERY, spec, build_filter(spec, TODO_QUERY))
        assert total == 1
