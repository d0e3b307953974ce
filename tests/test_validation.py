from datetime import datetime, timezone

from taskboard.models import Role, TodoCreate, TodoUpdate, UserCreate
from taskboard.validation import TodoListParams, UserListParams, validate


class TestTodoListParams:
    def test_coerces_query_strings(self):
        params, errors = validate(
            TodoListParams,
            {"page": "2", "limit": "5", "isDone": "true", "sortBy": "title"},
        )
        assert errors == []
        assert params.page == 2
        assert params.limit == 5
        assert params.is_done is True
        assert params.to_raw() == {"page": 2, "limit": 5, "isDone": True, "sortBy": "title"}

    def test_false_literal(self):
        params, errors = validate(TodoListParams, {"isDone": "false"})
        assert errors == []
        assert params.is_done is False

    def test_rejects_other_boolean_spellings(self):
        for value in ("1", "yes", "TRUE", "on"):
            params, errors = validate(TodoListParams, {"isDone": value})
            assert params is None
            assert errors[0].field == "isDone"
            assert "isDone must be 'true' or 'false'" in errors[0].message

    def test_reports_every_bad_field(self):
        params, errors = validate(TodoListParams, {"page": "one", "limit": "ten"})
        assert params is None
        assert {e.field for e in errors} == {"page", "limit"}
        assert errors[0].as_dict()["value"] in ("one", "ten")

    def test_parses_dates(self):
        params, _ = validate(TodoListParams, {"dateFrom": "2024-01-01T00:00:00Z"})
        assert params.date_from == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_unknown_parameters_are_ignored(self):
        params, errors = validate(TodoListParams, {"ownerId": "3"})
        assert errors == []
        assert params.to_raw() == {}


class TestUserListParams:
    def test_role(self):
        params, errors = validate(UserListParams, {"role": "admin"})
        assert errors == []
        assert params.role == Role.ADMIN

    def test_unknown_role(self):
        params, errors = validate(UserListParams, {"role": "root"})
        assert params is None
        assert errors[0].field == "role"


class TestBodies:
    def test_email_is_lowercased(self):
        user, errors = validate(
            UserCreate,
            {"username": "alice", "email": "Alice@Example.com", "password": "secret123"},
        )
        assert errors == []
        assert user.email == "alice@example.com"

    def test_bad_registration(self):
        _, errors = validate(
            UserCreate, {"username": "alice", "email": "nope", "password": "short"}
        )
        assert {e.field for e in errors} == {"email", "password"}

    def test_blank_title(self):
        _, errors = validate(TodoCreate, {"title": "   "})
        assert errors[0].field == "title"

    def test_update_rejects_null_title_and_flag(self):
        for field in ("title", "is_done"):
            todo, errors = validate(TodoUpdate, {field: None})
            assert todo is None
            assert errors[0].field == field
            assert f"{field} must not be null" in errors[0].message

    def test_update_rejects_blank_title(self):
        _, errors = validate(TodoUpdate, {"title": "   "})
        assert errors[0].field == "title"
        assert "title must not be empty" in errors[0].message

    def test_update_may_clear_description(self):
        todo, errors = validate(TodoUpdate, {"description": None})
        assert errors == []
        assert todo.model_dump(exclude_unset=True) == {"description": None}
