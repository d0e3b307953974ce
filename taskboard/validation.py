"""
Request validation decoupled from routing.

``validate`` turns raw input into a typed request struct and reports every
problem as a ``FieldError`` rather than raising, so callers decide how to
surface them.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from taskboard.models import Role

T = TypeVar("T", bound=BaseModel)


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str
    value: Any = None

    def as_dict(self) -> dict:
        return {"field": self.field, "message": self.message, "value": self.value}


def validate(schema: type[T], raw: Mapping[str, Any]) -> tuple[Optional[T], list[FieldError]]:
    try:
        return schema.model_validate(dict(raw)), []
    except ValidationError as e:
        errors = [
            FieldError(
                field=".".join(str(part) for part in err["loc"]) or "__root__",
                message=err["msg"],
                value=err.get("input"),
            )
            for err in e.errors()
        ]
        return None, errors


class ListParams(BaseModel):
    """Query string of a list endpoint, coerced but not yet normalized."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    page: Optional[int] = None
    limit: Optional[int] = None
    search: Optional[str] = Field(default=None, max_length=200)
    date_from: Optional[datetime] = Field(default=None, alias="dateFrom")
    date_to: Optional[datetime] = Field(default=None, alias="dateTo")
    sort_by: Optional[str] = Field(default=None, alias="sortBy")
    sort_order: Optional[str] = Field(default=None, alias="sortOrder")

    def to_raw(self) -> dict:
        """Parameters keyed by their public names, unset ones dropped."""
        return self.model_dump(by_alias=True, exclude_none=True)


class TodoListParams(ListParams):
    is_done: Optional[bool] = Field(default=None, alias="isDone")

    @field_validator("is_done", mode="before")
    @classmethod
    def boolean_literal(cls, value: Any) -> Any:
        # only the literals "true" and "false" are accepted from a query string
        if value is None or isinstance(value, bool):
            return value
        if value == "true":
            return True
        if value == "false":
            return False
        raise ValueError("isDone must be 'true' or 'false'")


class UserListParams(ListParams):
    role: Optional[Role] = None
