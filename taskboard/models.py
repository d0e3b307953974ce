import re
from datetime import datetime, timezone
from enum import Enum

from pydantic import field_validator
from sqlalchemy import DateTime, ForeignKey, Integer
from sqlmodel import Column, Field, SQLModel


def get_utc_now():
    """Helper function to get current UTC time with timezone"""
    return datetime.now(timezone.utc)


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# --- Users -----------------------------------------------------------------


class UserBase(SQLModel):
    """Base model with shared fields"""

    username: str = Field(min_length=1, max_length=50, unique=True, index=True)
    email: str = Field(max_length=255, unique=True, index=True)


class User(UserBase, table=True):
    """Database model. ``password_hash`` never leaves the service layer."""

    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    password_hash: str = Field(max_length=255)
    role: Role = Field(default=Role.USER)
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class UserCreate(UserBase):
    """Schema for registering a user"""

    password: str = Field(min_length=8, max_length=128)

    @field_validator("email")
    @classmethod
    def email_format(cls, value: str) -> str:
        if not re.match(EMAIL_PATTERN, value):
            raise ValueError("email must be a valid email address")
        return value.lower()


class UserRead(SQLModel):
    """Public view of a user, safe to serialize and to cache"""

    id: int
    username: str
    email: str
    role: Role
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RoleUpdate(SQLModel):
    role: Role


class LoginRequest(SQLModel):
    username_or_email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class Token(SQLModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class Claims(SQLModel):
    """Identity carried by an authenticated request"""

    id: int
    username: str
    role: Role
    iat: int | None = None
    exp: int | None = None


class RegisterResponse(SQLModel):
    message: str
    user: UserRead


# --- Todos -----------------------------------------------------------------


class TodoBase(SQLModel):
    """Base model with shared fields"""

    title: str = Field(min_length=1, max_length=200, index=True)
    description: str | None = Field(default=None)


class Todo(TodoBase, table=True):
    """Database model"""

    __tablename__ = "todos"

    id: int | None = Field(default=None, primary_key=True)
    is_done: bool = Field(default=False, index=True)
    owner_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    created_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    updated_at: datetime = Field(
        default_factory=get_utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


def require_title(value: str) -> str:
    if not value.strip():
        raise ValueError("title must not be empty")
    return value


class TodoCreate(TodoBase):
    """Schema for creating a todo. Any client supplied owner is ignored."""

    is_done: bool = False

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        return require_title(value)


class TodoUpdate(SQLModel):
    """
    Schema for updating a todo - all fields optional.

    An omitted field keeps its value. ``title`` and ``is_done`` may be
    omitted but not sent as null; ``description`` may be cleared with null.
    """

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    is_done: bool | None = None

    @field_validator("title", "is_done", mode="before")
    @classmethod
    def not_null(cls, value, info):
        # defaults are not validated, so this only sees values the client sent
        if value is None:
            raise ValueError(f"{info.field_name} must not be null")
        return value

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        return require_title(value)


class TodoRead(TodoBase):
    """Schema for todo responses"""

    id: int
    is_done: bool
    owner_id: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# --- Listing -----------------------------------------------------------------


class PageMeta(SQLModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class ListFilters(SQLModel):
    is_done: bool | None = None
    role: Role | None = None
    search: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    sort_by: str
    sort_order: str


class TodoPage(SQLModel):
    todos: list[TodoRead]
    pagination: PageMeta
    filters: ListFilters


class UserPage(SQLModel):
    users: list[UserRead]
    pagination: PageMeta
    filters: ListFilters
