"""
Shared fixtures.

Every test gets its own in-memory SQLite database. Environment overrides
are applied before any taskboard module reads settings.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.cache.layer import EntityCache
from taskboard.database import get_db
from taskboard.main import app, lifespan
from taskboard.models import Claims, Role, Todo, User
from taskboard.services.user_service import UserService


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def user_service():
    return UserService(EntityCache(maxsize=100, namespace="user"))


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app, with the lifespan running."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    try:
        async with lifespan(app):
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
                yield c
    finally:
        app.dependency_overrides.clear()


async def make_user(db, username: str, role: Role = Role.USER, password_hash: str = "x") -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=password_hash,
        role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_todo(db, owner: User, title: str, **fields) -> Todo:
    todo = Todo(title=title, owner_id=owner.id, **fields)
    db.add(todo)
    await db.commit()
    await db.refresh(todo)
    return todo


def claims_for(user: User) -> Claims:
    return Claims(id=user.id, username=user.username, role=user.role)
