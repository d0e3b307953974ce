from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from taskboard.core.config import get_settings

settings = get_settings()

# One engine per process; the URL picks the driver (asyncpg, aiosqlite)
engine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    future=True,
    pool_pre_ping=True,
)

# Services read attributes after commit (UserRead snapshots, refreshed rows),
# so instances must not expire on commit
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db():
    """Request-scoped session. Services commit or roll back explicitly."""
    async with async_session() as session:
        yield session


async def create_db_and_tables():
    """Create users and todos without Alembic (CREATE_TABLES_ON_STARTUP)."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
