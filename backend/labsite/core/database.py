"""
Database configuration and session management.

Provides SQLAlchemy async engine setup, session factory, and dependency
injection for database sessions in FastAPI routes.
"""

from typing import AsyncGenerator

from sqlalchemy import event, inspect, text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.pool import StaticPool

from labsite.core.config import settings
from labsite.core.logging_config import get_logger
from labsite.models.base import Base


logger = get_logger(__name__)


def get_async_engine() -> AsyncEngine:
    """
    Create and configure the async SQLAlchemy engine.

    For SQLite:
    - Uses StaticPool (single file or in-memory database)
    - Enables check_same_thread=False for async compatibility
    - Turns on foreign keys for every connection

    Returns:
        Configured AsyncEngine instance
    """
    is_sqlite = settings.database_url.startswith("sqlite")

    connect_args: dict = {"check_same_thread": False} if is_sqlite else {}

    engine_kwargs = {
        "echo": False,
        "connect_args": connect_args,
    }

    if is_sqlite:
        engine_kwargs["poolclass"] = StaticPool

    engine = create_async_engine(
        settings.database_url,
        **engine_kwargs,
    )

    if is_sqlite:
        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):  # noqa: ANN001
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


# Global async engine instance
engine = get_async_engine()


async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def create_tables() -> None:
    """
    Create all tables that do not exist yet.

    Used by the startup hook when DB_CREATE_ALL is set and by the admin
    database setup endpoint.
    """
    # Import models so metadata is populated before create_all()
    from labsite import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def list_tables() -> list[str]:
    """Return the table names currently present in the database."""
    async with engine.connect() as conn:
        return await conn.run_sync(
            lambda sync_conn: inspect(sync_conn).get_table_names()
        )


async def init_db() -> None:
    """
    Initialize the database at startup.

    Tables are only created when DB_CREATE_ALL is enabled; otherwise the
    schema is expected to exist already (or be created through the admin
    database setup endpoint).
    """
    if settings.db_create_all:
        await create_tables()
        logger.info("Database tables ensured", extra={"url": settings.database_url})

    if settings.database_url.startswith("sqlite"):
        async with engine.begin() as conn:
            await conn.execute(text("PRAGMA foreign_keys=ON"))


async def close_db() -> None:
    """Dispose the engine at application shutdown."""
    await engine.dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function to get database session.

    Commits when the route handler returns, rolls back if it raises.

    Yields:
        AsyncSession instance for database operations

    Example:
        @router.get("/machines")
        async def list_machines(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(HTBMachine))
            return result.scalars().all()
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def check_connection() -> bool:
    """Return True when a trivial query succeeds."""
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
            return True
    except Exception:
        logger.warning("Database connectivity check failed", exc_info=True)
        return False
