"""Database configuration and session management.

Provides async SQLAlchemy engine and session factory for the voucher table.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

# Base class for models
Base = declarative_base()


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create async engine.

    Args:
        database_url: SQLAlchemy URL with an async driver.
        echo: Log SQL statements.

    Returns:
        AsyncEngine instance.
    """
    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet.

    Used for local databases; deployed databases are migrated with Alembic.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
