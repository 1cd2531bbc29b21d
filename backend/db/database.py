"""SQLAlchemy async database setup and engine configuration."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.config import get_settings

settings = get_settings()


def create_db_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create and configure async SQLAlchemy engine.

    Args:
        database_url: Override for settings.DATABASE_URL.

    Returns:
        Async SQLAlchemy engine instance.
    """
    url = database_url or settings.DATABASE_URL
    kwargs = dict(echo=settings.SQLALCHEMY_ECHO)
    if not url.startswith("sqlite"):
        kwargs.update(pool_pre_ping=True)
    return create_async_engine(url, **kwargs)


def create_session_factory(engine: AsyncEngine):
    """Create async session factory.

    Args:
        engine: SQLAlchemy async engine instance.

    Returns:
        Async sessionmaker instance.
    """
    return sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Global engine and session factory instances
engine = create_db_engine()
AsyncSessionLocal = create_session_factory(engine)


async def init_db(db_engine: Optional[AsyncEngine] = None) -> None:
    """Create all tables. Call once at process startup."""
    from db.base import Base
    import db.models  # noqa: F401  registers the models

    async with (db_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(db_engine: Optional[AsyncEngine] = None) -> None:
    """Close database connections at shutdown."""
    await (db_engine or engine).dispose()
