"""Database session management."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from eduverify.core.config import get_settings
from eduverify.models import Base


def create_async_db_engine() -> Any:
    """Create asynchronous database engine for the configured backend."""
    settings = get_settings()
    if settings.is_offline_store:
        return create_async_engine(settings.database_url, echo=settings.debug)
    return create_async_engine(
        settings.database_url,
        pool_size=10,
        max_overflow=20,
        pool_recycle=1800,
        pool_pre_ping=True,
        echo=settings.debug,
    )


# Create engine
async_engine = create_async_db_engine()

# Session factory
AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


async def create_tables() -> None:
    """Create missing tables (local offline databases have no migration step)."""
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

