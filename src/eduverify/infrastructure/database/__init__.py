"""Database infrastructure module."""

from eduverify.infrastructure.database.session import (
    AsyncSessionLocal,
    async_engine,
    create_tables,
)

__all__ = [
    "async_engine",
    "AsyncSessionLocal",
    "create_tables",
]
