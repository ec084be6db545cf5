"""Repository layer for database operations.

This module provides async repository implementations using SQLAlchemy 2.x.
All repositories follow the Repository pattern with consistent CRUD operations.
"""

from eduverify.repositories.audit_log import AuditLogRepository
from eduverify.repositories.base import BaseRepository
from eduverify.repositories.redemption import RedemptionRepository

__all__ = [
    "BaseRepository",
    "RedemptionRepository",
    "AuditLogRepository",
]
