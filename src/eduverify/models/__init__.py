"""Database models for eduverify."""

from eduverify.models.audit import AuditLog
from eduverify.models.base import Base, TimestampMixin
from eduverify.models.redemption import Redemption

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Business models
    "Redemption",
    # Monitoring models
    "AuditLog",
]
