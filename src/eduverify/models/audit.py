"""Audit log model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, BigInteger, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from eduverify.models.base import Base


class AuditLog(Base):
    """Audit log table, one row per redemption lifecycle event."""

    __tablename__ = "audit_logs"

    # Primary key
    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer(), "sqlite"),
        primary_key=True,
        autoincrement=True,
    )

    # Operation info
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Actor info
    actor_id: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, index=True
    )

    # Event content
    occurred_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    new_value: Mapped[Optional[dict]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=True
    )

    # Metadata
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=func.now(), nullable=False, index=True
    )
