"""Redemption record model."""

from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from eduverify.models.base import Base, TimestampMixin

# SQLite only auto-increments INTEGER PRIMARY KEY columns
PrimaryKeyType = BigInteger().with_variant(Integer(), "sqlite")


class Redemption(Base, TimestampMixin):
    """Redemption records table."""

    __tablename__ = "redemptions"

    # Primary key
    id: Mapped[int] = mapped_column(PrimaryKeyType, primary_key=True, autoincrement=True)

    # Identity
    record_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    coins_redeemed: Mapped[int] = mapped_column(Integer, nullable=False)

    # Credentials
    one_time_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    redemption_code: Mapped[str] = mapped_column(String(12), unique=True, nullable=False)

    # Time info (epoch milliseconds, as carried in the payload)
    issued_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)

    # Status info
    status: Mapped[str] = mapped_column(
        String(20), default="pending", nullable=False, index=True
    )
    verified_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    verified_at_ms: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    collected_at_ms: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    rejected_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'verified', 'collected', 'expired', 'rejected')",
            name="status",
        ),
        CheckConstraint("coins_redeemed >= 0", name="coins_non_negative"),
        CheckConstraint("expires_at_ms > issued_at_ms", name="expiry_after_issue"),
    )
