"""Create redemption tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

Creates the following tables:
- redemptions: Student redemption records
- audit_logs: Redemption lifecycle history
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ========================================
    # 1. redemptions table
    # ========================================
    op.create_table(
        "redemptions",
        # Primary key
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        # Identity
        sa.Column("record_id", sa.String(36), nullable=False),
        sa.Column("student_id", sa.String(64), nullable=False),
        sa.Column("product_id", sa.String(64), nullable=False),
        sa.Column("product_name", sa.String(200), nullable=False),
        sa.Column("coins_redeemed", sa.Integer(), nullable=False),
        # Credentials
        sa.Column("one_time_token", sa.String(64), nullable=False),
        sa.Column("redemption_code", sa.String(12), nullable=False),
        # Time info (epoch ms)
        sa.Column("issued_at_ms", sa.BigInteger(), nullable=False),
        sa.Column("expires_at_ms", sa.BigInteger(), nullable=False),
        # Status info
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("verified_by", sa.String(64), nullable=True),
        sa.Column("verified_at_ms", sa.BigInteger(), nullable=True),
        sa.Column("collected_at_ms", sa.BigInteger(), nullable=True),
        sa.Column("rejected_reason", sa.Text(), nullable=True),
        # Metadata
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        # Constraints
        sa.PrimaryKeyConstraint("id", name="pk_redemptions"),
        sa.UniqueConstraint("record_id", name="uq_redemptions_record_id"),
        sa.UniqueConstraint("one_time_token", name="uq_redemptions_one_time_token"),
        sa.UniqueConstraint("redemption_code", name="uq_redemptions_redemption_code"),
        sa.CheckConstraint(
            "status IN ('pending', 'verified', 'collected', 'expired', 'rejected')",
            name="ck_redemptions_status",
        ),
        sa.CheckConstraint("coins_redeemed >= 0", name="ck_redemptions_coins_non_negative"),
        sa.CheckConstraint(
            "expires_at_ms > issued_at_ms",
            name="ck_redemptions_expiry_after_issue",
        ),
    )
    # Indexes for redemptions
    op.create_index("ix_redemptions_student_id", "redemptions", ["student_id"])
    op.create_index("ix_redemptions_expires_at_ms", "redemptions", ["expires_at_ms"])
    op.create_index("ix_redemptions_status", "redemptions", ["status"])

    # ========================================
    # 2. audit_logs table
    # ========================================
    op.create_table(
        "audit_logs",
        # Primary key
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        # Operation info
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("resource_type", sa.String(50), nullable=False),
        sa.Column("resource_id", sa.String(100), nullable=True),
        # Actor info
        sa.Column("actor_id", sa.String(64), nullable=True),
        # Event content
        sa.Column("occurred_at_ms", sa.BigInteger(), nullable=False),
        sa.Column("new_value", sa.JSON().with_variant(JSONB(), "postgresql"), nullable=True),
        # Metadata
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        # Constraints
        sa.PrimaryKeyConstraint("id", name="pk_audit_logs"),
    )
    # Indexes for audit_logs
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_resource_type", "audit_logs", ["resource_type"])
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("redemptions")
