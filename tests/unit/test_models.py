"""Test cases for database models."""


class TestRedemptionModel:
    """Test Redemption model."""

    def test_redemption_creation(self):
        """Test creating a redemption row."""
        from eduverify.models.redemption import Redemption

        row = Redemption(
            record_id="6f1c3c1e-0d6b-4f3e-9d57-0c1a5d4f2b11",
            student_id="student-1",
            product_id="pencil",
            product_name="Pencil",
            coins_redeemed=100,
            one_time_token="token_1717200000000_abcdefghij0123456789",
            redemption_code="EDU-ABC-1234",
            issued_at_ms=1717200000000,
            expires_at_ms=1717804800000,
            status="pending",
        )

        assert row.status == "pending"
        assert row.verified_by is None
        assert row.collected_at_ms is None

    def test_redemption_table_constraints(self):
        """Unique credentials and check constraints are declared."""
        from eduverify.models.redemption import Redemption

        table = Redemption.__table__

        assert table.name == "redemptions"
        assert table.c.record_id.unique
        assert table.c.one_time_token.unique
        assert table.c.redemption_code.unique
        check_names = [
            str(c.name) for c in table.constraints if c.__class__.__name__ == "CheckConstraint"
        ]
        for suffix in ("status", "coins_non_negative", "expiry_after_issue"):
            assert any(name.endswith(suffix) for name in check_names), suffix

    def test_token_column_fits_generated_tokens(self):
        """Token and code columns fit generated values."""
        from eduverify.models.redemption import Redemption
        from eduverify.services.redemption import TokenGenerator

        generator = TokenGenerator()
        table = Redemption.__table__

        assert len(generator.generate_one_time_token()) <= table.c.one_time_token.type.length
        assert len(generator.generate_redemption_code()) == table.c.redemption_code.type.length


class TestAuditLogModel:
    """Test AuditLog model."""

    def test_audit_log_creation(self):
        """Test creating an audit log row."""
        from eduverify.models.audit import AuditLog

        log = AuditLog(
            action="redemption.verified",
            resource_type="redemption",
            resource_id="r-1",
            actor_id="teacher-1",
            occurred_at_ms=1717200000000,
            new_value={"notes": "at desk"},
        )

        assert log.action == "redemption.verified"
        assert log.new_value == {"notes": "at desk"}

    def test_models_registered_on_metadata(self):
        """Both tables are created from the shared metadata."""
        from eduverify.models import Base

        assert {"redemptions", "audit_logs"} <= set(Base.metadata.tables)
