"""Tests for the redemption status state machine."""

import pytest

from eduverify.services.redemption import (
    AlreadyFinalized,
    DecodeError,
    DecodeFailure,
    InvalidTransition,
    RedemptionRecord,
    RedemptionStatus,
    ValidationError,
    VerificationIntent,
)
from eduverify.services.redemption.lifecycle import (
    can_transition,
    is_terminal,
    plan_transition,
    require_reason,
)

NOW = 1717200000000
EXPIRY = NOW + 1000


def make_record(status=RedemptionStatus.PENDING):
    return RedemptionRecord(
        id="r-1",
        student_id="student-1",
        product_id="pencil",
        product_name="Pencil",
        coins_redeemed=10,
        timestamp=NOW,
        expiry_date=EXPIRY,
        one_time_token="token_1_abc",
        redemption_code="EDU-ABC-1234",
        status=status,
    )


class TestTransitions:
    """Tests for transition rules."""

    def test_terminal_statuses(self):
        """Collected, expired and rejected are terminal."""
        assert is_terminal(RedemptionStatus.COLLECTED)
        assert is_terminal(RedemptionStatus.EXPIRED)
        assert is_terminal(RedemptionStatus.REJECTED)
        assert not is_terminal(RedemptionStatus.PENDING)
        assert not is_terminal(RedemptionStatus.VERIFIED)

    def test_allowed_edges(self):
        """Only forward edges of the state machine exist."""
        assert can_transition(RedemptionStatus.PENDING, RedemptionStatus.VERIFIED)
        assert can_transition(RedemptionStatus.VERIFIED, RedemptionStatus.COLLECTED)
        assert can_transition(RedemptionStatus.PENDING, RedemptionStatus.REJECTED)
        assert can_transition(RedemptionStatus.VERIFIED, RedemptionStatus.EXPIRED)
        assert not can_transition(RedemptionStatus.PENDING, RedemptionStatus.COLLECTED)
        assert not can_transition(RedemptionStatus.VERIFIED, RedemptionStatus.PENDING)
        assert not can_transition(RedemptionStatus.COLLECTED, RedemptionStatus.VERIFIED)


class TestPlanTransition:
    """Tests for plan_transition."""

    def test_accept_pending(self):
        """Accepting a pending record targets verified."""
        target = plan_transition(make_record(), VerificationIntent.ACCEPT, NOW)
        assert target == RedemptionStatus.VERIFIED

    def test_collect_verified(self):
        """Collecting a verified record targets collected."""
        record = make_record(RedemptionStatus.VERIFIED)
        assert plan_transition(record, VerificationIntent.COLLECT, NOW) == (
            RedemptionStatus.COLLECTED
        )

    def test_reject_pending_and_verified(self):
        """Both non-terminal statuses can be rejected."""
        for status in (RedemptionStatus.PENDING, RedemptionStatus.VERIFIED):
            record = make_record(status)
            assert plan_transition(record, VerificationIntent.REJECT, NOW) == (
                RedemptionStatus.REJECTED
            )

    def test_accept_verified_is_noop(self):
        """Re-accepting a verified record needs no write."""
        record = make_record(RedemptionStatus.VERIFIED)
        assert plan_transition(record, VerificationIntent.ACCEPT, NOW) is None

    def test_collect_pending_is_invalid(self):
        """A pending record must be verified before it is collected."""
        with pytest.raises(InvalidTransition):
            plan_transition(make_record(), VerificationIntent.COLLECT, NOW)

    @pytest.mark.parametrize(
        "status",
        [RedemptionStatus.COLLECTED, RedemptionStatus.EXPIRED, RedemptionStatus.REJECTED],
    )
    def test_terminal_records(self, status):
        """Every action on a terminal record reports it as finalized."""
        for intent in VerificationIntent:
            with pytest.raises(AlreadyFinalized) as exc_info:
                plan_transition(make_record(status), intent, NOW)
            assert exc_info.value.status == status

    def test_expired_at_boundary(self):
        """A record is expired from the expiry instant onwards."""
        assert plan_transition(make_record(), VerificationIntent.ACCEPT, EXPIRY - 1)
        with pytest.raises(DecodeError) as exc_info:
            plan_transition(make_record(), VerificationIntent.ACCEPT, EXPIRY)
        assert exc_info.value.reason == DecodeFailure.EXPIRED


class TestRequireReason:
    """Tests for require_reason."""

    def test_reject_needs_reason(self):
        """Rejecting without a reason is a validation error."""
        with pytest.raises(ValidationError) as exc_info:
            require_reason(VerificationIntent.REJECT, "  ")
        assert exc_info.value.field == "reason"

        with pytest.raises(ValidationError):
            require_reason(VerificationIntent.REJECT, None)

    def test_other_intents_need_no_reason(self):
        """Accept and collect work without a reason."""
        require_reason(VerificationIntent.ACCEPT, None)
        require_reason(VerificationIntent.COLLECT, None)
        require_reason(VerificationIntent.REJECT, "Product out of stock")


class TestEffectiveStatus:
    """Tests for derived expiry on records."""

    def test_pending_reads_expired_after_window(self):
        """Effective status turns expired without a stored change."""
        record = make_record()

        assert record.effective_status(NOW) == RedemptionStatus.PENDING
        assert record.effective_status(EXPIRY) == RedemptionStatus.EXPIRED
        assert record.status == RedemptionStatus.PENDING

    def test_terminal_status_wins(self):
        """Collected records stay collected after expiry."""
        record = make_record(RedemptionStatus.COLLECTED)
        assert record.effective_status(EXPIRY + 1) == RedemptionStatus.COLLECTED
