"""Redemption status state machine.

    pending ──accept──> verified ──collect──> collected
       │                   │
       ├──reject / time────┴──> rejected / expired

collected, expired and rejected are terminal. Expiry is derived from the
clock at evaluation time; nothing here writes it.
"""

from eduverify.services.redemption.errors import (
    AlreadyFinalized,
    DecodeError,
    InvalidTransition,
    ValidationError,
)
from eduverify.services.redemption.schemas import (
    TERMINAL_STATUSES,
    DecodeFailure,
    RedemptionRecord,
    RedemptionStatus,
    VerificationIntent,
)

ALLOWED_TRANSITIONS: dict[RedemptionStatus, frozenset[RedemptionStatus]] = {
    RedemptionStatus.PENDING: frozenset(
        {RedemptionStatus.VERIFIED, RedemptionStatus.REJECTED, RedemptionStatus.EXPIRED}
    ),
    RedemptionStatus.VERIFIED: frozenset(
        {RedemptionStatus.COLLECTED, RedemptionStatus.REJECTED, RedemptionStatus.EXPIRED}
    ),
    RedemptionStatus.COLLECTED: frozenset(),
    RedemptionStatus.EXPIRED: frozenset(),
    RedemptionStatus.REJECTED: frozenset(),
}

INTENT_TARGETS = {
    VerificationIntent.ACCEPT: RedemptionStatus.VERIFIED,
    VerificationIntent.COLLECT: RedemptionStatus.COLLECTED,
    VerificationIntent.REJECT: RedemptionStatus.REJECTED,
}


def is_terminal(status: RedemptionStatus) -> bool:
    """Whether no further transition is possible from ``status``."""
    return status in TERMINAL_STATUSES


def can_transition(current: RedemptionStatus, target: RedemptionStatus) -> bool:
    """Whether ``current -> target`` is an edge of the state machine."""
    return target in ALLOWED_TRANSITIONS[current]


def require_reason(intent: VerificationIntent, reason: str | None) -> None:
    """Rejections must say why."""
    if intent == VerificationIntent.REJECT and (reason is None or not reason.strip()):
        raise ValidationError("reason", "a rejection reason is required")


def plan_transition(
    record: RedemptionRecord,
    intent: VerificationIntent,
    now: int,
) -> RedemptionStatus | None:
    """Work out the status ``intent`` should move ``record`` to.

    Args:
        record: Current store snapshot
        intent: Verifier action
        now: Evaluation instant (epoch ms)

    Returns:
        Target status, or None when the record is already there (an
        ``accept`` retried on a verified record)

    Raises:
        AlreadyFinalized: Stored status is terminal
        DecodeError: Record is past its expiry (reason ``Expired``)
        InvalidTransition: Action does not apply to the current status
    """
    if is_terminal(record.status):
        raise AlreadyFinalized(record.id, record.status)
    if record.is_expired(now):
        raise DecodeError(DecodeFailure.EXPIRED)

    target = INTENT_TARGETS[intent]
    if record.status == target:
        return None
    if not can_transition(record.status, target):
        raise InvalidTransition(record.status, target)
    return target
