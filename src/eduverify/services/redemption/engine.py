"""Verification engine: decides and applies redemption status transitions.

Every verification ends in a ``VerificationOutcome``. Business refusals
(invalid, expired, already finalized, ...) and connectivity trouble
(``retry_pending``) are distinct outcome kinds so a verifier is never told a
redemption was refused when the store simply could not be reached.
"""

import hmac
import logging

from eduverify.services.redemption.codec import decode
from eduverify.services.redemption.errors import (
    AlreadyFinalized,
    DecodeError,
    InvalidTransition,
    RecordNotFound,
    RedemptionError,
    StoreUnavailable,
    ValidationError,
)
from eduverify.services.redemption.history import VerificationHistory, record_event
from eduverify.services.redemption.lifecycle import plan_transition, require_reason
from eduverify.services.redemption.schemas import (
    DecodeFailure,
    DecodeResult,
    OutcomeKind,
    PayloadData,
    RedemptionRecord,
    RedemptionStatus,
    VerificationIntent,
    VerificationOutcome,
)
from eduverify.services.redemption.store import RedemptionStore, call_with_timeout
from eduverify.services.redemption.tokens import is_redemption_code, normalize_code
from eduverify.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)

RETRY_MESSAGE = "Verification pending retry"

_OUTCOME_BY_STATUS = {
    RedemptionStatus.VERIFIED: OutcomeKind.VERIFIED,
    RedemptionStatus.COLLECTED: OutcomeKind.COLLECTED,
    RedemptionStatus.REJECTED: OutcomeKind.REJECTED,
}


class VerificationEngine:
    """Validates presented redemptions and moves them through their lifecycle.

    The store is the only authority on status. The engine never writes
    anything except through ``compare_and_set_status``, and only after every
    guard passed.
    """

    def __init__(
        self,
        store: RedemptionStore,
        *,
        history: VerificationHistory | None = None,
        clock: Clock = now_ms,
        timeout_seconds: float = 5.0,
    ):
        """Initialize verification engine.

        Args:
            store: Redemption store
            history: Optional verification history (best-effort)
            clock: Epoch-millisecond clock
            timeout_seconds: Limit for each store round-trip
        """
        self._store = store
        self._history = history
        self._clock = clock
        self._timeout = timeout_seconds

    async def verify(
        self,
        payload: str | DecodeResult | PayloadData,
        intent: VerificationIntent | str = VerificationIntent.ACCEPT,
        *,
        verifier_id: str | None = None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> VerificationOutcome:
        """Verify a scanned payload and apply the verifier's action.

        Args:
            payload: Raw payload string, or an already decoded payload
            intent: accept, collect or reject
            verifier_id: Acting teacher
            reason: Rejection reason (required for reject)
            notes: Free-form verifier notes kept in the history

        Returns:
            Typed outcome; the store is unchanged unless ``transitioned``
        """
        intent = VerificationIntent(intent)
        now = self._clock()
        try:
            data = self._payload_data(payload, now)
            require_reason(intent, reason)
            record = await self._lookup(data)
            self._check_binding(record, data)
        except RedemptionError as e:
            return self._failure(e)

        return await self._transition(
            record, intent, now, verifier_id=verifier_id, reason=reason, notes=notes
        )

    async def verify_code(
        self,
        code: str,
        intent: VerificationIntent | str = VerificationIntent.ACCEPT,
        *,
        verifier_id: str | None = None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> VerificationOutcome:
        """Verify a fallback code typed in by the verifier.

        There is no token on this path; the code alone identifies the record.
        """
        intent = VerificationIntent(intent)
        now = self._clock()
        code = normalize_code(code)
        try:
            if not is_redemption_code(code):
                raise DecodeError(DecodeFailure.INVALID_FORMAT)
            require_reason(intent, reason)
            record = await call_with_timeout(self._store.get_by_code(code), self._timeout)
            if record is None:
                raise RecordNotFound(code)
        except RedemptionError as e:
            return self._failure(e)

        return await self._transition(
            record, intent, now, verifier_id=verifier_id, reason=reason, notes=notes
        )

    def _payload_data(
        self, payload: str | DecodeResult | PayloadData, now: int
    ) -> PayloadData:
        if isinstance(payload, PayloadData):
            data = payload
        elif isinstance(payload, DecodeResult):
            data = payload.raise_for_error()
        else:
            data = decode(payload, now=now).raise_for_error()

        # Pre-decoded payloads may have been decoded a while ago
        if data.expiry is not None and data.expiry < now:
            raise DecodeError(DecodeFailure.EXPIRED)
        return data

    async def _lookup(self, data: PayloadData) -> RedemptionRecord:
        if data.id:
            record = await call_with_timeout(self._store.get(data.id), self._timeout)
        else:
            record = await call_with_timeout(
                self._store.get_by_code(normalize_code(data.redemption_code)),
                self._timeout,
            )
        if record is None:
            raise RecordNotFound(data.id or data.redemption_code)
        return record

    @staticmethod
    def _check_binding(record: RedemptionRecord, data: PayloadData) -> None:
        """The payload must describe the stored record it points at."""
        if (
            record.student_id != data.student_id
            or record.product_id != data.product_id
            or record.redemption_code != data.redemption_code
        ):
            raise ValidationError("payload", "does not match the stored redemption")
        if data.token is None or not hmac.compare_digest(
            data.token.encode(), record.one_time_token.encode()
        ):
            raise ValidationError("token", "one-time token does not match")

    async def _transition(
        self,
        record: RedemptionRecord,
        intent: VerificationIntent,
        now: int,
        *,
        verifier_id: str | None,
        reason: str | None,
        notes: str | None,
        allow_retry: bool = True,
    ) -> VerificationOutcome:
        try:
            target = plan_transition(record, intent, now)
        except RedemptionError as e:
            return self._failure(e, record, now)

        if target is None:
            return VerificationOutcome(
                outcome=_OUTCOME_BY_STATUS[record.status],
                message=f"Redemption {record.redemption_code} is already {record.status.value}",
                status=record.status,
                record=record,
                transitioned=False,
            )

        try:
            updated = await call_with_timeout(
                self._store.compare_and_set_status(
                    record.id,
                    record.status,
                    target,
                    actor=verifier_id,
                    reason=reason,
                    at=now,
                ),
                self._timeout,
            )
        except StoreUnavailable as e:
            return self._failure(e, record, now)

        if updated is None:
            return await self._after_lost_race(
                record,
                intent,
                now,
                verifier_id=verifier_id,
                reason=reason,
                notes=notes,
                allow_retry=allow_retry,
            )

        logger.info(
            f"Redemption {record.id} moved {record.status.value} -> {target.value}"
            f" by {verifier_id or 'unknown verifier'}"
        )
        details = {"reason": reason, "notes": notes}
        await record_event(
            self._history,
            record.id,
            target.value.upper(),
            at=now,
            timeout=self._timeout,
            actor=verifier_id,
            details={k: v for k, v in details.items() if v is not None} or None,
        )
        return VerificationOutcome(
            outcome=_OUTCOME_BY_STATUS[target],
            message=f"Redemption {record.redemption_code} {target.value}",
            status=target,
            record=updated,
            transitioned=True,
        )

    async def _after_lost_race(
        self,
        stale: RedemptionRecord,
        intent: VerificationIntent,
        now: int,
        *,
        verifier_id: str | None,
        reason: str | None,
        notes: str | None,
        allow_retry: bool,
    ) -> VerificationOutcome:
        """Another writer changed the record first; report what it did."""
        logger.warning(
            f"Lost status race on redemption {stale.id} (expected {stale.status.value})"
        )
        try:
            current = await call_with_timeout(self._store.get(stale.id), self._timeout)
        except StoreUnavailable as e:
            return self._failure(e, stale, now)
        if current is None:
            return self._failure(RecordNotFound(stale.id))

        if not allow_retry:
            return self._failure(
                StoreUnavailable(f"Redemption {stale.id} keeps changing concurrently"),
                current,
                now,
            )
        return await self._transition(
            current,
            intent,
            now,
            verifier_id=verifier_id,
            reason=reason,
            notes=notes,
            allow_retry=False,
        )

    @staticmethod
    def _failure(
        error: RedemptionError,
        record: RedemptionRecord | None = None,
        now: int | None = None,
    ) -> VerificationOutcome:
        status = record.effective_status(now) if record and now is not None else None
        message = error.detail

        if isinstance(error, AlreadyFinalized):
            kind = OutcomeKind.ALREADY_FINALIZED
            status = RedemptionStatus(error.status)
        elif isinstance(error, DecodeError):
            kind = (
                OutcomeKind.EXPIRED
                if error.reason == DecodeFailure.EXPIRED
                else OutcomeKind.INVALID
            )
        elif isinstance(error, RecordNotFound):
            kind = OutcomeKind.NOT_FOUND
        elif isinstance(error, InvalidTransition):
            kind = OutcomeKind.INVALID_TRANSITION
        elif isinstance(error, StoreUnavailable):
            kind = OutcomeKind.RETRY_PENDING
            message = RETRY_MESSAGE
        else:
            kind = OutcomeKind.INVALID

        logger.info(f"Verification refused ({kind.value}): {error.detail}")
        return VerificationOutcome(
            outcome=kind,
            message=message,
            status=status,
            record=record,
            transitioned=False,
        )
