"""Redemption management service.

Provides the full lifecycle of a student redemption:
- Issue a redemption and its optical payload
- Detail view with timeline
- Verification of scanned payloads and typed codes
- Student wallet listing and statistics
- Explicit expiry sweep
"""

import logging
from collections import Counter
from dataclasses import dataclass

from eduverify.core.config import Settings, get_settings
from eduverify.infrastructure.database.session import AsyncSessionLocal
from eduverify.services.redemption.builder import build_redemption
from eduverify.services.redemption.codec import decode, encode
from eduverify.services.redemption.engine import VerificationEngine
from eduverify.services.redemption.errors import (
    GenerationCollision,
    GenerationExhausted,
    RecordNotFound,
)
from eduverify.services.redemption.history import (
    SqlVerificationHistory,
    VerificationHistory,
    record_event,
)
from eduverify.services.redemption.schemas import (
    DecodeResult,
    PayloadData,
    RedemptionCreate,
    RedemptionDetail,
    RedemptionIssued,
    RedemptionRecord,
    RedemptionStatus,
    RedemptionTimeline,
    RedemptionView,
    VerificationIntent,
    VerificationOutcome,
)
from eduverify.services.redemption.store import (
    RedemptionStore,
    SqlRedemptionStore,
    call_with_timeout,
)
from eduverify.services.redemption.tokens import TokenGenerator
from eduverify.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)


@dataclass
class RedemptionStats:
    """Wallet statistics for one student."""

    total: int = 0
    pending: int = 0
    verified: int = 0
    collected: int = 0
    expired: int = 0
    rejected: int = 0
    total_coins_spent: int = 0


class RedemptionService:
    """Service for issuing, verifying and reporting student redemptions.

    Provides:
    - Issuance with bounded regeneration on code/token collisions
    - Verification through ``VerificationEngine``
    - Read views that always report the effective status
    - Statistics and the expiry sweep

    Storage goes through a ``RedemptionStore``; lifecycle events through an
    optional ``VerificationHistory``.
    """

    def __init__(
        self,
        store: RedemptionStore,
        *,
        history: VerificationHistory | None = None,
        generator: TokenGenerator | None = None,
        settings: Settings | None = None,
        clock: Clock = now_ms,
    ):
        """Initialize redemption service.

        @param store - Redemption store
        @param history - Optional verification history
        @param generator - Code and token source
        @param settings - Application settings (defaults to environment)
        @param clock - Epoch-millisecond clock
        """
        settings = settings or get_settings()
        self._store = store
        self._history = history
        self._clock = clock
        self._generator = generator or TokenGenerator(clock=clock)
        self._default_expiry_days = settings.redemption_expiry_days
        self._max_attempts = settings.code_generation_max_attempts
        self._timeout = settings.store_timeout_seconds
        self.engine = VerificationEngine(
            store,
            history=history,
            clock=clock,
            timeout_seconds=self._timeout,
        )

    async def issue_redemption(self, data: RedemptionCreate) -> RedemptionIssued:
        """Create and store a new pending redemption.

        A record whose code, token or ID collides with a stored one is
        discarded and rebuilt, up to the configured number of attempts.

        @param data - Redemption creation request
        @returns Stored record and its optical payload
        @raises ValidationError - Request fields out of range
        @raises GenerationExhausted - Every attempt collided
        @raises StoreUnavailable - Store timed out or is unreachable
        """
        expiry_days = (
            data.expiry_days if data.expiry_days is not None else self._default_expiry_days
        )

        for attempt in range(1, self._max_attempts + 1):
            record = build_redemption(
                data.student_id,
                data.product_id,
                data.product_name,
                data.coins_redeemed,
                expiry_days,
                generator=self._generator,
                clock=self._clock,
            )
            try:
                stored = await call_with_timeout(self._store.put(record), self._timeout)
            except GenerationCollision as e:
                logger.warning(
                    f"Redemption generation collided (attempt {attempt}/{self._max_attempts}): {e.detail}"
                )
                continue

            logger.info(
                f"Issued redemption {stored.id} ({stored.redemption_code}) "
                f"for student {stored.student_id}: {stored.coins_redeemed} coins"
            )
            await record_event(
                self._history,
                stored.id,
                "CREATED",
                at=stored.timestamp,
                timeout=self._timeout,
                actor=stored.student_id,
                details={
                    "product_id": stored.product_id,
                    "coins_redeemed": stored.coins_redeemed,
                },
            )
            return RedemptionIssued(record=stored, payload=encode(stored))

        logger.error(
            f"Giving up on redemption for student {data.student_id} "
            f"after {self._max_attempts} collisions"
        )
        raise GenerationExhausted(self._max_attempts)

    async def get_redemption(self, record_id: str) -> RedemptionRecord:
        """Get a stored record.

        @raises RecordNotFound - No such redemption
        """
        record = await call_with_timeout(self._store.get(record_id), self._timeout)
        if record is None:
            raise RecordNotFound(record_id)
        return record

    async def get_payload(self, record_id: str) -> str:
        """Payload string for re-displaying a redemption's optical code."""
        return encode(await self.get_redemption(record_id))

    async def get_redemption_detail(self, record_id: str) -> RedemptionDetail:
        """Get redemption with effective status and timeline.

        A history that cannot be read yields an empty timeline.

        @param record_id - Redemption ID
        @returns Detail view
        @raises RecordNotFound - No such redemption
        """
        record = await self.get_redemption(record_id)
        timeline = RedemptionTimeline()
        if self._history is not None:
            # History is best-effort; the record alone is still worth showing
            try:
                timeline = await call_with_timeout(
                    self._history.timeline(record_id), self._timeout
                )
            except Exception as e:
                logger.warning(f"Could not read history of redemption {record_id}: {e}")
        return RedemptionDetail(
            record=record,
            effective_status=record.effective_status(self._clock()),
            timeline=timeline,
        )

    async def list_student_redemptions(self, student_id: str) -> list[RedemptionView]:
        """List a student's redemptions, newest first."""
        records = await call_with_timeout(
            self._store.list_by_student(student_id), self._timeout
        )
        now = self._clock()
        return [
            RedemptionView(record=record, effective_status=record.effective_status(now))
            for record in records
        ]

    async def get_student_stats(self, student_id: str) -> RedemptionStats:
        """Count a student's redemptions by effective status.

        @param student_id - Student ID
        @returns Statistics; coins are summed over every redemption
        """
        records = await call_with_timeout(
            self._store.list_by_student(student_id), self._timeout
        )
        now = self._clock()
        counts = Counter(record.effective_status(now) for record in records)
        return RedemptionStats(
            total=len(records),
            pending=counts[RedemptionStatus.PENDING],
            verified=counts[RedemptionStatus.VERIFIED],
            collected=counts[RedemptionStatus.COLLECTED],
            expired=counts[RedemptionStatus.EXPIRED],
            rejected=counts[RedemptionStatus.REJECTED],
            total_coins_spent=sum(record.coins_redeemed for record in records),
        )

    async def mark_expired(self, student_id: str | None = None) -> int:
        """Persist the expiry of overdue pending/verified redemptions.

        Records that change status concurrently are skipped.

        @param student_id - Optional student filter
        @returns Number of records moved to expired
        """
        now = self._clock()
        overdue = await call_with_timeout(
            self._store.list_overdue(now, student_id=student_id), self._timeout
        )

        expired = 0
        for record in overdue:
            updated = await call_with_timeout(
                self._store.compare_and_set_status(
                    record.id, record.status, RedemptionStatus.EXPIRED, at=now
                ),
                self._timeout,
            )
            if updated is None:
                continue
            expired += 1
            await record_event(
                self._history,
                record.id,
                "EXPIRED",
                at=now,
                timeout=self._timeout,
                details={"previous_status": record.status.value},
            )

        if expired:
            logger.info(f"Marked {expired} redemption(s) as expired")
        return expired

    def decode_payload(self, payload: str) -> DecodeResult:
        """Decode a scanned payload at the service's current time."""
        return decode(payload, now=self._clock())

    async def verify(
        self,
        payload: str | DecodeResult | PayloadData,
        intent: VerificationIntent | str = VerificationIntent.ACCEPT,
        *,
        verifier_id: str | None = None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> VerificationOutcome:
        """Verify a scanned payload. See ``VerificationEngine.verify``."""
        return await self.engine.verify(
            payload, intent, verifier_id=verifier_id, reason=reason, notes=notes
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
        """Verify a typed fallback code. See ``VerificationEngine.verify_code``."""
        return await self.engine.verify_code(
            code, intent, verifier_id=verifier_id, reason=reason, notes=notes
        )


# Service singleton with dependency injection support
_redemption_service: RedemptionService | None = None


def get_redemption_service() -> RedemptionService:
    """Get or create redemption service singleton.

    @returns RedemptionService backed by the configured database
    """
    global _redemption_service
    if _redemption_service is None:
        _redemption_service = RedemptionService(
            SqlRedemptionStore(AsyncSessionLocal),
            history=SqlVerificationHistory(AsyncSessionLocal),
        )
    return _redemption_service


def reset_redemption_service() -> None:
    """Reset redemption service singleton (for testing)."""
    global _redemption_service
    _redemption_service = None
