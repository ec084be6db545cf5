"""Redemption store implementations.

The store owns redemption records. Status only changes through
``compare_and_set_status``, which succeeds for exactly one of several
concurrent callers that observed the same status.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from typing import Any, Callable, TypeVar

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from eduverify.models.redemption import Redemption
from eduverify.repositories.redemption import RedemptionRepository
from eduverify.services.redemption.errors import GenerationCollision, StoreUnavailable
from eduverify.services.redemption.schemas import (
    TERMINAL_STATUSES,
    RedemptionRecord,
    RedemptionStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_timeout(awaitable: Awaitable[T], timeout: float) -> T:
    """Await a store operation, turning a timeout into ``StoreUnavailable``.

    Args:
        awaitable: Store coroutine
        timeout: Seconds to wait

    Returns:
        The operation's result

    Raises:
        StoreUnavailable: No answer within ``timeout``
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning(f"Redemption store did not answer within {timeout}s")
        raise StoreUnavailable(
            f"Redemption store did not answer within {timeout}s"
        ) from e


@asynccontextmanager
async def open_session(
    session_factory: Callable[[], AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Open a session; connectivity failures surface as ``StoreUnavailable``.

    Leaving the block without commit (error or cancellation) rolls back.
    """
    try:
        async with session_factory() as session:
            yield session
    except (OperationalError, InterfaceError, OSError) as e:
        logger.warning(f"Redemption store unreachable: {e}")
        raise StoreUnavailable(f"Redemption store unreachable: {e}") from e


def transition_changes(
    new_status: RedemptionStatus,
    *,
    actor: str | None = None,
    reason: str | None = None,
    at: int | None = None,
) -> dict[str, Any]:
    """Metadata written together with a status change, keyed by record field."""
    if new_status == RedemptionStatus.VERIFIED:
        changes = {"verified_by": actor, "verified_at": at}
    elif new_status == RedemptionStatus.COLLECTED:
        changes = {"collected_at": at}
    elif new_status == RedemptionStatus.REJECTED:
        changes = {"verified_by": actor, "verified_at": at, "rejected_reason": reason}
    else:
        changes = {}
    return {key: value for key, value in changes.items() if value is not None}


class RedemptionStore(ABC):
    """Durable keyed storage of redemption records."""

    @abstractmethod
    async def get(self, record_id: str) -> RedemptionRecord | None:
        """Get a record by ID."""

    @abstractmethod
    async def get_by_code(self, redemption_code: str) -> RedemptionRecord | None:
        """Get a record by its normalized fallback code."""

    @abstractmethod
    async def put(self, record: RedemptionRecord) -> RedemptionRecord:
        """Insert a new record.

        Raises:
            GenerationCollision: ID, code or token already stored
        """

    @abstractmethod
    async def compare_and_set_status(
        self,
        record_id: str,
        expected_status: RedemptionStatus,
        new_status: RedemptionStatus,
        *,
        actor: str | None = None,
        reason: str | None = None,
        at: int | None = None,
    ) -> RedemptionRecord | None:
        """Atomically move status if it still equals ``expected_status``.

        Returns:
            Updated record, or None if the record is missing or its status
            no longer matches
        """

    @abstractmethod
    async def list_by_student(self, student_id: str) -> list[RedemptionRecord]:
        """All records of a student, newest first."""

    @abstractmethod
    async def list_overdue(
        self, now: int, *, student_id: str | None = None
    ) -> list[RedemptionRecord]:
        """Pending or verified records whose expiry has passed."""


class InMemoryRedemptionStore(RedemptionStore):
    """Process-local store guarded by an asyncio lock."""

    def __init__(self) -> None:
        self._records: dict[str, RedemptionRecord] = {}
        self._ids_by_code: dict[str, str] = {}
        self._tokens: set[str] = set()
        self._lock = asyncio.Lock()

    async def get(self, record_id: str) -> RedemptionRecord | None:
        return self._records.get(record_id)

    async def get_by_code(self, redemption_code: str) -> RedemptionRecord | None:
        record_id = self._ids_by_code.get(redemption_code)
        return self._records.get(record_id) if record_id else None

    async def put(self, record: RedemptionRecord) -> RedemptionRecord:
        async with self._lock:
            if record.id in self._records:
                raise GenerationCollision(f"Redemption ID {record.id} already in use")
            if record.redemption_code in self._ids_by_code:
                raise GenerationCollision(
                    f"Redemption code {record.redemption_code} already in use"
                )
            if record.one_time_token in self._tokens:
                raise GenerationCollision("One-time token already in use")

            self._records[record.id] = record
            self._ids_by_code[record.redemption_code] = record.id
            self._tokens.add(record.one_time_token)
            return record

    async def compare_and_set_status(
        self,
        record_id: str,
        expected_status: RedemptionStatus,
        new_status: RedemptionStatus,
        *,
        actor: str | None = None,
        reason: str | None = None,
        at: int | None = None,
    ) -> RedemptionRecord | None:
        async with self._lock:
            current = self._records.get(record_id)
            if current is None or current.status != expected_status:
                return None
            updated = current.model_copy(
                update={
                    "status": new_status,
                    **transition_changes(new_status, actor=actor, reason=reason, at=at),
                }
            )
            self._records[record_id] = updated
            return updated

    async def list_by_student(self, student_id: str) -> list[RedemptionRecord]:
        records = [r for r in self._records.values() if r.student_id == student_id]
        return sorted(records, key=lambda r: r.timestamp, reverse=True)

    async def list_overdue(
        self, now: int, *, student_id: str | None = None
    ) -> list[RedemptionRecord]:
        return [
            r
            for r in self._records.values()
            if r.status not in TERMINAL_STATUSES
            and r.is_expired(now)
            and (student_id is None or r.student_id == student_id)
        ]


# Record field -> column name where they differ
_COLUMN_NAMES = {
    "id": "record_id",
    "timestamp": "issued_at_ms",
    "expiry_date": "expires_at_ms",
    "verified_at": "verified_at_ms",
    "collected_at": "collected_at_ms",
}


def _to_columns(values: dict[str, Any]) -> dict[str, Any]:
    columns = {}
    for key, value in values.items():
        if isinstance(value, RedemptionStatus):
            value = value.value
        columns[_COLUMN_NAMES.get(key, key)] = value
    return columns


def _to_record(row: Redemption) -> RedemptionRecord:
    return RedemptionRecord(
        id=row.record_id,
        student_id=row.student_id,
        product_id=row.product_id,
        product_name=row.product_name,
        coins_redeemed=row.coins_redeemed,
        timestamp=row.issued_at_ms,
        expiry_date=row.expires_at_ms,
        one_time_token=row.one_time_token,
        redemption_code=row.redemption_code,
        status=RedemptionStatus(row.status),
        verified_by=row.verified_by,
        verified_at=row.verified_at_ms,
        collected_at=row.collected_at_ms,
        rejected_reason=row.rejected_reason,
    )


class SqlRedemptionStore(RedemptionStore):
    """Store backed by SQLAlchemy (SQLite on offline devices, PostgreSQL online)."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        """Initialize SQL store.

        @param session_factory - Factory for creating database sessions
        """
        self._session_factory = session_factory

    def _session(self):
        return open_session(self._session_factory)

    async def get(self, record_id: str) -> RedemptionRecord | None:
        async with self._session() as session:
            row = await RedemptionRepository(session).get_by_record_id(record_id)
            return _to_record(row) if row else None

    async def get_by_code(self, redemption_code: str) -> RedemptionRecord | None:
        async with self._session() as session:
            row = await RedemptionRepository(session).get_by_code(redemption_code)
            return _to_record(row) if row else None

    async def put(self, record: RedemptionRecord) -> RedemptionRecord:
        async with self._session() as session:
            repo = RedemptionRepository(session)
            try:
                await repo.create(_to_columns(record.model_dump()))
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise GenerationCollision(
                    f"Redemption {record.redemption_code} collides with a stored record"
                ) from e
            return record

    async def compare_and_set_status(
        self,
        record_id: str,
        expected_status: RedemptionStatus,
        new_status: RedemptionStatus,
        *,
        actor: str | None = None,
        reason: str | None = None,
        at: int | None = None,
    ) -> RedemptionRecord | None:
        changes = _to_columns(
            transition_changes(new_status, actor=actor, reason=reason, at=at)
        )
        async with self._session() as session:
            repo = RedemptionRepository(session)
            applied = await repo.compare_and_set_status(
                record_id, expected_status.value, new_status.value, **changes
            )
            if not applied:
                await session.rollback()
                return None
            await session.commit()
            row = await repo.get_by_record_id(record_id)
            return _to_record(row) if row else None

    async def list_by_student(self, student_id: str) -> list[RedemptionRecord]:
        async with self._session() as session:
            rows = await RedemptionRepository(session).get_by_student(
                student_id, limit=None
            )
            return [_to_record(row) for row in rows]

    async def list_overdue(
        self, now: int, *, student_id: str | None = None
    ) -> list[RedemptionRecord]:
        async with self._session() as session:
            rows = await RedemptionRepository(session).get_overdue(
                now, student_id=student_id
            )
            return [_to_record(row) for row in rows]
