"""Verification history: what happened to each redemption, and who did it."""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from eduverify.repositories.audit_log import AuditLogRepository
from eduverify.services.redemption.schemas import (
    RedemptionTimeline,
    RedemptionTimelineEvent,
)
from eduverify.services.redemption.store import call_with_timeout, open_session

logger = logging.getLogger(__name__)

RESOURCE_TYPE = "redemption"


class VerificationHistory(ABC):
    """Append-only log of redemption lifecycle events."""

    @abstractmethod
    async def append(
        self,
        record_id: str,
        event_type: str,
        *,
        at: int,
        actor: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Append one event."""

    @abstractmethod
    async def timeline(self, record_id: str) -> RedemptionTimeline:
        """Events of one redemption, oldest first."""


class InMemoryVerificationHistory(VerificationHistory):
    """Process-local history."""

    def __init__(self) -> None:
        self._events: dict[str, list[RedemptionTimelineEvent]] = defaultdict(list)

    async def append(
        self,
        record_id: str,
        event_type: str,
        *,
        at: int,
        actor: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self._events[record_id].append(
            RedemptionTimelineEvent(
                event_type=event_type,
                timestamp=at,
                actor=actor,
                details=details,
            )
        )

    async def timeline(self, record_id: str) -> RedemptionTimeline:
        return RedemptionTimeline(events=list(self._events.get(record_id, [])))


class SqlVerificationHistory(VerificationHistory):
    """History stored in the ``audit_logs`` table."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    async def append(
        self,
        record_id: str,
        event_type: str,
        *,
        at: int,
        actor: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        async with open_session(self._session_factory) as session:
            await AuditLogRepository(session).create({
                "action": f"{RESOURCE_TYPE}.{event_type.lower()}",
                "resource_type": RESOURCE_TYPE,
                "resource_id": record_id,
                "actor_id": actor,
                "occurred_at_ms": at,
                "new_value": details,
            })
            await session.commit()

    async def timeline(self, record_id: str) -> RedemptionTimeline:
        async with open_session(self._session_factory) as session:
            logs = await AuditLogRepository(session).get_by_resource(
                resource_type=RESOURCE_TYPE,
                resource_id=record_id,
                limit=None,
            )
            return RedemptionTimeline(
                events=[
                    RedemptionTimelineEvent(
                        event_type=log.action.replace(f"{RESOURCE_TYPE}.", "").upper(),
                        timestamp=log.occurred_at_ms,
                        actor=log.actor_id,
                        details=log.new_value,
                    )
                    for log in logs
                ]
            )


async def record_event(
    history: VerificationHistory | None,
    record_id: str,
    event_type: str,
    *,
    at: int,
    timeout: float,
    actor: str | None = None,
    details: dict[str, Any] | None = None,
) -> bool:
    """Append to history without letting a failure affect the caller.

    The redemption's status is already settled when this runs; a lost
    history entry is logged and otherwise ignored.

    Returns:
        True if the event was stored
    """
    if history is None:
        return False
    try:
        await call_with_timeout(
            history.append(
                record_id, event_type, at=at, actor=actor, details=details
            ),
            timeout,
        )
        return True
    except Exception as e:
        logger.warning(
            f"Could not record {event_type} event for redemption {record_id}: {e}"
        )
        return False
