"""Repository for redemption record operations."""

from typing import Any, Sequence

from sqlalchemy import desc, select

from eduverify.models.redemption import Redemption
from eduverify.repositories.base import BaseRepository

NON_TERMINAL_STATUSES = ("pending", "verified")


class RedemptionRepository(BaseRepository[Redemption]):
    """Repository for Redemption database operations.

    Handles all redemption-related queries including:
    - Lookup by record ID or fallback code
    - Per-student listings
    - Conditional status updates
    - Overdue (lazily expired) records
    """

    model = Redemption

    async def get_by_record_id(self, record_id: str) -> Redemption | None:
        """Get redemption by its public record ID.

        @param record_id - UUID string assigned at creation
        @returns Redemption or None
        """
        return await self.get_one_by_filter(record_id=record_id)

    async def get_by_code(self, redemption_code: str) -> Redemption | None:
        """Get redemption by human-readable code.

        @param redemption_code - Normalized EDU-XXX-XXXX code
        @returns Redemption or None
        """
        return await self.get_one_by_filter(redemption_code=redemption_code)

    async def get_by_student(
        self,
        student_id: str,
        *,
        skip: int = 0,
        limit: int | None = 100,
    ) -> Sequence[Redemption]:
        """Get all redemptions for a student, newest first.

        @param student_id - Student ID
        @param skip - Pagination offset
        @param limit - Maximum results (None for all)
        @returns List of redemptions
        """
        return await self.get_by_filter(
            student_id=student_id,
            skip=skip,
            limit=limit,
            order_by=desc(self.model.issued_at_ms),
        )

    async def get_overdue(
        self,
        now_ms: int,
        *,
        student_id: str | None = None,
    ) -> Sequence[Redemption]:
        """Get pending or verified redemptions past their expiry.

        @param now_ms - Evaluation instant (epoch ms)
        @param student_id - Optional student filter
        @returns Overdue redemptions
        """
        stmt = select(self.model).where(
            self.model.status.in_(NON_TERMINAL_STATUSES),
            self.model.expires_at_ms <= now_ms,
        )
        if student_id:
            stmt = stmt.where(self.model.student_id == student_id)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def compare_and_set_status(
        self,
        record_id: str,
        expected_status: str,
        new_status: str,
        **changes: Any,
    ) -> bool:
        """Move status only if it still equals ``expected_status``.

        @param record_id - Record ID
        @param expected_status - Status the caller observed
        @param new_status - Status to write
        @param changes - Transition metadata columns to write alongside
        @returns True if this call performed the update
        """
        updated = await self.update_by_filter(
            {"status": new_status, **changes},
            record_id=record_id,
            status=expected_status,
        )
        return updated == 1
