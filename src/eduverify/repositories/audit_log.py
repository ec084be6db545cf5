"""Repository for audit log operations."""

from typing import Sequence

from sqlalchemy import select

from eduverify.models.audit import AuditLog
from eduverify.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLog]):
    """Repository for AuditLog database operations."""

    model = AuditLog

    async def get_by_resource(
        self,
        resource_type: str,
        resource_id: str | None = None,
        *,
        skip: int = 0,
        limit: int | None = 100,
    ) -> Sequence[AuditLog]:
        """Get logs by resource, oldest first.

        @param resource_type - Resource type
        @param resource_id - Optional specific resource ID
        @param skip - Pagination offset
        @param limit - Maximum results (None for all)
        @returns List of audit logs
        """
        stmt = select(self.model).where(self.model.resource_type == resource_type)
        if resource_id:
            stmt = stmt.where(self.model.resource_id == resource_id)
        stmt = stmt.order_by(self.model.occurred_at_ms, self.model.id).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()
