"""Student wallet API endpoints."""

from dataclasses import asdict
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from eduverify.services.redemption import (
    RedemptionService,
    RedemptionView,
    StoreUnavailable,
    get_redemption_service,
)

router = APIRouter(prefix="/students", tags=["Students"])


@router.get("/{student_id}/redemptions", response_model=list[RedemptionView])
async def list_student_redemptions(
    student_id: str,
    service: Annotated[RedemptionService, Depends(get_redemption_service)],
) -> list[RedemptionView]:
    """List a student's redemptions, newest first."""
    try:
        return await service.list_student_redemptions(student_id)
    except StoreUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=e.detail,
        )


@router.get("/{student_id}/stats")
async def get_student_stats(
    student_id: str,
    service: Annotated[RedemptionService, Depends(get_redemption_service)],
) -> dict:
    """Get redemption counts by status and coins spent."""
    try:
        stats = await service.get_student_stats(student_id)
    except StoreUnavailable as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=e.detail,
        )
    return {"student_id": student_id, **asdict(stats)}
