"""Redemption API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from eduverify.services.redemption import (
    DecodeResult,
    GenerationExhausted,
    RecordNotFound,
    RedemptionCreate,
    RedemptionDetail,
    RedemptionIssued,
    RedemptionService,
    StoreUnavailable,
    ValidationError,
    VerificationOutcome,
    get_redemption_service,
)
from eduverify.services.redemption.schemas import (
    DecodeRequest,
    ExpirySweepResponse,
    VerifyCodeRequest,
    VerifyRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/redemptions", tags=["Redemptions"])


def store_unavailable(e: StoreUnavailable) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=e.detail,
    )


@router.post("", response_model=RedemptionIssued, status_code=status.HTTP_201_CREATED)
async def issue_redemption(
    request: RedemptionCreate,
    service: Annotated[RedemptionService, Depends(get_redemption_service)],
) -> RedemptionIssued:
    """Issue a pending redemption and the payload for its optical code."""
    try:
        return await service.issue_redemption(request)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.detail,
        )
    except GenerationExhausted as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.detail,
        )
    except StoreUnavailable as e:
        raise store_unavailable(e)


@router.post("/decode", response_model=DecodeResult)
async def decode_payload(
    request: DecodeRequest,
    service: Annotated[RedemptionService, Depends(get_redemption_service)],
) -> DecodeResult:
    """Decode a scanned payload without touching the store."""
    return service.decode_payload(request.payload)


@router.post("/verify", response_model=VerificationOutcome)
async def verify_redemption(
    request: VerifyRequest,
    service: Annotated[RedemptionService, Depends(get_redemption_service)],
) -> VerificationOutcome:
    """Verify a scanned payload and apply the verifier's action.

    Refusals are reported in the outcome, not as HTTP errors:
    - invalid / expired / not_found: the payload cannot be honoured
    - already_finalized / invalid_transition: the status forbids the action
    - retry_pending: the store could not be reached, try again
    """
    return await service.verify(
        request.payload,
        request.intent,
        verifier_id=request.verifier_id,
        reason=request.reason,
        notes=request.notes,
    )


@router.post("/verify-code", response_model=VerificationOutcome)
async def verify_redemption_code(
    request: VerifyCodeRequest,
    service: Annotated[RedemptionService, Depends(get_redemption_service)],
) -> VerificationOutcome:
    """Verify a fallback code typed in by the verifier."""
    return await service.verify_code(
        request.code,
        request.intent,
        verifier_id=request.verifier_id,
        reason=request.reason,
        notes=request.notes,
    )


@router.post("/expire", response_model=ExpirySweepResponse)
async def expire_redemptions(
    service: Annotated[RedemptionService, Depends(get_redemption_service)],
    student_id: str | None = Query(None, description="Only this student's redemptions"),
) -> ExpirySweepResponse:
    """Persist expiry of overdue pending and verified redemptions."""
    try:
        expired = await service.mark_expired(student_id)
    except StoreUnavailable as e:
        raise store_unavailable(e)
    return ExpirySweepResponse(expired=expired)


@router.get("/{record_id}", response_model=RedemptionDetail)
async def get_redemption_detail(
    record_id: str,
    service: Annotated[RedemptionService, Depends(get_redemption_service)],
) -> RedemptionDetail:
    """Get a redemption with its effective status and full timeline."""
    try:
        return await service.get_redemption_detail(record_id)
    except RecordNotFound as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.detail,
        )
    except StoreUnavailable as e:
        raise store_unavailable(e)


@router.get("/{record_id}/payload")
async def get_redemption_payload(
    record_id: str,
    service: Annotated[RedemptionService, Depends(get_redemption_service)],
) -> dict:
    """Get the payload string to re-render a redemption's optical code."""
    try:
        payload = await service.get_payload(record_id)
    except RecordNotFound as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.detail,
        )
    except StoreUnavailable as e:
        raise store_unavailable(e)
    return {"id": record_id, "payload": payload}
