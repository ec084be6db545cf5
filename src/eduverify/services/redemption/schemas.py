"""Redemption schemas shared by the generator, codec, engine and API."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from eduverify.services.redemption.errors import DecodeError


class RedemptionStatus(str, Enum):
    """Redemption lifecycle status."""

    PENDING = "pending"
    VERIFIED = "verified"
    COLLECTED = "collected"
    EXPIRED = "expired"
    REJECTED = "rejected"


TERMINAL_STATUSES = frozenset(
    {RedemptionStatus.COLLECTED, RedemptionStatus.EXPIRED, RedemptionStatus.REJECTED}
)


class VerificationIntent(str, Enum):
    """What the verifier wants to do with a scanned redemption."""

    ACCEPT = "accept"
    COLLECT = "collect"
    REJECT = "reject"


class DecodeFailure(str, Enum):
    """Reasons a scanned payload is refused before any store lookup."""

    COULD_NOT_DECODE = "Could not decode"
    INVALID_FORMAT = "Invalid format"
    EXPIRED = "Expired"


class OutcomeKind(str, Enum):
    """Result categories of a verification attempt."""

    VERIFIED = "verified"
    COLLECTED = "collected"
    REJECTED = "rejected"
    EXPIRED = "expired"
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    ALREADY_FINALIZED = "already_finalized"
    INVALID_TRANSITION = "invalid_transition"
    RETRY_PENDING = "retry_pending"


class RedemptionRecord(BaseModel):
    """Immutable snapshot of a redemption as held by the store.

    Field names serialize in camelCase so records stay interchangeable with
    redemptions created by the student app.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str = Field(..., description="Globally unique redemption ID")
    student_id: str = Field(..., description="Redeeming student")
    product_id: str = Field(..., description="Redeemed product")
    product_name: str = Field(..., description="Product display name")
    coins_redeemed: int = Field(..., ge=0, description="Coins committed")
    timestamp: int = Field(..., description="Creation instant (epoch ms)")
    expiry_date: int = Field(..., description="Expiry instant (epoch ms)")
    one_time_token: str = Field(..., description="Single-use credential")
    redemption_code: str = Field(..., description="Human-readable fallback code")
    status: RedemptionStatus = Field(
        default=RedemptionStatus.PENDING, description="Stored status"
    )

    # Transition metadata, written by the store on compare-and-set
    verified_by: str | None = Field(None, description="Verifier who acted last")
    verified_at: int | None = Field(None, description="Verification instant (epoch ms)")
    collected_at: int | None = Field(None, description="Handover instant (epoch ms)")
    rejected_reason: str | None = Field(None, description="Verifier's rejection reason")

    def is_expired(self, now: int) -> bool:
        """Whether the validity window has elapsed at ``now``."""
        return now >= self.expiry_date

    def effective_status(self, now: int) -> RedemptionStatus:
        """Status as observed at ``now``.

        A pending or verified record past its expiry reads as expired even
        though nothing has been written to the store.
        """
        if self.status in TERMINAL_STATUSES:
            return self.status
        if self.is_expired(now):
            return RedemptionStatus.EXPIRED
        return self.status


class PayloadData(BaseModel):
    """Fields carried inside the optical code.

    ``id``, ``token``, ``timestamp`` and ``expiry`` may be absent from
    hand-made or legacy payloads.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str | None = None
    student_id: str
    product_id: str
    redemption_code: str
    token: str | None = None
    timestamp: int | None = None
    expiry: int | None = None

    def wire_fields(self) -> dict[str, Any]:
        """Return only the wire keys that were present when decoded."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class DecodeResult(BaseModel):
    """Outcome of decoding a scanned payload string."""

    valid: bool = Field(..., description="Payload passed structural checks")
    data: PayloadData | None = Field(None, description="Extracted payload fields")
    error: DecodeFailure | None = Field(None, description="Failure reason")

    def raise_for_error(self) -> PayloadData:
        """Return the payload data or raise ``DecodeError``."""
        if not self.valid or self.data is None:
            raise DecodeError(self.error or DecodeFailure.COULD_NOT_DECODE)
        return self.data


class VerificationOutcome(BaseModel):
    """Typed result of ``verify``; failures are data, not exceptions."""

    outcome: OutcomeKind = Field(..., description="Result category")
    message: str = Field(..., description="Reason to show the verifier")
    status: RedemptionStatus | None = Field(
        None, description="Effective status after evaluation"
    )
    record: RedemptionRecord | None = Field(None, description="Current record snapshot")
    transitioned: bool = Field(
        default=False, description="This call changed the stored status"
    )

    @property
    def succeeded(self) -> bool:
        """The verifier's requested action is in effect."""
        return self.outcome in (
            OutcomeKind.VERIFIED,
            OutcomeKind.COLLECTED,
            OutcomeKind.REJECTED,
        )


class RedemptionCreate(BaseModel):
    """Request to start a redemption."""

    student_id: str = Field(..., description="Redeeming student")
    product_id: str = Field(..., description="Product being redeemed")
    product_name: str = Field(..., description="Product display name")
    coins_redeemed: int = Field(..., description="Coins to commit")
    expiry_days: float | None = Field(
        None, description="Validity window in days (defaults to settings)"
    )


class RedemptionIssued(BaseModel):
    """Newly issued redemption with its optical payload."""

    record: RedemptionRecord = Field(..., description="Stored record")
    payload: str = Field(..., description="String to render as the optical code")


class RedemptionTimelineEvent(BaseModel):
    """Single event in a redemption's verification history."""

    event_type: str = Field(..., description="Event type")
    timestamp: int = Field(..., description="Event instant (epoch ms)")
    actor: str | None = Field(None, description="Student or verifier ID")
    details: dict[str, Any] | None = Field(None, description="Additional details")


class RedemptionTimeline(BaseModel):
    """Redemption timeline with all events."""

    events: list[RedemptionTimelineEvent] = Field(
        default_factory=list, description="Timeline events"
    )


class RedemptionView(BaseModel):
    """Record together with the status a reader should display."""

    record: RedemptionRecord = Field(..., description="Stored record")
    effective_status: RedemptionStatus = Field(..., description="Status at read time")


class RedemptionDetail(RedemptionView):
    """Detailed redemption information."""

    timeline: RedemptionTimeline = Field(..., description="Event timeline")


class DecodeRequest(BaseModel):
    """Raw payload string captured by the optical decoder."""

    payload: str = Field(..., description="Scanned payload")


class VerifyRequest(BaseModel):
    """Verifier action on a scanned payload."""

    payload: str = Field(..., description="Scanned payload")
    intent: VerificationIntent = Field(
        default=VerificationIntent.ACCEPT, description="Requested action"
    )
    verifier_id: str | None = Field(None, description="Acting teacher")
    reason: str | None = Field(
        None, max_length=1000, description="Rejection reason"
    )
    notes: str | None = Field(None, max_length=1000, description="Verifier notes")


class VerifyCodeRequest(BaseModel):
    """Verifier action on a typed fallback code."""

    code: str = Field(..., description="Fallback code, e.g. EDU-ABC-1234")
    intent: VerificationIntent = Field(
        default=VerificationIntent.ACCEPT, description="Requested action"
    )
    verifier_id: str | None = Field(None, description="Acting teacher")
    reason: str | None = Field(
        None, max_length=1000, description="Rejection reason"
    )
    notes: str | None = Field(None, max_length=1000, description="Verifier notes")


class ExpirySweepResponse(BaseModel):
    """Result of persisting observed expiry."""

    expired: int = Field(..., ge=0, description="Records moved to expired")
