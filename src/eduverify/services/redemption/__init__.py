"""Student redemption service module."""

from eduverify.services.redemption.builder import build_redemption
from eduverify.services.redemption.codec import decode, encode
from eduverify.services.redemption.engine import VerificationEngine
from eduverify.services.redemption.errors import (
    AlreadyFinalized,
    DecodeError,
    GenerationCollision,
    GenerationExhausted,
    InvalidTransition,
    RecordNotFound,
    RedemptionError,
    StoreUnavailable,
    ValidationError,
)
from eduverify.services.redemption.history import (
    InMemoryVerificationHistory,
    SqlVerificationHistory,
    VerificationHistory,
)
from eduverify.services.redemption.schemas import (
    DecodeFailure,
    DecodeResult,
    OutcomeKind,
    PayloadData,
    RedemptionCreate,
    RedemptionDetail,
    RedemptionIssued,
    RedemptionRecord,
    RedemptionStatus,
    RedemptionTimeline,
    RedemptionTimelineEvent,
    RedemptionView,
    VerificationIntent,
    VerificationOutcome,
)
from eduverify.services.redemption.service import (
    RedemptionService,
    RedemptionStats,
    get_redemption_service,
    reset_redemption_service,
)
from eduverify.services.redemption.store import (
    InMemoryRedemptionStore,
    RedemptionStore,
    SqlRedemptionStore,
)
from eduverify.services.redemption.tokens import TokenGenerator

__all__ = [
    # Enums
    "RedemptionStatus",
    "VerificationIntent",
    "DecodeFailure",
    "OutcomeKind",
    # Schemas
    "RedemptionRecord",
    "PayloadData",
    "DecodeResult",
    "VerificationOutcome",
    "RedemptionCreate",
    "RedemptionIssued",
    "RedemptionView",
    "RedemptionDetail",
    "RedemptionTimeline",
    "RedemptionTimelineEvent",
    # Errors
    "RedemptionError",
    "ValidationError",
    "GenerationCollision",
    "GenerationExhausted",
    "DecodeError",
    "RecordNotFound",
    "AlreadyFinalized",
    "InvalidTransition",
    "StoreUnavailable",
    # Building blocks
    "TokenGenerator",
    "build_redemption",
    "encode",
    "decode",
    "VerificationEngine",
    "RedemptionStore",
    "InMemoryRedemptionStore",
    "SqlRedemptionStore",
    "VerificationHistory",
    "InMemoryVerificationHistory",
    "SqlVerificationHistory",
    # Service
    "RedemptionService",
    "RedemptionStats",
    "get_redemption_service",
    "reset_redemption_service",
]
