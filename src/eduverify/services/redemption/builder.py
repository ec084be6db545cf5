"""Assembly of new redemption records."""

from numbers import Real
from uuid import uuid4

from eduverify.services.redemption.errors import ValidationError
from eduverify.services.redemption.schemas import RedemptionRecord, RedemptionStatus
from eduverify.services.redemption.tokens import TokenGenerator
from eduverify.utils.clock import Clock, days_to_ms, now_ms

DEFAULT_EXPIRY_DAYS = 7


def _require_text(field: str, value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "must be a non-empty string")
    return value


def build_redemption(
    student_id: str,
    product_id: str,
    product_name: str,
    coins_redeemed: int,
    expiry_days: float = DEFAULT_EXPIRY_DAYS,
    *,
    generator: TokenGenerator | None = None,
    clock: Clock = now_ms,
) -> RedemptionRecord:
    """Build a pending redemption record.

    Nothing is persisted; the caller hands the record to a store.

    Args:
        student_id: Redeeming student
        product_id: Redeemed product
        product_name: Product display name
        coins_redeemed: Coins committed, zero or more
        expiry_days: Validity window in days, strictly positive
        generator: Code and token source
        clock: Epoch-millisecond clock

    Returns:
        Fully populated record with status ``pending``

    Raises:
        ValidationError: An argument is out of range; ``field`` names it
    """
    _require_text("student_id", student_id)
    _require_text("product_id", product_id)
    _require_text("product_name", product_name)

    if isinstance(coins_redeemed, bool) or not isinstance(coins_redeemed, int):
        raise ValidationError("coins_redeemed", "must be an integer")
    if coins_redeemed < 0:
        raise ValidationError("coins_redeemed", "must not be negative")

    if isinstance(expiry_days, bool) or not isinstance(expiry_days, Real):
        raise ValidationError("expiry_days", "must be a number")
    if expiry_days <= 0:
        raise ValidationError("expiry_days", "must be greater than zero")

    generator = generator or TokenGenerator(clock=clock)
    timestamp = clock()
    expiry_date = timestamp + days_to_ms(expiry_days)
    if expiry_date <= timestamp:
        raise ValidationError("expiry_days", "window is shorter than one millisecond")

    return RedemptionRecord(
        id=str(uuid4()),
        student_id=student_id,
        product_id=product_id,
        product_name=product_name,
        coins_redeemed=coins_redeemed,
        timestamp=timestamp,
        expiry_date=expiry_date,
        one_time_token=generator.generate_one_time_token(),
        redemption_code=generator.generate_redemption_code(),
        status=RedemptionStatus.PENDING,
    )
