"""Optical payload encoding and decoding.

The payload is a compact JSON object with exactly these keys::

    {"id":..,"studentId":..,"productId":..,"redemptionCode":..,
     "token":..,"timestamp":..,"expiry":..}

Key names and order match codes generated by the student app, so both
sides stay interoperable. Product name, coin amount and status are left out
on purpose: the verifier reads those from the store.
"""

import json
from typing import Any

from eduverify.services.redemption.schemas import (
    DecodeFailure,
    DecodeResult,
    PayloadData,
    RedemptionRecord,
)
from eduverify.utils.clock import now_ms

REQUIRED_KEYS = ("studentId", "productId", "redemptionCode")
OPTIONAL_TEXT_KEYS = ("id", "token")
INSTANT_KEYS = ("timestamp", "expiry")


def encode(record: RedemptionRecord) -> str:
    """Serialize the wire subset of a record."""
    payload = PayloadData(
        id=record.id,
        student_id=record.student_id,
        product_id=record.product_id,
        redemption_code=record.redemption_code,
        token=record.one_time_token,
        timestamp=record.timestamp,
        expiry=record.expiry_date,
    )
    return payload.model_dump_json(by_alias=True)


def _as_instant(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _invalid(reason: DecodeFailure) -> DecodeResult:
    return DecodeResult(valid=False, error=reason)


def decode(payload: str, *, now: int | None = None) -> DecodeResult:
    """Parse and structurally validate a scanned payload.

    Checks run in priority order: unparseable, then missing or malformed
    keys, then the payload's own expiry. Keys absent from the payload stay
    absent in the result.

    Args:
        payload: String produced by the optical decoder
        now: Evaluation instant in epoch ms (default: current time)

    Returns:
        DecodeResult with either data or an error
    """
    try:
        raw = json.loads(payload)
    except (TypeError, ValueError):
        return _invalid(DecodeFailure.COULD_NOT_DECODE)

    if not isinstance(raw, dict):
        return _invalid(DecodeFailure.INVALID_FORMAT)

    fields: dict[str, Any] = {}

    for key in REQUIRED_KEYS:
        value = raw.get(key)
        if not isinstance(value, str) or not value.strip():
            return _invalid(DecodeFailure.INVALID_FORMAT)
        fields[key] = value

    for key in OPTIONAL_TEXT_KEYS:
        value = raw.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            return _invalid(DecodeFailure.INVALID_FORMAT)
        fields[key] = value

    for key in INSTANT_KEYS:
        value = raw.get(key)
        if value is None:
            continue
        instant = _as_instant(value)
        if instant is None:
            return _invalid(DecodeFailure.INVALID_FORMAT)
        fields[key] = instant

    if now is None:
        now = now_ms()
    expiry = fields.get("expiry")
    if expiry is not None and expiry < now:
        return _invalid(DecodeFailure.EXPIRED)

    return DecodeResult(valid=True, data=PayloadData.model_validate(fields))
