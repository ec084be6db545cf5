"""Redemption error taxonomy."""

from enum import Enum


class RedemptionError(Exception):
    """Base class for redemption failures."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(RedemptionError):
    """Caller input is malformed. Never retried."""

    def __init__(self, field: str, detail: str) -> None:
        super().__init__(f"{field}: {detail}")
        self.field = field


class GenerationCollision(RedemptionError):
    """A generated code or token already exists in the store."""


class GenerationExhausted(RedemptionError):
    """Every regeneration attempt collided."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Could not generate a unique redemption after {attempts} attempts"
        )
        self.attempts = attempts


class DecodeError(RedemptionError):
    """Scanned payload was refused: could not decode, invalid format or expired."""

    def __init__(self, reason: str | Enum) -> None:
        text = reason.value if isinstance(reason, Enum) else reason
        super().__init__(text)
        self.reason = reason


class RecordNotFound(RedemptionError):
    """No redemption matches the presented key."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Redemption {key} not found")
        self.key = key


class AlreadyFinalized(RedemptionError):
    """The redemption is already collected, expired or rejected."""

    def __init__(self, record_id: str, status: str | Enum) -> None:
        text = status.value if isinstance(status, Enum) else status
        super().__init__(f"Redemption {record_id} is already {text}")
        self.record_id = record_id
        self.status = status


class InvalidTransition(RedemptionError):
    """The requested action does not apply to the current status."""

    def __init__(self, current: str | Enum, target: str | Enum) -> None:
        current_text = current.value if isinstance(current, Enum) else current
        target_text = target.value if isinstance(target, Enum) else target
        super().__init__(f"Cannot move redemption from {current_text} to {target_text}")
        self.current = current
        self.target = target


class StoreUnavailable(RedemptionError):
    """The redemption store timed out or could not be reached."""
