"""Redemption code and one-time token generation.

Codes look like ``EDU-K3Z-9Q72`` and are meant to be read aloud or typed
when the optical code cannot be scanned. Tokens are longer and only travel
inside the payload.
"""

import random
import re
import secrets
import string

from eduverify.utils.clock import Clock, now_ms

CODE_PREFIX = "EDU"
CODE_ALPHABET = string.ascii_uppercase + string.digits
TOKEN_ALPHABET = string.ascii_lowercase + string.digits
TOKEN_ENTROPY_CHARS = 20

REDEMPTION_CODE_PATTERN = re.compile(r"^EDU-[A-Z0-9]{3}-[A-Z0-9]{4}$")


def normalize_code(code: str) -> str:
    """Normalize a typed code: surrounding whitespace off, uppercase."""
    return code.strip().upper()


def is_redemption_code(code: str) -> bool:
    """Check a code against the ``EDU-XXX-XXXX`` format."""
    return bool(REDEMPTION_CODE_PATTERN.match(code))


class TokenGenerator:
    """Produces redemption codes and one-time tokens.

    Stateless apart from its randomness source and clock, both injectable so
    tests can force collisions or fix the embedded instant.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        clock: Clock = now_ms,
    ):
        """Initialize generator.

        Args:
            rng: Randomness source, defaults to the OS CSPRNG
            clock: Epoch-millisecond clock embedded in tokens
        """
        self._rng = rng or secrets.SystemRandom()
        self._clock = clock

    def _draw(self, alphabet: str, length: int) -> str:
        return "".join(self._rng.choice(alphabet) for _ in range(length))

    def generate_redemption_code(self) -> str:
        """Return a fresh ``EDU-XXX-XXXX`` code."""
        return f"{CODE_PREFIX}-{self._draw(CODE_ALPHABET, 3)}-{self._draw(CODE_ALPHABET, 4)}"

    def generate_one_time_token(self) -> str:
        """Return a token embedding the generation instant plus random entropy."""
        return f"token_{self._clock()}_{self._draw(TOKEN_ALPHABET, TOKEN_ENTROPY_CHARS)}"
