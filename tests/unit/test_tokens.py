"""Tests for redemption code and token generation."""

import random

from eduverify.services.redemption.tokens import (
    TOKEN_ENTROPY_CHARS,
    TokenGenerator,
    is_redemption_code,
    normalize_code,
)


class TestTokenGenerator:
    """Tests for TokenGenerator."""

    def setup_method(self):
        """Set up test fixtures."""
        self.generator = TokenGenerator(rng=random.Random(7), clock=lambda: 1700000000000)

    def test_redemption_code_format(self):
        """Generated codes match EDU-XXX-XXXX."""
        for _ in range(200):
            code = self.generator.generate_redemption_code()
            assert is_redemption_code(code), code
            assert len(code) == 12

    def test_one_time_token_format(self):
        """Tokens embed the clock instant followed by lowercase entropy."""
        token = self.generator.generate_one_time_token()
        prefix, instant, entropy = token.split("_")

        assert prefix == "token"
        assert instant == "1700000000000"
        assert len(entropy) == TOKEN_ENTROPY_CHARS
        assert entropy.isalnum() and entropy == entropy.lower()

    def test_same_seed_reproduces_sequence(self):
        """Injected randomness makes generation reproducible."""
        first = TokenGenerator(rng=random.Random(1), clock=lambda: 0)
        second = TokenGenerator(rng=random.Random(1), clock=lambda: 0)

        assert first.generate_redemption_code() == second.generate_redemption_code()
        assert first.generate_one_time_token() == second.generate_one_time_token()

    def test_default_source_produces_distinct_values(self):
        """The default CSPRNG does not repeat in practice."""
        generator = TokenGenerator()
        tokens = {generator.generate_one_time_token() for _ in range(100)}
        codes = {generator.generate_redemption_code() for _ in range(100)}

        assert len(tokens) == 100
        assert len(codes) > 95


class TestCodeHelpers:
    """Tests for code normalization and format checks."""

    def test_normalize_code(self):
        """Typed codes are trimmed and uppercased."""
        assert normalize_code("  edu-k3z-9q72 ") == "EDU-K3Z-9Q72"

    def test_is_redemption_code_rejects_bad_formats(self):
        """Wrong prefix, group lengths or characters are refused."""
        assert not is_redemption_code("ABC-K3Z-9Q72")
        assert not is_redemption_code("EDU-K3Z-9Q7")
        assert not is_redemption_code("EDU-K3-9Q72")
        assert not is_redemption_code("EDU-K3Z-9Q7!")
        assert not is_redemption_code("edu-k3z-9q72")
        assert not is_redemption_code("")
