"""Pytest configuration and fixtures."""

import os

# Must be set before the application is imported
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("DATABASE_BACKEND", "sqlite")
os.environ.setdefault("SQLITE_PATH", ":memory:")

import random

import pytest
from fastapi.testclient import TestClient

from eduverify.utils.clock import DAY_MS

# 2024-06-01T00:00:00Z
START_MS = 1717200000000


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, *, days: float = 0, ms: int = 0) -> None:
        self.now += int(days * DAY_MS) + ms


@pytest.fixture
def clock():
    """Fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def settings():
    """Create settings instance for testing."""
    from eduverify.core.config import Settings

    return Settings(environment="testing", auto_create_tables=False)


@pytest.fixture
def store():
    """Empty in-memory redemption store."""
    from eduverify.services.redemption import InMemoryRedemptionStore

    return InMemoryRedemptionStore()


@pytest.fixture
def history():
    """Empty in-memory verification history."""
    from eduverify.services.redemption import InMemoryVerificationHistory

    return InMemoryVerificationHistory()


@pytest.fixture
def generator(clock):
    """Deterministic code and token generator."""
    from eduverify.services.redemption import TokenGenerator

    return TokenGenerator(rng=random.Random(42), clock=clock)


@pytest.fixture
def service(store, history, generator, settings, clock):
    """Redemption service wired to in-memory collaborators."""
    from eduverify.services.redemption import RedemptionService

    return RedemptionService(
        store,
        history=history,
        generator=generator,
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def app(service):
    """Create FastAPI application using the in-memory service."""
    from eduverify.main import create_app
    from eduverify.services.redemption import get_redemption_service

    app = create_app()
    app.dependency_overrides[get_redemption_service] = lambda: service
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    with TestClient(app) as client:
        yield client
