"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets TESTING so settings never load a local .env file, and pins the
rate limit defaults the tests rely on.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("RATE_LIMIT_STRATEGY", "ip")
os.environ.setdefault("RATE_LIMIT_RATE", "5")
os.environ.setdefault("RATE_LIMIT_BURST", "10")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402


class FakeClock:
    """Deterministic monotonic clock for limiter tests."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
