"""Integration tests for the application factory and lifespan wiring."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.adapters.rate_limit.registry import LimiterRegistry
from app.adapters.rate_limit.sliding_window import WindowLimiter
from app.adapters.rate_limit.token_bucket import GlobalTokenBucketLimiter
from app.core.app_factory import create_app
from app.core.config import RateLimitSettings, Settings


def _settings(**rate_limit) -> Settings:
    return Settings(rate_limit=RateLimitSettings(**rate_limit))


@pytest.mark.parametrize(
    ("strategy", "limiter_type"),
    [
        ("global", GlobalTokenBucketLimiter),
        ("ip", LimiterRegistry),
        ("window", WindowLimiter),
    ],
)
def test_builds_limiter_for_strategy(strategy: str, limiter_type: type) -> None:
    app = create_app(_settings(strategy=strategy))

    assert isinstance(app.state.rate_limiter, limiter_type)


def test_each_app_owns_its_limiter() -> None:
    first = create_app(_settings(strategy="ip"))
    second = create_app(_settings(strategy="ip"))

    assert first.state.rate_limiter is not second.state.rate_limiter


def test_lifespan_starts_and_stops_sweeper() -> None:
    app = create_app(_settings(strategy="window", window_seconds=30))
    sweeper = app.state.rate_limit_sweeper

    assert sweeper.interval_seconds == 30
    assert sweeper.running is False

    with TestClient(app):
        assert sweeper.running is True

    assert sweeper.running is False


def test_global_strategy_has_no_sweeper() -> None:
    app = create_app(_settings(strategy="global"))

    assert app.state.rate_limit_sweeper is None


def test_middleware_throttles_and_health_stays_exempt() -> None:
    app = create_app(_settings(strategy="window", limit=2, window_seconds=60))

    with TestClient(app) as client:
        assert client.get("/v1/rate-limit/status").status_code == 200
        assert client.get("/v1/rate-limit/status").status_code == 200
        resp = client.get("/v1/rate-limit/status")

        assert resp.status_code == 429
        assert resp.json()["error"] == "rate limit exceeded"
        assert resp.headers["X-RateLimit-Window"] == "60s"
        # Request id middleware wraps the limiter
        assert resp.headers.get("X-Request-ID")

        health = client.get("/health")
        assert health.status_code == 200
        assert health.json()["rate_limit"] == {
            "enabled": True,
            "strategy": "window",
            "tracked_identifiers": 1,
        }


def test_status_route_reports_remaining_budget() -> None:
    app = create_app(_settings(strategy="ip", rate=1, burst=3))

    with TestClient(app) as client:
        body = client.get("/v1/rate-limit/status").json()

    assert body["enabled"] is True
    assert body["limit"] == 1
    assert body["remaining"] == 2
    assert body["window_seconds"] is None


def test_dependency_only_mode_limits_declared_routes() -> None:
    app = create_app(_settings(strategy="ip", rate=1, burst=1, apply_globally=False))

    with TestClient(app) as client:
        assert client.get("/v1/rate-limit/status").status_code == 200
        resp = client.get("/v1/rate-limit/status")

    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "1"


def test_disabled_rate_limit() -> None:
    app = create_app(_settings(enabled=False))

    with TestClient(app) as client:
        for _ in range(20):
            assert client.get("/v1/rate-limit/status").status_code == 200
        body = client.get("/v1/rate-limit/status").json()
        health = client.get("/health").json()

    assert body == {"enabled": False, "limit": None, "remaining": None, "window_seconds": None}
    assert health["rate_limit"]["enabled"] is False
