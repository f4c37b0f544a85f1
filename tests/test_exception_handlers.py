"""Tests for global exception handlers.

Validates that all exception types are handled consistently with
proper HTTP status codes, error format, and no information leakage.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.errors import AppError, RateLimitExceededError, ValidationAppError
from app.core.exception_handlers import general_exception_handler, setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers, raise_server_exceptions=False)


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(
                code="invalid_rate_limit_config",
                message="rate must be > 0",
                details={"hint": "Set RATE_LIMIT_RATE to a positive number"},
            )

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["code"] == "invalid_rate_limit_config"
        assert data["error"]["message"] == "rate must be > 0"
        assert data["error"]["details"]["hint"].startswith("Set RATE_LIMIT_RATE")
        assert "request_id" in data["error"]


class TestRateLimitExceededHandler:
    """RateLimitExceededError becomes the flat 429 rejection."""

    def test_returns_429_with_headers(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/throttled")
        async def test_endpoint():
            raise RateLimitExceededError(
                message="Maximum 5 requests per 60s",
                headers={"X-RateLimit-Limit": "5", "X-RateLimit-Window": "60s"},
            )

        response = client.get("/throttled")

        assert response.status_code == 429
        assert response.json() == {
            "error": "rate limit exceeded",
            "message": "Maximum 5 requests per 60s",
        }
        assert response.headers["X-RateLimit-Limit"] == "5"
        assert response.headers["X-RateLimit-Window"] == "60s"

    def test_is_an_app_error(self):
        exc = RateLimitExceededError()

        assert isinstance(exc, AppError)
        assert exc.code == "rate_limit_exceeded"
        assert str(exc) == "Too many requests"


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_returns_generic_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/boom")
        async def test_endpoint():
            raise RuntimeError("limiter state corrupted")

        response = client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "internal_server_error"
        assert "corrupted" not in response.text

    def test_general_exception_handler_never_leaks_stack_trace(self):
        request = AsyncMock()
        request.url.path = "/test"
        request.method = "GET"

        exc = ValueError("Test error with details")
        response = asyncio.run(general_exception_handler(request, exc))

        response_text = bytes(response.body).decode()
        data = json.loads(response_text)
        assert response.status_code == 500
        assert "Traceback" not in response_text
        assert "ValueError" not in response_text
        assert "request_id" in data["error"]


def test_setup_exception_handlers_registers_handlers(app_with_handlers: FastAPI):
    assert RateLimitExceededError in app_with_handlers.exception_handlers
    assert AppError in app_with_handlers.exception_handlers
    assert Exception in app_with_handlers.exception_handlers
