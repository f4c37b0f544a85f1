from __future__ import annotations

from fastapi.testclient import TestClient

from app.core.app_factory import create_app
from app.core.config import LogSettings, Settings
from app.main import app


client = TestClient(app)


def test_preserves_incoming_request_id_header():
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing():
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_uses_header_name_from_app_settings():
    custom = create_app(Settings(log=LogSettings(request_id_header="X-Correlation-ID")))
    custom_client = TestClient(custom)

    resp = custom_client.get("/health", headers={"X-Correlation-ID": "corr-42"})

    assert resp.status_code == 200
    assert resp.headers.get("X-Correlation-ID") == "corr-42"
    assert resp.headers.get("X-Request-ID") is None
