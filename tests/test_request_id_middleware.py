from __future__ import annotations

from fastapi.testclient import TestClient

from ratelimit_api.main import app


client = TestClient(app)


def test_preserves_incoming_request_id_header():
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing():
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert isinstance(generated, str)

    duration = resp.headers.get("X-Request-Duration-ms")
    assert duration is not None


def test_rate_limited_route_echoes_request_id():
    resp = client.get("/foo", headers={"X-Request-ID": "req-429", "Authorization": "Bearer client-1"})

    assert resp.status_code in (200, 429)
    assert resp.headers.get("X-Request-ID") == "req-429"
