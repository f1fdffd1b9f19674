from __future__ import annotations

from fastapi.testclient import TestClient


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["uptime_s"] >= 0


def test_config_exposes_limits(client: TestClient) -> None:
    response = client.get("/config")
    assert response.status_code == 200
    body = response.json()
    assert body["max_comment_depth"] == 3
    assert body["comments_require_approval"] is False
    assert body["media_max_bytes"] > 0


def test_security_headers(client: TestClient) -> None:
    response = client.get("/health")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_redis_health_reports_unavailable_when_disabled(client: TestClient) -> None:
    response = client.get("/health/redis")
    assert response.status_code == 503
