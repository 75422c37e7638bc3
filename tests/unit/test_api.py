"""
Unit Tests - HTTP API
"""
import pytest
from fastapi.testclient import TestClient

from predictiq.serving.api.main import app
from predictiq.serving.api.middleware import RateLimitMiddleware


@pytest.fixture(scope="module")
def client() -> TestClient:
    return TestClient(app)


class TestHealthEndpoints:
    """Tests for health and info endpoints"""

    def test_health(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["checks"]["pipeline"]["status"] == "healthy"

    def test_liveness(self, client):
        assert client.get("/api/v1/health/live").json() == {"status": "alive"}

    def test_readiness(self, client):
        response = client.get("/api/v1/health/ready")

        assert response.status_code == 200
        assert response.json() == {"status": "ready"}

    def test_info(self, client):
        body = client.get("/api/v1/info").json()

        assert body["name"] == "PredictIQ Analytics API"

    def test_security_headers(self, client):
        response = client.get("/api/v1/health/live")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "X-Request-ID" in response.headers
        assert "X-RateLimit-Limit" in response.headers


class TestProcessEndpoint:
    """Tests for POST /api/v1/analytics/process"""

    def test_process_full(self, client, raw_rows):
        response = client.post(
            "/api/v1/analytics/process",
            json={"records": raw_rows, "mode": "full", "config": {"evaluationDate": "2025-01-31"}},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["type"] == "full"
        assert body["processed"] is True
        results = body["results"]
        assert results["salesAnalysis"]["overallMetrics"]["transactionCount"] == len(raw_rows)
        assert len(results["predictions"]["forecast"]) == 30
        assert results["errors"] == {}

    def test_partial_result_is_success(self, client, raw_rows):
        response = client.post(
            "/api/v1/analytics/process",
            json={"records": raw_rows[:2], "mode": "sales"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["processed"] is True
        assert body["results"]["errors"]["sales"]["kind"] == "insufficient_data"

    def test_unsupported_mode(self, client, raw_rows):
        response = client.post(
            "/api/v1/analytics/process",
            json={"records": raw_rows, "mode": "marketing"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["processed"] is False
        assert body["error"] == "unsupported_data_type"

    def test_no_records(self, client):
        response = client.post("/api/v1/analytics/process", json={"records": []})

        assert response.status_code == 422
        assert response.json()["error"] == "insufficient_data"

    def test_invalid_config(self, client, raw_rows):
        response = client.post(
            "/api/v1/analytics/process",
            json={"records": raw_rows, "config": {"smoothingAlpha": 5}},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "configuration_error"
        assert "smoothingAlpha" in body["message"]

    def test_too_many_rejected_rows(self, client):
        response = client.post(
            "/api/v1/analytics/process",
            json={"records": [{"Date": "bad"}, {"Date": "worse"}]},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "invalid_data_format"

    def test_list_modes(self, client):
        modes = {m["mode"]: m["modules"] for m in client.get("/api/v1/analytics/modes").json()}

        assert modes["inventory"] == ["inventory", "pricing"]
        assert set(modes) == {"full", "sales", "customer", "inventory"}


class TestRateLimiter:

    def test_limits_within_window(self):
        limiter = RateLimitMiddleware(app=None, max_requests=2, window_seconds=60)

        assert limiter._admit("a", 0.0) == 1
        assert limiter._admit("a", 1.0) == 0
        assert limiter._admit("a", 2.0) is None
        assert limiter._admit("a", 60.5) == 0

    def test_idle_clients_evicted(self):
        limiter = RateLimitMiddleware(app=None, max_requests=5, window_seconds=60)
        limiter._admit("a", 0.0)
        limiter._admit("b", 0.0)

        limiter._admit("c", 61.0)

        assert set(limiter._requests) == {"c"}

    def test_active_clients_kept(self):
        limiter = RateLimitMiddleware(app=None, max_requests=5, window_seconds=60)
        limiter._admit("a", 0.0)
        limiter._admit("b", 30.0)

        limiter._admit("c", 61.0)

        assert set(limiter._requests) == {"b", "c"}
