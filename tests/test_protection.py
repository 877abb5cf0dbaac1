from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from rent_manager.core.metrics import InMemoryRequestMetrics
from rent_manager.core.rate_limiter import InMemoryRateLimiterService
from rent_manager.middleware.client_rate_limit import ClientRateLimitMiddleware


def test_rate_limit_is_isolated_per_client():
    service = InMemoryRateLimiterService(limit=2, window_seconds=60)

    first = service.check(client_key="10.0.0.1", endpoint="/api/auth/login")
    second = service.check(client_key="10.0.0.1", endpoint="/api/auth/login")
    blocked = service.check(client_key="10.0.0.1", endpoint="/api/auth/login")
    other_client = service.check(client_key="10.0.0.2", endpoint="/api/auth/login")

    assert first.allowed is True
    assert second.remaining == 0
    assert blocked.allowed is False
    assert blocked.retry_after_seconds >= 1
    assert other_client.allowed is True


def test_rate_limit_reset_clears_buckets():
    service = InMemoryRateLimiterService(limit=1, window_seconds=60)
    service.check(client_key="10.0.0.1", endpoint="/api/otp/send")

    service.reset()

    assert service.check(client_key="10.0.0.1", endpoint="/api/otp/send").allowed is True


def _limited_app(limit: int) -> FastAPI:
    app = FastAPI()
    app.add_middleware(ClientRateLimitMiddleware, rate_limiter=InMemoryRateLimiterService(limit=limit, window_seconds=60))

    @app.get("/api/ping")
    def ping():
        return {"ok": True}

    @app.get("/health")
    def health():
        return {"ok": True}

    return app


def test_middleware_returns_429_only_when_limit_exceeded():
    with TestClient(_limited_app(1)) as client:
        ok = client.get("/api/ping", headers={"X-Forwarded-For": "203.0.113.5"})
        blocked = client.get("/api/ping", headers={"X-Forwarded-For": "203.0.113.5"})
        other = client.get("/api/ping", headers={"X-Forwarded-For": "203.0.113.6"})

    assert ok.status_code == 200
    assert ok.headers["X-RateLimit-Limit"] == "1"
    assert blocked.status_code == 429
    assert blocked.json() == {"success": False, "message": "Too many requests. Please slow down."}
    assert "Retry-After" in blocked.headers
    assert other.status_code == 200


def test_middleware_ignores_non_api_paths():
    with TestClient(_limited_app(1)) as client:
        responses = [client.get("/health") for _ in range(3)]

    assert all(response.status_code == 200 for response in responses)


def test_metrics_snapshot_per_endpoint():
    metrics = InMemoryRequestMetrics()

    metrics.observe(endpoint="/api/auth/login", method="POST", status_code=200, duration_ms=10)
    metrics.observe(endpoint="/api/auth/login", method="POST", status_code=401, duration_ms=30)
    metrics.observe(endpoint="/api/otp/send", method="POST", status_code=200, duration_ms=20)

    snapshot = metrics.snapshot()

    login = snapshot["POST /api/auth/login"]
    assert login["total_requests"] == 2
    assert login["error_count"] == 1
    assert login["avg_duration_ms"] == 20.0
    assert login["max_duration_ms"] == 30.0
    assert login["status_counts"] == {"200": 1, "401": 1}
    assert snapshot["POST /api/otp/send"]["total_requests"] == 1
