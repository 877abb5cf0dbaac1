from fastapi.testclient import TestClient


REQUIRED_ROUTES = {
    "/api/auth/login",
    "/api/auth/logout",
    "/api/auth/me",
    "/api/auth/activity",
    "/api/auth/reset_password",
    "/api/otp/send",
    "/api/reactivation/submit",
    "/api/reactivation/review",
    "/api/reactivation/requests",
    "/api/reactivation/requests/{request_id}",
    "/api/reactivation/stats",
    "/api/admin/accounts/{unique_id}/unlock",
    "/api/admin/accounts/{unique_id}/lock",
    "/api/admin/audit",
    "/internal/metrics",
}


def test_api_startup_and_router_registration(monkeypatch):
    from rent_manager import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        response = client.get("/")
        health = client.get("/health")
        docs_response = client.get("/docs")
        openapi_response = client.get("/openapi.json")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert health.json() == {"status": "healthy"}
    assert docs_response.status_code == 200
    assert openapi_response.status_code == 200

    paths = {route.path for route in main.app.routes}
    assert REQUIRED_ROUTES.issubset(paths)
