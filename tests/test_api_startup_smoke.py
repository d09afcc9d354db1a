from fastapi.testclient import TestClient


REQUIRED_ROUTES = {
    "/api/context",
    "/api/store/{slug}/payment-methods",
    "/api/store/{slug}/pricing/quote",
    "/api/store/{slug}/orders",
    "/api/store/{slug}/orders/{order_code}",
    "/api/admin/orders",
    "/api/admin/orders/{order_code}/status",
    "/api/admin/access",
    "/auth/session/events",
}


def test_api_startup_and_router_registration(monkeypatch):
    from orderflow import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        response = client.get("/")
        health_response = client.get("/health")
        docs_response = client.get("/docs")
        openapi_response = client.get("/openapi.json")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert health_response.json() == {"status": "healthy"}
    assert response.headers.get("X-Request-ID")
    assert docs_response.status_code == 200
    assert openapi_response.status_code == 200

    paths = set(openapi_response.json()["paths"])
    assert REQUIRED_ROUTES.issubset(paths)
