from datetime import timedelta

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from orderflow.core.database import get_db
from orderflow.deps import get_access_validator
from orderflow.models.order import Order
from orderflow.routers.admin_orders import router as admin_orders_router
from orderflow.routers.auth import router as auth_router
from orderflow.routers.context import router as context_router
from orderflow.routers.store import router as store_router
from orderflow.services import auth
from orderflow.services.access_validator import AccessValidator
from orderflow.services.actor import actor_registry
from orderflow.services.order_codes import store_now
from orderflow.services.orders import _PersistenceError, order_submission_service
from orderflow.services.retry_policy import RetryPolicy
from tests.fixtures_data import (
    ACCESS_STATUS_ADMIN,
    ACCESS_STATUS_CASHIER,
    CART_20K,
    CART_150K,
    CHECKOUT_CUSTOMER,
    KOPI_TENANT,
    OTHER_TENANT,
)
from tests.helpers import StaticAccessSource, build_session_factory, seed_tenant

SECRET = "test-identity-secret"
TOMORROW = (store_now().date() + timedelta(days=1)).isoformat()


@pytest.fixture
def api(monkeypatch):
    SessionLocal = build_session_factory()
    db = SessionLocal()
    seed_tenant(db, KOPI_TENANT)
    seed_tenant(db, OTHER_TENANT, payment_types=("QRIS",))
    db.close()

    source = StaticAccessSource({"cashier-1": ACCESS_STATUS_CASHIER, "admin-1": ACCESS_STATUS_ADMIN})
    validator = AccessValidator(
        source=source,
        policy=RetryPolicy(max_attempts=1, base_delay_seconds=0, attempt_timeout_seconds=0),
    )
    created = []

    monkeypatch.setattr(auth, "IDENTITY_JWT_SECRET", SECRET)
    monkeypatch.setattr(order_submission_service, "on_created", created.append)
    actor_registry.clear()

    def _get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app = FastAPI()
    app.include_router(context_router)
    app.include_router(store_router)
    app.include_router(admin_orders_router)
    app.include_router(auth_router)
    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_access_validator] = lambda: validator

    yield TestClient(app), SessionLocal, source, created
    actor_registry.clear()


def _bearer(user_id: str) -> dict:
    return {"Authorization": f"Bearer {auth.create_access_token(user_id, secret=SECRET)}"}


def _checkout_body(items=CART_150K, payment_method="COD", **extra) -> dict:
    return {
        "items": items,
        "customer": {**CHECKOUT_CUSTOMER, "pickup_date": TOMORROW},
        "payment_method": payment_method,
        **extra,
    }


def test_checkout_creates_order_with_server_side_pricing(api):
    client, SessionLocal, _, created = api

    response = client.post("/api/store/kopipendekar/orders", json=_checkout_body())

    assert response.status_code == 201
    order = response.json()["order"]
    assert order["subtotal"] == 150_000
    assert order["service_fee"] == 10_000
    assert order["total"] == 160_000
    assert order["status"] == "BELUM_BAYAR"
    assert order["source"] == "checkout"
    assert order["phone"] == "+6281234567890"
    assert order["order_code"].startswith("KP-")
    assert len(order["items"]) == 2
    assert [o.order_code for o in created] == [order["order_code"]]

    db = SessionLocal()
    assert db.query(Order).count() == 1
    db.close()


def test_checkout_below_minimum_is_rejected_with_message(api):
    client, SessionLocal, _, created = api

    response = client.post("/api/store/kopipendekar/orders", json=_checkout_body(items=CART_20K))

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["kind"] == "BELOW_MINIMUM"
    assert "Rp 50.000" in detail["message"]
    assert "Rp 30.000" in detail["message"]
    assert created == []


def test_checkout_rejects_payment_method_of_other_tenant(api):
    client, _, _, _ = api

    response = client.post("/api/store/kopipendekar/orders", json=_checkout_body(payment_method="QRIS"))

    assert response.status_code == 422
    assert response.json()["detail"]["kind"] == "INVALID_PAYMENT"
    assert response.json()["detail"]["reason"] == "unavailable_for_tenant"


def test_checkout_empty_cart(api):
    client, _, _, _ = api

    response = client.post("/api/store/kopipendekar/orders", json=_checkout_body(items=[]))

    assert response.status_code == 422
    assert response.json()["detail"]["kind"] == "EMPTY_CART"


def test_checkout_persistence_failure_returns_503(api, monkeypatch):
    client, SessionLocal, _, created = api

    def _broken_persist(db, order, cart, tenant_id):
        raise _PersistenceError(order_flushed=True)

    monkeypatch.setattr(order_submission_service, "_persist", _broken_persist)
    response = client.post("/api/store/kopipendekar/orders", json=_checkout_body())

    assert response.status_code == 503
    assert response.json()["detail"]["kind"] == "PARTIAL_PERSISTENCE"
    assert created == []
    db = SessionLocal()
    assert db.query(Order).count() == 0
    db.close()


def test_checkout_idempotency_key_replays_first_order(api):
    client, SessionLocal, _, created = api
    body = _checkout_body(idempotency_key="cart-123")

    first = client.post("/api/store/kopipendekar/orders", json=body)
    second = client.post("/api/store/kopipendekar/orders", json=body)

    assert first.status_code == 201
    assert second.status_code == 201
    assert second.json()["replayed"] is True
    assert second.json()["order"]["order_code"] == first.json()["order"]["order_code"]
    assert len(created) == 1


def test_unknown_store_slug_redirects_to_default_landing(api):
    client, _, _, _ = api

    response = client.get("/api/store/toko-hilang/payment-methods", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "/kopipendekar"


def test_pricing_quote_reports_free_delivery_progress(api):
    client, _, _, _ = api

    response = client.post("/api/store/kopipendekar/pricing/quote", json={"items": CART_150K})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 160_000
    assert body["meets_minimum"] is True
    assert body["delivery_fee_text"] == "Ongkir: Rp 10.000"
    assert body["free_delivery_progress_text"] == "Tambah Rp 50.000 lagi untuk gratis ongkir"


def test_payment_methods_are_tenant_scoped(api):
    client, _, _, _ = api

    response = client.get("/api/store/bakso-mas-joko/payment-methods")

    assert response.status_code == 200
    assert response.json()["methods"] == ["QRIS"]


def test_staff_routes_require_session(api):
    client, _, _, _ = api

    response = client.get("/api/admin/orders")

    assert response.status_code == 401
    assert response.json()["detail"]["reason"] == "no_session"


def test_staff_without_membership_is_denied(api):
    client, _, source, _ = api

    response = client.get("/api/admin/orders", headers=_bearer("stranger"))

    assert response.status_code == 403
    assert response.json()["detail"]["reason"] == "insufficient_role"
    assert source.calls == ["stranger"]


def test_staff_denied_when_access_source_unreachable(api):
    client, _, source, _ = api
    source.error = ConnectionError("down")

    response = client.get("/api/admin/orders", headers=_bearer("cashier-1"))

    assert response.status_code == 403
    assert response.json()["detail"]["reason"] == "validation_unreachable"


def test_cashier_order_defaults_and_status_flow(api):
    client, _, _, created = api
    headers = _bearer("cashier-1")

    response = client.post(
        "/api/admin/orders",
        json={"items": CART_150K, "customer": {"name": "", "phone": ""}, "payment_method": "cod"},
        headers=headers,
    )

    assert response.status_code == 201
    order = response.json()["order"]
    assert order["source"] == "cashier"
    assert order["customer_name"] == "Customer"
    assert order["phone"] == "Tidak ada"
    assert order["pickup_date"] == store_now().date().isoformat()
    assert order["payment_method"] == "COD"
    assert len(created) == 1
    code = order["order_code"]

    paid = client.patch(f"/api/admin/orders/{code}/status", json={"status": "SUDAH_BAYAR"}, headers=headers)
    assert paid.status_code == 200
    assert paid.json()["previous_status"] == "BELUM_BAYAR"
    assert paid.json()["allowed_next"] == ["SEDANG_DISIAPKAN", "DIBATALKAN"]

    skipped = client.patch(f"/api/admin/orders/{code}/status", json={"status": "SELESAI"}, headers=headers)
    assert skipped.status_code == 409
    assert skipped.json()["detail"]["kind"] == "INVALID_TRANSITION"

    missing = client.patch("/api/admin/orders/KP-000000-AAAAAA/status", json={"status": "SELESAI"}, headers=headers)
    assert missing.status_code == 404

    listed = client.get("/api/admin/orders", params={"status": "sudah bayar"}, headers=headers)
    assert listed.status_code == 200
    assert [o["order_code"] for o in listed.json()] == [code]


def test_access_endpoint_checks_tenant_admin(api):
    client, _, _, _ = api

    cashier = client.get("/api/admin/access", params={"capability": "tenant_admin"}, headers=_bearer("cashier-1"))
    admin = client.get("/api/admin/access", params={"capability": "tenant_admin"}, headers=_bearer("admin-1"))

    assert cashier.status_code == 403
    assert admin.status_code == 200
    assert admin.json()["tenant_id"] == 1


def test_context_resolves_anonymous_and_staff_scopes(api):
    client, _, _, _ = api

    anonymous = client.get("/api/context", params={"path": "/bakso-mas-joko/checkout"})
    reserved = client.get("/api/context", params={"path": "/admin/orders"})
    staff = client.get("/api/context", params={"path": "/bakso-mas-joko"}, headers=_bearer("cashier-1"))
    missing = client.get("/api/context", params={"path": "/toko-hilang"})

    assert anonymous.json()["tenant"]["slug"] == "bakso-mas-joko"
    assert reserved.json()["scope"] == {"kind": "anonymous", "slug": "kopipendekar", "is_default": True}
    assert staff.json()["scope"]["kind"] == "authenticated"
    assert staff.json()["tenant"]["id"] == 1
    assert missing.json()["redirect_to"] == "/kopipendekar"


def test_session_events_drive_actor_cache(api):
    client, _, source, _ = api
    headers = _bearer("cashier-1")

    assert client.get("/api/admin/orders", headers=headers).status_code == 200
    refreshed = client.post("/auth/session/events", json={"event": "token_refreshed"}, headers=headers)
    signed_out = client.post("/auth/session/events", json={"event": "SIGNED_OUT"}, headers=headers)
    invalid = client.post("/auth/session/events", json={"event": "nope"}, headers=headers)
    anonymous = client.post("/auth/session/events", json={"event": "SIGNED_IN"})

    assert refreshed.json() == {
        "event": "TOKEN_REFRESHED",
        "user_id": "cashier-1",
        "cached": True,
        "access_loaded": False,
    }
    assert signed_out.json()["cached"] is False
    assert invalid.status_code == 422
    assert anonymous.status_code == 401
    assert source.calls == ["cashier-1"]


def test_invalid_token_is_rejected(api):
    client, _, _, _ = api

    response = client.get("/api/admin/orders", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401


def test_status_update_checks_access_once_per_request(api):
    client, _, source, _ = api
    headers = _bearer("cashier-1")
    created = client.post(
        "/api/admin/orders",
        json={"items": CART_150K, "customer": {}, "payment_method": "COD"},
        headers=headers,
    )
    code = created.json()["order"]["order_code"]
    calls_before = len(source.calls)

    response = client.patch(f"/api/admin/orders/{code}/status", json={"status": "DIBATALKAN"}, headers=headers)

    assert response.status_code == 200
    assert len(source.calls) - calls_before == 1


def test_user_facing_errors_are_indonesian(api):
    client, _, _, _ = api
    headers = _bearer("cashier-1")

    anonymous = client.post("/auth/session/events", json={"event": "SIGNED_IN"})
    invalid = client.post("/auth/session/events", json={"event": "nope"}, headers=headers)
    blank_item = client.post(
        "/api/store/kopipendekar/pricing/quote",
        json={"items": [{"item_id": "  ", "name": "Es Teh", "unit_price": 10_000, "qty": 1}]},
    )

    assert anonymous.json()["detail"] == "Sesi tidak ditemukan. Silakan login terlebih dahulu."
    assert invalid.json()["detail"] == "Event sesi tidak dikenal: nope"
    assert blank_item.status_code == 422
    assert "Wajib diisi" in blank_item.json()["detail"][0]["msg"]
