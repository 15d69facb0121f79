import json

import pytest

from storefront.api.routers import payments as payments_router
from storefront.api.routers import webhooks as webhooks_router
from storefront.services.payment_service import PaymentService
from storefront.services.reconciliation_service import ReconciliationService, compute_signature

SECRET = "sk_test_secret"


@pytest.fixture
def wired(monkeypatch, gateway, rates, notifications):
    monkeypatch.setattr(
        payments_router,
        "get_service",
        lambda db: PaymentService(db, gateway=gateway, rates=rates),
    )

    def reconciler(db):
        return ReconciliationService(db, gateway=gateway, notifications=notifications, secret=SECRET, strict=True)

    monkeypatch.setattr(payments_router, "get_reconciler", reconciler)
    monkeypatch.setattr(webhooks_router, "get_service", reconciler)
    return gateway


@pytest.fixture
def order(client, user, filled_cart):
    return client.post(
        "/orders/",
        json={
            "user_id": user.id,
            "shipping_address": "12 Marina Road, Lagos",
            "shipping_method": "standard",
            "payment_method": "paystack",
        },
    ).json()


def _init(client, order, **extra):
    return client.post("/payments/initialize", json={"order_id": order["id"], "user_id": order["user_id"], **extra})


def _signed_post(client, reference, signature=None):
    body = json.dumps({"event": "charge.success", "data": {"reference": reference, "status": "success"}}).encode()
    headers = {"x-paystack-signature": signature or compute_signature(body, SECRET), "Content-Type": "application/json"}
    return client.post("/webhooks/paystack", content=body, headers=headers)


def test_full_checkout_flow(client, wired, order):
    init = _init(client, order)
    assert init.status_code == 200
    reference = init.json()["reference"]
    assert init.json()["authorization_url"].endswith(reference)

    wired.succeed(reference)
    verified = client.get("/payments/verify", params={"reference": reference}).json()
    assert verified["verified"] is True
    assert verified["matched"] is True
    token = verified["token"]

    fetched = client.get("/payments/token", params={"order_number": order["order_number"], "user_id": order["user_id"]})
    assert fetched.json()["token"] == token

    results = [
        client.post("/payments/verify-token", json={"order_number": order["order_number"], "token": token}).json()
        for _ in range(4)
    ]
    assert [r["valid"] for r in results] == [True, True, True, False]
    assert results[0]["order"]["payment_status"] == "completed"
    assert results[2]["usage"] == {"usage_count": 3, "max_uses": 3, "remaining": 0}


def test_initialize_falls_back_to_ngn(client, wired, order):
    wired.unsupported.add("GHS")

    resp = _init(client, order, currency_code="GHS")

    assert resp.status_code == 200
    assert resp.json()["currency"] == "NGN"
    assert resp.json()["fell_back"] is True


def test_initialize_exchange_failure_is_502(client, wired, order, rates):
    rates.fail = True

    resp = _init(client, order, currency_code="GHS")

    assert resp.status_code == 502
    stored = client.get(f"/orders/{order['id']}", params={"user_id": order["user_id"]}).json()
    assert stored["payment_status"] == "pending"


def test_initialize_foreign_order_is_403(client, wired, order, other_user):
    resp = client.post("/payments/initialize", json={"order_id": order["id"], "user_id": other_user.id})
    assert resp.status_code == 403


def test_token_endpoint_is_owner_only(client, wired, order, other_user):
    resp = client.get("/payments/token", params={"order_number": order["order_number"], "user_id": other_user.id})
    assert resp.status_code == 403

    resp = client.get("/payments/token", params={"order_number": order["order_number"], "user_id": order["user_id"]})
    assert resp.status_code == 404


def test_webhook_then_verify_issues_single_token(client, wired, order):
    reference = _init(client, order).json()["reference"]
    wired.succeed(reference)

    hook = _signed_post(client, reference)
    assert hook.status_code == 200
    assert hook.json()["matched"] is True

    verified = client.get("/payments/verify", params={"reference": reference}).json()
    assert verified["already_completed"] is True
    assert verified["token"]


def test_webhook_with_bad_signature_is_401(client, wired, order):
    reference = _init(client, order).json()["reference"]

    resp = _signed_post(client, reference, signature="bad")

    assert resp.status_code == 401
    stored = client.get(f"/orders/{order['id']}", params={"user_id": order["user_id"]}).json()
    assert stored["payment_status"] == "awaiting_payment"


def test_verify_unmatched_reference(client, wired):
    wired.succeed("T123456789")

    resp = client.get("/payments/verify", params={"reference": "T123456789"})

    assert resp.status_code == 200
    assert resp.json()["verified"] is True
    assert resp.json()["matched"] is False


def test_verify_token_for_wrong_order_hides_usage(client, wired, order):
    reference = _init(client, order).json()["reference"]
    wired.succeed(reference)
    token = client.get("/payments/verify", params={"reference": reference}).json()["token"]

    resp = client.post("/payments/verify-token", json={"order_number": "ORDNOTMINE", "token": token})

    assert resp.status_code == 200
    assert resp.json()["valid"] is False
    assert resp.json()["usage"] is None
