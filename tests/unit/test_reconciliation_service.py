import json

import pytest

from storefront.data.models import OrderModel, UnmatchedPaymentModel, VerificationTokenModel
from storefront.domain.errors import GatewayUnavailableError, InvalidSignatureError
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService
from storefront.services.reconciliation_service import (
    ReconciliationService,
    compute_signature,
    extract_order_number,
    verify_webhook_signature,
)

SECRET = "sk_test_secret"


@pytest.fixture
def order(db, user, filled_cart):
    return OrderService(db).create_order_from_cart(
        user_id=user.id,
        shipping_address="12 Marina Road, Lagos",
        shipping_method="standard",
        payment_method="paystack",
    )


@pytest.fixture
def reference(db, user, order, gateway, rates):
    ref = PaymentService(db, gateway, rates).initialize_payment(order["id"], user.id)["reference"]
    gateway.succeed(ref)
    return ref


@pytest.fixture
def reconciler(db, gateway, notifications):
    return ReconciliationService(db, gateway, notifications=notifications, secret=SECRET, strict=True)


def _stored(db, order_id) -> OrderModel:
    db.expire_all()
    return db.get(OrderModel, order_id)


def _tokens(db):
    return db.query(VerificationTokenModel).all()


def _webhook_body(reference, event="charge.success", status="success") -> bytes:
    return json.dumps(
        {"event": event, "data": {"reference": reference, "status": status, "amount": 2000, "currency": "USD"}}
    ).encode()


def test_extract_order_number():
    assert extract_order_number("ORDER-ORDABC123-1700000000000") == "ORDABC123"
    assert extract_order_number("T1234567") is None
    assert extract_order_number("") is None


def test_signature_roundtrip_and_rejection():
    body = b'{"event":"charge.success"}'
    assert verify_webhook_signature(body, compute_signature(body, SECRET), SECRET) is True

    with pytest.raises(InvalidSignatureError):
        verify_webhook_signature(body, "deadbeef", SECRET)
    with pytest.raises(InvalidSignatureError):
        verify_webhook_signature(body, None, SECRET)


def test_missing_secret_depends_on_strict_mode():
    with pytest.raises(InvalidSignatureError):
        verify_webhook_signature(b"{}", None, "", strict=True)

    assert verify_webhook_signature(b"{}", None, "", strict=False) is False


def test_callback_marks_order_paid_and_issues_token(db, order, reference, reconciler, notifications):
    result = reconciler.verify_callback(reference)

    assert result["verified"] is True
    assert result["matched"] is True
    assert result["already_completed"] is False
    assert result["order_number"] == order["order_number"]
    assert len(result["token"]) == 64

    stored = _stored(db, order["id"])
    assert stored.payment_status == "completed"
    assert stored.status == "processing"
    assert stored.payment_date is not None
    assert notifications.sent == [(order["order_number"], order["user_id"])]


def test_second_reconcile_is_noop(db, order, reference, reconciler, notifications):
    first = reconciler.verify_callback(reference)
    second = reconciler.verify_callback(reference)

    assert second["verified"] is True
    assert second["already_completed"] is True
    assert second["token"] == first["token"]
    assert len(_tokens(db)) == 1
    assert len(notifications.sent) == 1


def test_webhook_after_callback_does_not_regress_status(db, order, reference, reconciler):
    reconciler.verify_callback(reference)
    OrderService(db).update_status(order["id"], "shipped")

    body = _webhook_body(reference)
    result = reconciler.handle_webhook(body, compute_signature(body, SECRET))

    assert result["handled"] is True
    assert result["already_completed"] is True
    stored = _stored(db, order["id"])
    assert stored.status == "shipped"
    assert len(_tokens(db)) == 1


def test_signed_webhook_trusts_payload(db, order, reference, reconciler, gateway):
    body = _webhook_body(reference)
    result = reconciler.handle_webhook(body, compute_signature(body, SECRET))

    assert result["matched"] is True
    assert gateway.verify_calls == []
    assert _stored(db, order["id"]).payment_status == "completed"


def test_unsigned_webhook_in_lenient_mode_asks_gateway(db, order, reference, gateway, notifications):
    reconciler = ReconciliationService(db, gateway, notifications=notifications, secret="", strict=False)

    result = reconciler.handle_webhook(_webhook_body(reference), None)

    assert result["matched"] is True
    assert gateway.verify_calls == [reference]


def test_invalid_signature_changes_nothing(db, order, reference, reconciler):
    with pytest.raises(InvalidSignatureError):
        reconciler.handle_webhook(_webhook_body(reference), "0" * 128)

    stored = _stored(db, order["id"])
    assert stored.payment_status == "awaiting_payment"
    assert _tokens(db) == []


def test_other_events_are_ignored(db, order, reference, reconciler):
    body = _webhook_body(reference, event="transfer.success")
    result = reconciler.handle_webhook(body, compute_signature(body, SECRET))

    assert result == {"received": True, "handled": False}
    assert _stored(db, order["id"]).payment_status == "awaiting_payment"


def test_match_by_embedded_order_number(db, order, gateway, reconciler):
    # referencja nieznana w bazie, ale zawiera numer zamowienia
    ref = f"ORDER-{order['order_number']}-1700000000000"
    gateway.succeed(ref)

    result = reconciler.verify_callback(ref)

    assert result["matched"] is True
    stored = _stored(db, order["id"])
    assert stored.payment_status == "completed"
    assert stored.payment_reference == ref


def test_failed_payment_leaves_order_unchanged(db, order, reference, gateway, reconciler):
    gateway.transactions[reference]["status"] = "abandoned"

    result = reconciler.verify_callback(reference)

    assert result["verified"] is False
    assert _stored(db, order["id"]).payment_status == "awaiting_payment"
    assert _tokens(db) == []


def test_gateway_outage_propagates(db, order, reference, gateway, reconciler):
    gateway.verify_error = GatewayUnavailableError("Paystack unreachable")

    with pytest.raises(GatewayUnavailableError):
        reconciler.verify_callback(reference)

    assert _stored(db, order["id"]).payment_status == "awaiting_payment"


def test_unmatched_payment_is_queued_once(db, gateway, reconciler):
    gateway.succeed("T999000111", amount=150000, currency="NGN")

    first = reconciler.verify_callback("T999000111")
    second = reconciler.verify_callback("T999000111")

    assert first["verified"] is True
    assert first["matched"] is False
    assert second["matched"] is False

    queued = db.query(UnmatchedPaymentModel).all()
    assert len(queued) == 1
    assert queued[0].source == "callback"
    assert queued[0].currency == "NGN"
    assert float(queued[0].amount) == 1500.0


def test_retry_unmatched_resolves_once_order_is_known(db, order, gateway, reconciler):
    ref = "ORDER-ORDLATE0001-1700000000000"
    gateway.succeed(ref)
    reconciler.verify_callback(ref)

    assert reconciler.retry_unmatched() == 0

    stored = _stored(db, order["id"])
    stored.order_number = "ORDLATE0001"
    db.commit()

    assert reconciler.retry_unmatched() == 1

    stored = _stored(db, order["id"])
    assert stored.payment_status == "completed"
    assert len(_tokens(db)) == 1
    pending = db.query(UnmatchedPaymentModel).one()
    assert pending.resolved_at is not None
    assert pending.order_id == order["id"]
    assert reconciler.retry_unmatched() == 0
