from decimal import Decimal

import pytest
import requests
from tenacity import wait_none

from storefront.domain.errors import (
    CurrencyNotSupportedError,
    GatewayError,
    GatewayUnavailableError,
)
from storefront.services.paystack_client import PaystackGateway, build_reference, to_minor_units


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def _next(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url, **kwargs):
        return self._next("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._next("GET", url, **kwargs)


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch):
    monkeypatch.setattr(PaystackGateway.verify_payment.retry, "wait", wait_none())


def _gateway(*responses):
    session = FakeSession(responses)
    return PaystackGateway(secret_key="sk_test", base_url="https://api.paystack.test", session=session), session


def _initialize(gw, currency="USD"):
    return gw.initialize_payment(
        order_reference="ORDABC",
        amount=Decimal("20.00"),
        customer_email="ada@example.com",
        customer_name="Ada Obi",
        customer_phone="",
        callback_url="http://localhost/cb",
        currency=currency,
        exchange_rate=Decimal("1"),
        metadata={"order_id": 1},
    )


def test_build_reference_embeds_order_number():
    ref = build_reference("ORDABC")
    prefix, number, millis = ref.split("-")

    assert prefix == "ORDER"
    assert number == "ORDABC"
    assert millis.isdigit()


def test_minor_units():
    assert to_minor_units(Decimal("20.00")) == 2000
    assert to_minor_units(Decimal("0.005")) == 1


def test_initialize_sends_minor_units_and_auth_header():
    gw, session = _gateway(
        FakeResponse(200, {"status": True, "data": {"reference": "ORDER-ORDABC-1", "authorization_url": "https://pay"}})
    )

    result = _initialize(gw)

    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == "https://api.paystack.test/transaction/initialize"
    assert kwargs["headers"]["Authorization"] == "Bearer sk_test"
    assert kwargs["json"]["amount"] == 2000
    assert kwargs["json"]["metadata"]["order_number"] == "ORDABC"
    assert kwargs["json"]["metadata"]["customer_phone"] == "N/A"
    assert result["authorization_url"] == "https://pay"
    assert result["reference"] == "ORDER-ORDABC-1"


@pytest.mark.parametrize(
    "body",
    [
        {"status": False, "message": "Currency not supported by merchant"},
        {"status": False, "message": "Invalid currency"},
        {"status": False, "message": "nope", "code": "unsupported_currency"},
    ],
)
def test_initialize_detects_unsupported_currency(body):
    gw, _ = _gateway(FakeResponse(400, body))

    with pytest.raises(CurrencyNotSupportedError):
        _initialize(gw, currency="GHS")


def test_initialize_other_rejection_is_gateway_error():
    gw, _ = _gateway(FakeResponse(401, {"status": False, "message": "Invalid key"}))

    with pytest.raises(GatewayError) as exc:
        _initialize(gw)

    assert not isinstance(exc.value, CurrencyNotSupportedError)
    assert exc.value.status_code == 401


def test_initialize_connection_error_is_unavailable():
    gw, _ = _gateway(requests.ConnectionError("refused"))

    with pytest.raises(GatewayUnavailableError):
        _initialize(gw)


def test_missing_secret_key():
    gw = PaystackGateway(secret_key="", session=FakeSession([]))

    with pytest.raises(GatewayError):
        gw.verify_payment("ref")


def test_verify_retries_transient_failures():
    gw, session = _gateway(
        requests.Timeout("slow"),
        FakeResponse(503, None),
        FakeResponse(200, {"status": True, "data": {"status": "success", "reference": "ref"}}),
    )

    result = gw.verify_payment("ref")

    assert result["data"]["status"] == "success"
    assert len(session.calls) == 3
    assert session.calls[0][1] == "https://api.paystack.test/transaction/verify/ref"


def test_verify_gives_up_after_three_attempts():
    gw, session = _gateway(*[requests.Timeout("slow")] * 3)

    with pytest.raises(GatewayUnavailableError):
        gw.verify_payment("ref")

    assert len(session.calls) == 3


def test_verify_does_not_retry_rejections():
    gw, session = _gateway(FakeResponse(404, {"status": False, "message": "Transaction reference not found"}))

    with pytest.raises(GatewayError):
        gw.verify_payment("ref")

    assert len(session.calls) == 1
