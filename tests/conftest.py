import os

# konfiguracja musi byc ustawiona przed importem storefront.*
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["PAYSTACK_SECRET_KEY"] = "sk_test_secret"
os.environ["PAYSTACK_WEBHOOK_STRICT"] = "true"

from decimal import Decimal
from typing import Any, Dict, Generator

import pytest
from fastapi.testclient import TestClient

from storefront.data.database import Base, SessionLocal, engine
from storefront.data.models import CartItemModel, CartModel, ProductModel, UserModel
from storefront.domain.errors import CurrencyNotSupportedError, ExchangeRateError
from storefront.services.paystack_client import PaymentGateway, build_reference


# markery unit/integration wg katalogu testu
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


class FakeGateway(PaymentGateway):
    """Bramka w pamieci: zapisuje wywolania, odpowiedzi verify konfigurowane per referencja."""

    def __init__(self, unsupported=()):
        self.unsupported = set(unsupported)
        self.initialize_calls: list[Dict[str, Any]] = []
        self.verify_calls: list[str] = []
        self.transactions: Dict[str, Dict[str, Any]] = {}
        self.verify_error: Exception | None = None

    def initialize_payment(
        self,
        order_reference,
        amount,
        customer_email,
        customer_name,
        customer_phone,
        callback_url,
        currency,
        exchange_rate,
        metadata=None,
    ):
        self.initialize_calls.append(
            {
                "order_reference": order_reference,
                "amount": amount,
                "currency": currency,
                "exchange_rate": exchange_rate,
                "customer_email": customer_email,
                "metadata": metadata,
            }
        )
        if currency in self.unsupported:
            raise CurrencyNotSupportedError("Currency not supported by merchant", status_code=400)

        reference = build_reference(order_reference)
        return {
            "status": True,
            "reference": reference,
            "authorization_url": f"https://checkout.paystack.test/{reference}",
            "currency": currency,
        }

    def succeed(self, reference: str, amount: int = 2000, currency: str = "USD"):
        self.transactions[reference] = {
            "status": "success",
            "reference": reference,
            "amount": amount,
            "currency": currency,
        }

    def verify_payment(self, reference):
        self.verify_calls.append(reference)
        if self.verify_error:
            raise self.verify_error
        data = self.transactions.get(reference, {"status": "failed", "reference": reference})
        return {"status": True, "data": data}


class FakeRates:
    def __init__(self, rates=None, fail=False):
        self.rates = {code: Decimal(str(v)) for code, v in (rates or {}).items()}
        self.fail = fail
        self.calls: list[str] = []

    def get_rate(self, currency):
        self.calls.append(currency)
        if currency == "USD":
            return Decimal("1")
        if self.fail:
            raise ExchangeRateError("Could not fetch exchange rates")
        if currency not in self.rates:
            raise ExchangeRateError(f"Currency {currency} not found in exchange rates")
        return self.rates[currency]


class FakeNotifications:
    def __init__(self):
        self.sent: list[tuple] = []

    def send_payment_confirmation(self, order_number, user_id):
        self.sent.append((order_number, user_id))


@pytest.fixture(autouse=True)
def _tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user(db) -> UserModel:
    u = UserModel(first_name="Ada", last_name="Obi", email="ada@example.com", phone="+2348011111111")
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def other_user(db) -> UserModel:
    u = UserModel(first_name="Ben", last_name="Eze", email="ben@example.com")
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def products(db) -> Dict[str, ProductModel]:
    shirt = ProductModel(name="Classic T-Shirt", price=Decimal("10.00"))
    scarf = ProductModel(name="Wool Scarf", price=Decimal("19.99"))
    db.add_all([shirt, scarf])
    db.commit()
    return {"shirt": shirt, "scarf": scarf}


@pytest.fixture
def filled_cart(db, user, products) -> CartModel:
    """Koszyk: 2 x T-Shirt po 10.00, rozmiar M."""
    cart = CartModel(user_id=user.id, version=1)
    db.add(cart)
    db.flush()
    db.add(CartItemModel(cart_id=cart.id, product_id=products["shirt"].id, size="M", quantity=2))
    db.commit()
    return cart


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def rates() -> FakeRates:
    return FakeRates({"NGN": "1500", "GHS": "15.5", "EUR": "0.9"})


@pytest.fixture
def notifications() -> FakeNotifications:
    return FakeNotifications()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    from storefront.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_gateway():
    return FakeGateway


@pytest.fixture
def make_rates():
    return FakeRates
