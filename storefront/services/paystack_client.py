# storefront/services/paystack_client.py
import time
from abc import ABC, abstractmethod
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional, TypedDict

import requests
from requests import RequestException

from storefront.domain.errors import (
    GatewayError,
    GatewayUnavailableError,
    CurrencyNotSupportedError,
)
from storefront.utils.retry import gateway_retry
from storefront.utils.settings import (
    PAYSTACK_BASE_URL,
    PAYSTACK_SECRET_KEY,
    PAYSTACK_TIMEOUT_SECONDS,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

_CURRENCY_ERROR_MARKERS = (
    "currency not supported",
    "currency is not supported",
    "invalid currency",
)


class InitializeResult(TypedDict):
    status: bool
    reference: str
    authorization_url: str
    currency: str


class VerifyResult(TypedDict):
    status: bool
    data: Dict[str, Any]


def build_reference(order_number: str) -> str:
    # ORDER-<numer zamowienia>-<ms>, numer da sie potem wyciagnac z referencji
    return f"ORDER-{order_number}-{int(time.time() * 1000)}"


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGateway(ABC):
    """Interfejs bramki platnosci (hosted payment page)."""

    @abstractmethod
    def initialize_payment(
        self,
        order_reference: str,
        amount: Decimal,
        customer_email: str,
        customer_name: str,
        customer_phone: str,
        callback_url: str,
        currency: str,
        exchange_rate: Decimal,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> InitializeResult: ...

    @abstractmethod
    def verify_payment(self, reference: str) -> VerifyResult: ...


class PaystackGateway(PaymentGateway):
    def __init__(
        self,
        secret_key: str | None = None,
        base_url: str | None = None,
        timeout: int | None = None,
        session: requests.Session | None = None,
    ):
        self.secret_key = secret_key if secret_key is not None else PAYSTACK_SECRET_KEY
        self.base_url = (base_url or PAYSTACK_BASE_URL).rstrip("/")
        self.timeout = timeout or PAYSTACK_TIMEOUT_SECONDS
        self.http = session or requests.Session()

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    def _require_key(self):
        if not self.secret_key:
            raise GatewayError("Paystack secret key is not configured")

    @staticmethod
    def _error_from_response(resp: requests.Response) -> GatewayError:
        try:
            body = resp.json()
        except ValueError:
            body = {}

        message = body.get("message") or f"Paystack returned HTTP {resp.status_code}"
        code = body.get("code")

        if resp.status_code >= 500:
            return GatewayUnavailableError(message, code=code, status_code=resp.status_code)

        lowered = message.lower()
        if code == "unsupported_currency" or any(m in lowered for m in _CURRENCY_ERROR_MARKERS):
            return CurrencyNotSupportedError(message, code=code, status_code=resp.status_code)

        return GatewayError(message, code=code, status_code=resp.status_code)

    def initialize_payment(
        self,
        order_reference: str,
        amount: Decimal,
        customer_email: str,
        customer_name: str,
        customer_phone: str,
        callback_url: str,
        currency: str,
        exchange_rate: Decimal,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> InitializeResult:
        self._require_key()

        reference = build_reference(order_reference)
        payload = {
            "email": customer_email,
            "amount": to_minor_units(amount),
            "currency": currency,
            "reference": reference,
            "callback_url": callback_url,
            "metadata": {
                "order_number": order_reference,
                "customer_name": customer_name,
                "customer_phone": customer_phone or "N/A",
                "exchange_rate": str(exchange_rate),
                "custom_fields": [
                    {
                        "display_name": "Order Number",
                        "variable_name": "order_number",
                        "value": order_reference,
                    },
                ],
                **(metadata or {}),
            },
        }

        url = f"{self.base_url}/transaction/initialize"
        logger.info(f"Paystack POST {url} reference={reference} currency={currency} amount={payload['amount']}")

        try:
            resp = self.http.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
        except RequestException as e:
            raise GatewayUnavailableError(f"Paystack unreachable: {e}") from e

        if resp.status_code >= 400:
            raise self._error_from_response(resp)

        body = resp.json()
        if not body.get("status"):
            raise GatewayError(body.get("message") or "Failed to initialize payment")

        data = body.get("data") or {}
        return {
            "status": True,
            "reference": data.get("reference") or reference,
            "authorization_url": data["authorization_url"],
            "currency": currency,
        }

    @gateway_retry()
    def verify_payment(self, reference: str) -> VerifyResult:
        self._require_key()

        url = f"{self.base_url}/transaction/verify/{requests.utils.quote(reference, safe='')}"
        logger.info(f"Paystack GET {url}")

        try:
            resp = self.http.get(url, headers=self._headers(), timeout=self.timeout)
        except RequestException as e:
            logger.warning(f"Paystack verify attempt failed for {reference}: {e}")
            raise GatewayUnavailableError(f"Paystack unreachable: {e}") from e

        if resp.status_code >= 400:
            error = self._error_from_response(resp)
            if isinstance(error, GatewayUnavailableError):
                logger.warning(f"Paystack verify attempt failed for {reference}: {error}")
            raise error

        body = resp.json()
        return {
            "status": bool(body.get("status")),
            "data": body.get("data") or {},
        }
