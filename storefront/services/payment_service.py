# storefront/services/payment_service.py
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel, PaymentStatus
from storefront.data.models.user import UserModel
from storefront.domain.errors import (
    CurrencyNotSupportedError,
    NotFoundError,
    ValidationError,
)
from storefront.repos.order_repo import OrderRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.exchange_rate_service import ExchangeRateService
from storefront.services.paystack_client import PaymentGateway
from storefront.utils.settings import BASE_CURRENCY, FALLBACK_CURRENCY, PAYMENT_CALLBACK_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

_CENTS = Decimal("0.01")


class PaymentService:
    """
    Inicjalizacja platnosci w bramce (hosted payment page).
    Kwoty zamowien sa w BASE_CURRENCY, przeliczane kursem na walute platnosci.
    Waluta odrzucona przez bramke -> jedna ponowna proba w FALLBACK_CURRENCY.
    """

    def __init__(self, db: Session, gateway: PaymentGateway, rates: ExchangeRateService):
        self.repo = OrderRepo(db)
        self.user_repo = UserRepo(db)
        self.gateway = gateway
        self.rates = rates

    def _rate_for(self, currency: str, supplied: Decimal | None) -> Decimal:
        if currency == BASE_CURRENCY:
            return Decimal("1")
        if supplied and Decimal(str(supplied)) > 0:
            return Decimal(str(supplied))
        return self.rates.get_rate(currency)

    def _start_session(
        self,
        order: OrderModel,
        user: UserModel,
        currency: str,
        rate: Decimal,
        callback_url: str,
        metadata: Dict[str, Any],
    ):
        amount = (Decimal(order.total_amount) * rate).quantize(_CENTS)
        result = self.gateway.initialize_payment(
            order_reference=order.order_number,
            amount=amount,
            customer_email=user.email,
            customer_name=user.full_name,
            customer_phone=user.phone or "",
            callback_url=callback_url,
            currency=currency,
            exchange_rate=rate,
            metadata=metadata,
        )
        return result, amount

    def initialize_payment(
        self,
        order_id: int,
        user_id: int,
        currency_code: str | None = None,
        currency_rate: Decimal | None = None,
        callback_url: str | None = None,
    ) -> Dict[str, Any]:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")

        if order.user_id != user_id:
            raise PermissionError("Access to this order is denied")

        if order.payment_status == PaymentStatus.COMPLETED:
            raise ValidationError("Order is already paid")

        user = self.user_repo.get_user(user_id)
        if not user:
            raise NotFoundError("User not found")

        currency = (currency_code or order.currency_code or BASE_CURRENCY).upper()
        callback = callback_url or PAYMENT_CALLBACK_URL
        metadata = {
            "order_id": order.id,
            "original_currency": BASE_CURRENCY,
            "original_amount": str(order.total_amount),
            "order_items_count": len(order.items),
        }

        if currency_rate is None and currency == order.currency_code and order.currency_rate is not None:
            currency_rate = order.currency_rate
        rate = self._rate_for(currency, currency_rate)
        fell_back = False

        try:
            result, amount = self._start_session(order, user, currency, rate, callback, metadata)
        except CurrencyNotSupportedError:
            if currency == FALLBACK_CURRENCY:
                raise

            logger.info(f"Currency {currency} not supported, falling back to {FALLBACK_CURRENCY}")
            requested = currency
            currency = FALLBACK_CURRENCY
            rate = self.rates.get_rate(FALLBACK_CURRENCY)
            result, amount = self._start_session(
                order,
                user,
                currency,
                rate,
                callback,
                {**metadata, "requested_currency": requested, "fallback_currency": True},
            )
            fell_back = True

        self.repo.set_awaiting_payment(order.id, result["reference"])
        self.repo.commit()

        logger.info(
            f"Payment initialized for order {order.order_number} "
            f"reference={result['reference']} {amount} {currency}"
        )

        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "reference": result["reference"],
            "authorization_url": result["authorization_url"],
            "currency": currency,
            "amount": amount,
            "exchange_rate": rate,
            "original_amount": Decimal(order.total_amount),
            "fell_back": fell_back,
        }
