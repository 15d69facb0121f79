# storefront/services/reconciliation_service.py
import hashlib
import hmac
import json
import re
from decimal import Decimal
from typing import Any, Dict, Mapping

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.unmatched_payment import UnmatchedPaymentModel
from storefront.domain.errors import InvalidSignatureError, ValidationError
from storefront.repos.order_repo import OrderRepo
from storefront.repos.payment_repo import UnmatchedPaymentRepo
from storefront.services.notification_service import NotificationService
from storefront.services.paystack_client import PaymentGateway
from storefront.services.token_service import TokenService
from storefront.utils.settings import PAYSTACK_SECRET_KEY, PAYSTACK_WEBHOOK_STRICT
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "x-paystack-signature"
SUCCESS_EVENT = "charge.success"

# referencja z bramki: ORDER-<numer zamowienia>-<ms>
ORDER_NUMBER_PATTERN = re.compile(r"^ORDER-([A-Za-z0-9]+)-")


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


def verify_webhook_signature(
    raw_body: bytes,
    signature: str | None,
    secret: str | None,
    strict: bool = True,
) -> bool:
    """
    True gdy podpis jest poprawny.
    False gdy webhook przyjeto bez podpisu (brak sekretu i strict=False).
    W pozostalych przypadkach InvalidSignatureError.
    """
    if not secret:
        if strict:
            raise InvalidSignatureError("Webhook secret is not configured")
        logger.warning("Webhook secret not configured, accepting unsigned webhook")
        return False

    if not signature:
        raise InvalidSignatureError("Missing webhook signature")

    if not hmac.compare_digest(compute_signature(raw_body, secret), signature):
        raise InvalidSignatureError("Invalid webhook signature")

    return True


def extract_order_number(reference: str) -> str | None:
    match = ORDER_NUMBER_PATTERN.match(reference or "")
    return match.group(1) if match else None


class ReconciliationService:
    """
    Uzgadnia potwierdzenie platnosci z bramki ze stanem zamowienia.
    Dwa wejscia: webhook z bramki oraz weryfikacja po powrocie klienta.
    Oba sa idempotentne, przejscie na completed to jeden warunkowy UPDATE.
    """

    def __init__(
        self,
        db: Session,
        gateway: PaymentGateway,
        notifications: NotificationService | None = None,
        secret: str | None = None,
        strict: bool | None = None,
    ):
        self.repo = OrderRepo(db)
        self.unmatched = UnmatchedPaymentRepo(db)
        self.tokens = TokenService(db)
        self.gateway = gateway
        self.notifications = notifications or NotificationService()
        self.secret = secret if secret is not None else PAYSTACK_SECRET_KEY
        self.strict = PAYSTACK_WEBHOOK_STRICT if strict is None else strict

    def find_order(self, reference: str) -> OrderModel | None:
        order = self.repo.get_order_by_reference(reference)
        if order:
            return order

        #sprawdz czy numer zamowienia jest w referencji
        order_number = extract_order_number(reference)
        if not order_number:
            return None

        order = self.repo.get_order_by_number(order_number)
        if order:
            logger.info(f"Order {order_number} matched by reference pattern {reference}")
        return order

    def _notify(self, order: OrderModel):
        try:
            self.notifications.send_payment_confirmation(order.order_number, order.user_id)
        except Exception as e:
            # platnosc jest juz zapisana, powiadomienie nie cofa transakcji
            logger.warning(f"Failed to queue payment notification for {order.order_number}: {e}")

    def _complete(self, order: OrderModel, reference: str) -> tuple[bool, str | None]:
        """
        Zwraca (czy to wywolanie oznaczylo zamowienie jako oplacone, token).
        Token wydaje tylko zwyciezca warunkowego UPDATE.
        """
        try:
            rowcount = self.repo.mark_paid(order.id, reference)
            if rowcount == 0:
                self.repo.rollback()
                return False, self.tokens.get_token_for_order(order.order_number)

            issued = self.tokens.issue_token(order.id, order.order_number, commit=False)

            pending = self.unmatched.get_by_reference(reference)
            if pending and pending.resolved_at is None:
                self.unmatched.resolve(pending, order.id)

            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Order {order.order_number} marked as paid, reference={reference}")
        self._notify(order)
        return True, issued["token"]

    def _queue_unmatched(self, reference: str, source: str, data: Mapping[str, Any]):
        if self.unmatched.get_by_reference(reference):
            logger.info(f"Unmatched payment {reference} already queued")
            return

        amount = data.get("amount")
        try:
            self.unmatched.add(
                UnmatchedPaymentModel(
                    reference=reference,
                    source=source,
                    amount=(Decimal(str(amount)) / 100) if amount is not None else None,
                    currency=data.get("currency"),
                    payload=json.dumps(dict(data), default=str),
                )
            )
            self.unmatched.commit()
        except IntegrityError:
            # rownolegly webhook i callback, wpis juz istnieje
            self.repo.rollback()
            return

        logger.warning(f"Payment {reference} verified but no order matched, queued for review")

    def reconcile(
        self,
        reference: str,
        source: str,
        confirmed_data: Mapping[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """
        confirmed_data: dane transakcji z podpisanego webhooka.
        None = zapytaj bramke (verify_payment z retry).
        """
        if not reference:
            raise ValidationError("Payment reference is required")

        if confirmed_data is None:
            result = self.gateway.verify_payment(reference)
            data = result["data"]
            confirmed = result["status"] and data.get("status") == "success"
        else:
            data = confirmed_data
            confirmed = data.get("status") == "success"

        if not confirmed:
            logger.info(f"Payment {reference} not successful (status={data.get('status')})")
            return {
                "verified": False,
                "matched": False,
                "reference": reference,
                "order_number": None,
                "token": None,
                "already_completed": False,
                "message": "Payment verification failed",
            }

        order = self.find_order(reference)
        if not order:
            self._queue_unmatched(reference, source, data)
            return {
                "verified": True,
                "matched": False,
                "reference": reference,
                "order_number": None,
                "token": None,
                "already_completed": False,
                "message": "Payment verified but no matching order was found",
            }

        fresh, token = self._complete(order, reference)

        return {
            "verified": True,
            "matched": True,
            "reference": reference,
            "order_number": order.order_number,
            "token": token,
            "already_completed": not fresh,
            "message": "Payment verified" if fresh else "Order already completed",
        }

    def verify_callback(self, reference: str) -> Dict[str, Any]:
        return self.reconcile(reference, source="callback")

    def handle_webhook(self, raw_body: bytes, signature: str | None) -> Dict[str, Any]:
        # podpis sprawdzany przed jakakolwiek zmiana stanu
        signed = verify_webhook_signature(raw_body, signature, self.secret, self.strict)

        try:
            event = json.loads(raw_body or b"{}")
        except ValueError:
            raise ValidationError("Invalid webhook payload")

        if not isinstance(event, dict):
            raise ValidationError("Invalid webhook payload")

        if event.get("event") != SUCCESS_EVENT:
            logger.info(f"Ignoring webhook event {event.get('event')}")
            return {"received": True, "handled": False}

        data = event.get("data") or {}
        reference = data.get("reference")
        if not reference:
            raise ValidationError("Webhook payload has no reference")

        result = self.reconcile(
            reference,
            source="webhook",
            confirmed_data=data if signed else None,
        )
        return {"received": True, "handled": True, **result}

    def retry_unmatched(self, limit: int = 100) -> int:
        """Ponowne dopasowanie zaleglych platnosci, zwraca liczbe rozwiazanych."""
        resolved = 0

        for payment in self.unmatched.list_open(limit):
            order = self.find_order(payment.reference)
            if not order:
                continue

            fresh, _ = self._complete(order, payment.reference)
            if not fresh:
                # zamowienie oplacone innym wejsciem, zamykamy wpis
                self.unmatched.resolve(payment, order.id)
                self.unmatched.commit()

            resolved += 1

        logger.info(f"Unmatched payments resolved: {resolved}")
        return resolved
