# storefront/services/order_service.py
import uuid
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel, OrderStatus, PaymentStatus
from storefront.data.models.order_item import OrderItemModel
from storefront.domain.errors import (
    ConcurrencyError,
    EmptyCartError,
    NotFoundError,
    OrderCreationError,
    ValidationError,
)
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.services.cart_service import cart_total, line_price
from storefront.services.notification_service import NotificationService
from storefront.services.token_service import TokenService
from storefront.utils.settings import BASE_CURRENCY
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# platnosci offline, czekaja na reczne potwierdzenie
MANUAL_PAYMENT_METHODS = {"manual_transfer", "bank_transfer"}


def generate_order_number() -> str:
    # bez myslnikow: numer jest osadzany w referencji ORDER-<numer>-<ms>
    return f"ORD{uuid.uuid4().hex[:20].upper()}"


def serialize_order(order: OrderModel) -> Dict[str, Any]:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "user_id": order.user_id,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "payment_reference": order.payment_reference,
        "payment_date": order.payment_date,
        "total_amount": order.total_amount,
        "currency_code": order.currency_code,
        "currency_rate": order.currency_rate,
        "shipping_address": order.shipping_address,
        "shipping_method": order.shipping_method,
        "created_at": order.created_at,
        "items": [
            {
                "id": i.id,
                "product_id": i.product_id,
                "product_name": i.product_name,
                "price": i.price,
                "quantity": i.quantity,
                "size": i.size,
            }
            for i in order.items
        ],
    }


class OrderService:
    """
    Serwis odpowiedzialny za domene zamowien.
    Materializacja koszyka w zamowienie + zapytania o zamowienia.
    """

    def __init__(self, db: Session, notifications: NotificationService | None = None):
        self.db = db
        self.repo = OrderRepo(db)
        self.cart_repo = CartRepo(db)
        self.tokens = TokenService(db)
        self.notifications = notifications or NotificationService()

    def create_order_from_cart(
        self,
        user_id: int,
        shipping_address: str,
        shipping_method: str,
        payment_method: str,
        currency_code: str | None = None,
        currency_rate: Decimal | None = None,
    ) -> Dict[str, Any]:
        """
        Use Case: Tworzenie zamowienia z koszyka, jedna transakcja.

        1. Pobiera koszyk uzytkownika (pusty -> EmptyCartError)
        2. Liczy total z aktualnych cen produktow
        3. Zapisuje zamowienie i pozycje z zamrozona nazwa i cena
        4. Czysci koszyk (z optimistic lockiem na wersji)
        5. Commit; kazdy blad po kroku 1 wycofuje wszystko, lacznie z czyszczeniem koszyka
        """
        missing = [
            name
            for name, value in (
                ("user_id", user_id),
                ("shipping_address", shipping_address),
                ("shipping_method", shipping_method),
                ("payment_method", payment_method),
            )
            if not value
        ]
        if missing:
            raise ValidationError(f"Missing required order fields: {', '.join(missing)}")

        cart = self.cart_repo.get_cart_by_user(user_id)
        if not cart:
            raise EmptyCartError("Cart is empty")

        try:
            items = self.cart_repo.get_cart_items(cart.id)
            if not items:
                raise EmptyCartError("Cart is empty")

            total = cart_total(items)

            currency = (currency_code or BASE_CURRENCY).upper()
            if currency_rate:
                rate = Decimal(str(currency_rate))
            else:
                rate = Decimal("1") if currency == BASE_CURRENCY else None

            order = self.repo.add_order(
                OrderModel(
                    order_number=generate_order_number(),
                    user_id=user_id,
                    total_amount=total,
                    currency_code=currency,
                    currency_rate=rate,
                    status=OrderStatus.PENDING,
                    shipping_address=shipping_address,
                    shipping_method=shipping_method,
                    payment_method=payment_method,
                    payment_status=(
                        PaymentStatus.AWAITING_PAYMENT
                        if payment_method in MANUAL_PAYMENT_METHODS
                        else PaymentStatus.PENDING
                    ),
                )
            )

            for item in items:
                self.repo.add_order_item(
                    OrderItemModel(
                        order_id=order.id,
                        product_id=item.product_id,
                        product_name=item.product.name,
                        price=line_price(item),
                        quantity=item.quantity,
                        size=item.size,
                    )
                )

            self.cart_repo.clear_cart_items(cart.id)

            rowcount = self.cart_repo.update_cart_version(
                cart_id=cart.id,
                old_version=cart.version,
                new_data={"version": cart.version + 1},
            )
            if rowcount == 0:
                raise ConcurrencyError("Cart was modified during checkout, please retry")

            self.repo.commit()

        except (EmptyCartError, ConcurrencyError):
            self.repo.rollback()
            raise
        except Exception as e:
            self.repo.rollback()
            logger.exception(f"Order creation failed for user {user_id}: {e}")
            raise OrderCreationError("Failed to create order") from e

        logger.info(f"Order {order.order_number} created from cart {cart.id}, total {total}")

        created = self.repo.get_order(order.id)
        return serialize_order(created)

    def _owned_order(self, order: OrderModel | None, user_id: int) -> OrderModel:
        if not order:
            raise NotFoundError("Order not found")

        if order.user_id != user_id:
            raise PermissionError("Access to this order is denied")

        return order

    def get_order(self, order_id: int, user_id: int) -> Dict[str, Any]:
        """
        Use Case: Pobranie zamowienia (Query).
        """
        order = self._owned_order(self.repo.get_order(order_id), user_id)
        return serialize_order(order)

    def get_order_by_number(self, order_number: str, user_id: int) -> Dict[str, Any]:
        order = self._owned_order(self.repo.get_order_by_number(order_number), user_id)
        return serialize_order(order)

    def list_user_orders(self, user_id: int) -> list[Dict[str, Any]]:
        return [serialize_order(o) for o in self.repo.list_user_orders(user_id)]

    def update_status(self, order_id: int, status: str) -> Dict[str, Any]:
        if status not in OrderStatus.ALL:
            raise ValidationError(
                f"Invalid status. Must be one of: {', '.join(OrderStatus.ALL)}"
            )

        order = self.repo.update_order_status(order_id, status)
        if not order:
            raise NotFoundError("Order not found")

        self.repo.commit()
        logger.info(f"Order {order_id} status set to {status}")

        return serialize_order(self.repo.get_order(order_id))

    def update_payment_status(
        self,
        order_id: int,
        payment_status: str,
        reference: str | None = None,
    ) -> Dict[str, Any]:
        """
        Reczna zmiana statusu platnosci (np. potwierdzony przelew).
        completed idzie ta sama sciezka co rekoncyliacja: warunkowy UPDATE,
        pending -> processing i token weryfikacyjny, jesli zamowienie go nie ma.
        """
        if payment_status not in PaymentStatus.ALL:
            raise ValidationError(
                f"Invalid payment status. Must be one of: {', '.join(PaymentStatus.ALL)}"
            )

        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found")

        if payment_status != PaymentStatus.COMPLETED:
            self.repo.update_payment_status(order.id, payment_status, reference)
            self.repo.commit()
            logger.info(f"Order {order.order_number} payment status set to {payment_status}")
            return serialize_order(self.repo.get_order(order_id))

        try:
            rowcount = self.repo.mark_paid(order.id, reference or order.payment_reference)
            if rowcount and not self.tokens.get_token_for_order(order.order_number):
                self.tokens.issue_token(order.id, order.order_number, commit=False)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        if rowcount:
            logger.info(f"Order {order.order_number} marked as paid manually")
            try:
                self.notifications.send_payment_confirmation(order.order_number, order.user_id)
            except Exception as e:
                logger.warning(f"Failed to queue payment notification for {order.order_number}: {e}")

        return serialize_order(self.repo.get_order(order_id))
