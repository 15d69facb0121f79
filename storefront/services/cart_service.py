from decimal import Decimal
from typing import Dict, Any
from sqlalchemy.orm import Session
from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import ConcurrencyError, NotFoundError
from storefront.repos.cart_repo import CartRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def line_price(item: CartItemModel) -> Decimal:
    return Decimal(item.product.price)


def cart_total(items) -> Decimal:
    return sum((line_price(i) * i.quantity for i in items), Decimal("0.00")).quantize(Decimal("0.01"))


class CartService:
    """
    Prosta implementacja cqrs dla koszyka, jeden koszyk na uzytkownika
    commands (add, update, remove, clear) modyfikuja stan
    query (get_cart) tylko odczyt, tworzy pusty koszyk przy pierwszym odczycie
    """

    def __init__(self, db: Session):
        self.repo = CartRepo(db)

    def _get_or_create(self, user_id: int) -> CartModel:
        cart = self.repo.get_cart_by_user(user_id)
        if cart:
            return cart

        created = self.repo.create_cart(CartModel(user_id=user_id, version=1))
        self.repo.commit()
        logger.info(f"Utworzono nowy koszyk {created.id} dla uzytkownika {user_id}")
        return created

    def _bump_version(self, cart: CartModel):
        # Optimistic locking
        # np w bazie update set version 2 where id 1 and version 1
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={"version": cart.version + 1},
        )

        if rowcount == 0:
            self.repo.rollback()
            raise ConcurrencyError(
                "Cart was modified by another request, please retry"
            )

        self.repo.commit()

    #query - odczyt
    def get_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self._get_or_create(user_id)
        self.repo.db.refresh(cart)
        items = self.repo.get_cart_items(cart.id)

        #dict przeksztalcany w jsona
        return {
            "cart_id": cart.id,
            "user_id": cart.user_id,
            "version": cart.version,
            "items": [
                {
                    "id": i.id,
                    "product_id": i.product_id,
                    "product_name": i.product.name,
                    "size": i.size,
                    "quantity": i.quantity,
                    "price": line_price(i),
                    "line_total": (line_price(i) * i.quantity).quantize(Decimal("0.01")),
                }
                for i in items
            ],
            "total": cart_total(items),
        }

    #commands
    def add_item(
        self,
        user_id: int,
        product_id: int,
        quantity: int,
        size: str | None = None,
    ) -> Dict[str, Any]:

        if quantity <= 0:
            raise ValueError("Quantity must be greater than 0")

        product = self.repo.get_product(product_id)
        if not product:
            raise NotFoundError("Product not found")

        cart = self._get_or_create(user_id)

        # ten sam produkt + rozmiar = ta sama linia
        existing_item = self.repo.find_line(cart.id, product_id, size)

        if existing_item:
            logger.info(
                f"Produkt {product_id} juz jest w koszyku, zwiekszam ilosc "
                f"z {existing_item.quantity} do {existing_item.quantity + quantity}"
            )
            existing_item.quantity += quantity
        else:
            logger.info(f"Dodaje nowy produkt {product_id} do koszyka {cart.id}")
            self.repo.add_cart_item(
                CartItemModel(
                    cart_id=cart.id,
                    product_id=product_id,
                    size=size,
                    quantity=quantity,
                )
            )

        self._bump_version(cart)
        return self.get_cart(user_id)

    def update_item(self, user_id: int, item_id: int, quantity: int) -> Dict[str, Any]:
        cart = self._get_or_create(user_id)
        item = self.repo.get_cart_item(cart.id, item_id)

        if not item:
            raise NotFoundError("Cart item not found")

        if quantity <= 0:
            #ilosc 0 = usuniecie linii
            self.repo.delete_cart_item(cart.id, item_id)
        else:
            item.quantity = quantity

        self._bump_version(cart)
        return self.get_cart(user_id)

    def remove_item(self, user_id: int, item_id: int) -> Dict[str, Any]:
        cart = self._get_or_create(user_id)

        logger.info(f"Usuwanie pozycji {item_id} z koszyka {cart.id}")

        if self.repo.delete_cart_item(cart.id, item_id) == 0:
            self.repo.rollback()
            raise NotFoundError("Cart item not found")

        self._bump_version(cart)
        return self.get_cart(user_id)

    def clear_cart(self, user_id: int) -> Dict[str, Any]:
        cart = self._get_or_create(user_id)
        removed = self.repo.clear_cart_items(cart.id)
        self._bump_version(cart)

        logger.info(f"Koszyk {cart.id} wyczyszczony, usunieto {removed} pozycji")
        return self.get_cart(user_id)
