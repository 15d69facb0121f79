# storefront/repos/cart_repo.py
from sqlalchemy import select, update, delete
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.product import ProductModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart_by_user(self, user_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.user_id == user_id)
        ).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        self.db.add(cart)
        self.db.flush()
        return cart

    def get_cart_items(self, cart_id: int) -> list[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.id)
            ).scalars().all()
        )

    def get_cart_item(self, cart_id: int, item_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.id == item_id,
            )
        ).scalar_one_or_none()

    def find_line(self, cart_id: int, product_id: int, size: str | None) -> CartItemModel | None:
        size_clause = CartItemModel.size.is_(None) if size is None else CartItemModel.size == size
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
                size_clause,
            )
        ).scalar_one_or_none()

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def delete_cart_item(self, cart_id: int, item_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.id == item_id,
            )
        )
        return result.rowcount

    def clear_cart_items(self, cart_id: int) -> int:
        result = self.db.execute(
            delete(CartItemModel).where(CartItemModel.cart_id == cart_id)
        )
        return result.rowcount

    def update_cart_version(self, cart_id: int, old_version: int, new_data: dict) -> int:
        # UPDATE carts SET version = :new WHERE id = :id AND version = :old
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
