#import wszystkich modeli zeby SQLAlchemy je zarejestrowal w base metadata

from storefront.data.models.user import UserModel
from storefront.data.models.product import ProductModel
from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.order import OrderModel, OrderStatus, PaymentStatus
from storefront.data.models.order_item import OrderItemModel
from storefront.data.models.verification_token import VerificationTokenModel
from storefront.data.models.unmatched_payment import UnmatchedPaymentModel

__all__ = [
    "UserModel",
    "ProductModel",
    "CartModel",
    "CartItemModel",
    "OrderModel",
    "OrderStatus",
    "PaymentStatus",
    "OrderItemModel",
    "VerificationTokenModel",
    "UnmatchedPaymentModel",
]
