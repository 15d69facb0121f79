from sqlalchemy import Column, Integer, ForeignKey, String
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    size = Column(String(20), nullable=True)

    quantity = Column(Integer, nullable=False)

    cart = relationship("CartModel", back_populates="items")
    product = relationship("ProductModel", lazy="joined")
