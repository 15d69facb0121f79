from sqlalchemy import Column, Integer, ForeignKey, String, Numeric
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class OrderItemModel(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    # bez FK: pozycja zamowienia przezywa usuniecie produktu z katalogu
    product_id = Column(Integer, nullable=True)

    # nazwa i cena zamrozone w chwili zamowienia
    product_name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    size = Column(String(20), nullable=True)

    order = relationship("OrderModel", back_populates="items")
