from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Text
from sqlalchemy.orm import relationship

from storefront.data.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class OrderStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    ALL = (PENDING, PROCESSING, SHIPPED, DELIVERED, COMPLETED, CANCELLED)


class PaymentStatus:
    PENDING = "pending"
    AWAITING_PAYMENT = "awaiting_payment"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"

    ALL = (PENDING, AWAITING_PAYMENT, COMPLETED, FAILED, REFUNDED)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(50), nullable=False, unique=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    total_amount = Column(Numeric(10, 2), nullable=False)
    currency_code = Column(String(10), nullable=False, default="USD")
    # NULL = kurs nie podany, pobierany przy inicjalizacji platnosci
    currency_rate = Column(Numeric(12, 6), nullable=True)

    status = Column(String(50), nullable=False, default=OrderStatus.PENDING)
    shipping_address = Column(Text, nullable=False)
    shipping_method = Column(String(100), nullable=False)

    payment_method = Column(String(100), nullable=False)
    payment_status = Column(String(50), nullable=False, default=PaymentStatus.PENDING)
    payment_reference = Column(String(255), nullable=True, index=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )
