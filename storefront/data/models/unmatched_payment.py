from datetime import datetime, timezone

from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Text

from storefront.data.database import Base


class UnmatchedPaymentModel(Base):
    """Platnosc potwierdzona przez bramke, ale bez dopasowanego zamowienia."""

    __tablename__ = "unmatched_payments"

    id = Column(Integer, primary_key=True)
    reference = Column(String(255), nullable=False, unique=True)
    source = Column(String(20), nullable=False)  # webhook | callback

    amount = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(10), nullable=True)
    payload = Column(Text, nullable=True)

    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    resolved_at = Column(DateTime(timezone=True), nullable=True)
