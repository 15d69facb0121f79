# storefront/repos/payment_repo.py
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront.data.models.unmatched_payment import UnmatchedPaymentModel


class UnmatchedPaymentRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_by_reference(self, reference: str) -> UnmatchedPaymentModel | None:
        return self.db.execute(
            select(UnmatchedPaymentModel).where(UnmatchedPaymentModel.reference == reference)
        ).scalar_one_or_none()

    def add(self, payment: UnmatchedPaymentModel) -> UnmatchedPaymentModel:
        self.db.add(payment)
        self.db.flush()
        return payment

    def list_open(self, limit: int = 100) -> list[UnmatchedPaymentModel]:
        return list(
            self.db.execute(
                select(UnmatchedPaymentModel)
                .where(UnmatchedPaymentModel.resolved_at.is_(None))
                .order_by(UnmatchedPaymentModel.id)
                .limit(limit)
            ).scalars().all()
        )

    def resolve(self, payment: UnmatchedPaymentModel, order_id: int):
        payment.order_id = order_id
        payment.resolved_at = datetime.now(timezone.utc)
        self.db.flush()

    def commit(self):
        self.db.commit()
