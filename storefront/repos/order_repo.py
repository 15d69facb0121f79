# storefront/repos/order_repo.py
from datetime import datetime, timezone

from sqlalchemy import select, update, case
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel, OrderStatus, PaymentStatus
from storefront.data.models.order_item import OrderItemModel


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def add_order_item(self, item: OrderItemModel) -> OrderItemModel:
        self.db.add(item)
        return item

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .where(OrderModel.id == order_id)
        ).scalar_one_or_none()

    def get_order_by_number(self, order_number: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .options(selectinload(OrderModel.items))
            .where(OrderModel.order_number == order_number)
        ).scalar_one_or_none()

    def get_order_by_reference(self, reference: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.payment_reference == reference)
        ).scalars().first()

    def list_user_orders(self, user_id: int) -> list[OrderModel]:
        return list(
            self.db.execute(
                select(OrderModel)
                .options(selectinload(OrderModel.items))
                .where(OrderModel.user_id == user_id)
                .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            ).scalars().all()
        )

    def set_awaiting_payment(self, order_id: int, reference: str) -> int:
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id)
            .values(
                payment_status=PaymentStatus.AWAITING_PAYMENT,
                payment_reference=reference,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def update_payment_status(self, order_id: int, payment_status: str, reference: str | None = None) -> int:
        values = {"payment_status": payment_status, "updated_at": datetime.now(timezone.utc)}
        if reference:
            values["payment_reference"] = reference

        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def mark_paid(self, order_id: int, reference: str | None) -> int:
        """
        Warunkowe przejscie na completed. 0 wierszy = ktos juz oznaczyl
        zamowienie jako oplacone (webhook i callback sie scigaja).
        Status pending -> processing, pozniejszych statusow nie cofamy.
        """
        now = datetime.now(timezone.utc)
        result = self.db.execute(
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.payment_status != PaymentStatus.COMPLETED,
            )
            .values(
                payment_status=PaymentStatus.COMPLETED,
                payment_reference=reference,
                payment_date=now,
                status=case(
                    (OrderModel.status == OrderStatus.PENDING, OrderStatus.PROCESSING),
                    else_=OrderModel.status,
                ),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def update_order_status(self, order_id: int, status: str) -> OrderModel | None:
        order = self.get_order(order_id)
        if order:
            order.status = status
            self.db.flush()
        return order

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
