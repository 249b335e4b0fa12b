# storefront/repos/order_repo.py
from datetime import datetime
from typing import List, Optional, Tuple
from decimal import Decimal

from sqlalchemy import select, update, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel
from storefront.data.models.order_timeline import OrderTimelineModel
from storefront.domain.errors import OrderNumberConflictError
from storefront.domain.order_status import OrderStatus, PaymentStatus


def _with_details(stmt):
    return stmt.options(
        selectinload(OrderModel.items),
        selectinload(OrderModel.timeline),
        selectinload(OrderModel.discount_code),
    )


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        """Flush only; the caller commits. Duplicate order numbers raise OrderNumberConflictError."""
        self.db.add(order)
        try:
            self.db.flush()
        except IntegrityError as e:
            self.db.rollback()
            if "order_number" in str(e.orig):
                raise OrderNumberConflictError(order.order_number) from e
            raise
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        stmt = _with_details(select(OrderModel).where(OrderModel.id == order_id))
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_number(self, order_number: str) -> OrderModel | None:
        stmt = _with_details(select(OrderModel).where(OrderModel.order_number == order_number))
        return self.db.execute(stmt).scalar_one_or_none()

    def reload(self, order_id: int) -> OrderModel | None:
        #loaded collections are stale after bulk updates and add_timeline
        self.db.expire_all()
        return self.get_order(order_id)

    def list_for_user(self, user_id: int, page: int, limit: int) -> Tuple[List[OrderModel], int]:
        where = OrderModel.user_id == user_id
        total = self.db.execute(select(func.count(OrderModel.id)).where(where)).scalar_one()
        stmt = _with_details(
            select(OrderModel)
            .where(where)
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all()), total

    def search(
        self,
        page: int,
        limit: int,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        search: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Tuple[List[OrderModel], int, Decimal]:
        filters = []
        if status:
            filters.append(OrderModel.status == status)
        if payment_status:
            filters.append(OrderModel.payment_status == payment_status)
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(
                or_(
                    func.lower(OrderModel.order_number).like(pattern),
                    func.lower(OrderModel.email).like(pattern),
                )
            )
        if date_from:
            filters.append(OrderModel.created_at >= date_from)
        if date_to:
            filters.append(OrderModel.created_at <= date_to)

        count, revenue = self.db.execute(
            select(func.count(OrderModel.id), func.coalesce(func.sum(OrderModel.total), 0)).where(*filters)
        ).one()

        stmt = _with_details(
            select(OrderModel)
            .where(*filters)
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all()), count, Decimal(str(revenue))

    # ---- conditional updates (compare-and-set on current state) ----

    def mark_paid(self, order_id: int, payment_method: str) -> int:
        """PENDING/PENDING -> CONFIRMED/PAID. Rowcount 0 means somebody got there first."""
        stmt = (
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.status == OrderStatus.PENDING.value,
                OrderModel.payment_status == PaymentStatus.PENDING.value,
            )
            .values(
                status=OrderStatus.CONFIRMED.value,
                payment_status=PaymentStatus.PAID.value,
                payment_method=payment_method,
            )
        )
        return self.db.execute(stmt).rowcount

    def mark_cancelled(
        self,
        order_id: int,
        expected_status: str,
        expected_payment_status: str,
        payment_status: str,
        cancelled_at: datetime,
    ) -> int:
        stmt = (
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.status == expected_status,
                OrderModel.payment_status == expected_payment_status,
            )
            .values(
                status=OrderStatus.CANCELLED.value,
                payment_status=payment_status,
                cancelled_at=cancelled_at,
            )
        )
        return self.db.execute(stmt).rowcount

    def update_status(self, order_id: int, expected_status: str, values: dict) -> int:
        stmt = (
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status == expected_status)
            .values(**values)
        )
        return self.db.execute(stmt).rowcount

    def add_timeline(self, order_id: int, status: str, note: str | None) -> OrderTimelineModel:
        entry = OrderTimelineModel(order_id=order_id, status=status, note=note)
        self.db.add(entry)
        self.db.flush()
        return entry

    def stale_pending(self, cutoff: datetime) -> List[OrderModel]:
        stmt = (
            select(OrderModel)
            .where(
                OrderModel.status == OrderStatus.PENDING.value,
                OrderModel.payment_status == PaymentStatus.PENDING.value,
                OrderModel.created_at < cutoff,
            )
            .order_by(OrderModel.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
