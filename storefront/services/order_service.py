# storefront/services/order_service.py
import math
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, Optional

from sqlalchemy.orm import Session

from storefront.domain.errors import (
    NotFoundError,
    AuthorizationError,
    InvalidTransitionError,
    GatewayError,
    ConflictError,
)
from storefront.domain.order_status import OrderStatus, PaymentStatus, CANCELLABLE, ensure_transition
from storefront.repos.order_repo import OrderRepo
from storefront.repos.catalog_repo import CatalogRepo
from storefront.services.payment_gateway import StripeGateway
from storefront.services.serializers import order_to_dict
from storefront.utils.settings import CheckoutConfig
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

#refund accepted by the gateway
REFUND_OK_STATUSES = ("succeeded", "pending")


class OrderService:
    """
    Order domain after checkout:
    - queries (single order, tracking, listings)
    - cancellation with refund and restock
    - privileged status transitions
    - expiry of abandoned checkouts
    """

    def __init__(
        self,
        db: Session,
        gateway: StripeGateway | None = None,
        config: CheckoutConfig | None = None,
    ):
        self.repo = OrderRepo(db)
        self.catalog = CatalogRepo(db)
        self.gateway = gateway
        self.config = config or CheckoutConfig()

    # ---------- queries ----------

    def get_order(self, order_id: int, user_id: int | None, is_admin: bool = False) -> Dict[str, Any]:
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found", order_id=order_id)

        if not is_admin and (user_id is None or order.user_id != user_id):
            raise AuthorizationError("Access denied")

        return order_to_dict(order)

    def track_order(self, order_number: str, email: str | None = None) -> Dict[str, Any]:
        order = self.repo.get_by_number(order_number)
        if not order:
            raise NotFoundError("Order not found", order_number=order_number)

        if email and order.email.lower() != email.strip().lower():
            raise AuthorizationError("Email does not match order")

        return order_to_dict(order)

    def list_user_orders(self, user_id: int, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        orders, total = self.repo.list_for_user(user_id, page, limit)
        return {
            "orders": [order_to_dict(o) for o in orders],
            "pagination": _pagination(page, limit, total),
        }

    def list_all_orders(
        self,
        page: int = 1,
        limit: int = 20,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        search: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        orders, total, revenue = self.repo.search(
            page=page,
            limit=limit,
            status=status,
            payment_status=payment_status,
            search=search,
            date_from=date_from,
            date_to=date_to,
        )
        return {
            "orders": [order_to_dict(o) for o in orders],
            "pagination": _pagination(page, limit, total),
            "stats": {"total_orders": total, "total_revenue": revenue},
        }

    # ---------- commands ----------

    def cancel_order(
        self,
        order_id: int,
        user_id: int | None,
        is_admin: bool = False,
        reason: str | None = None,
    ) -> Dict[str, Any]:
        """
        Cancels a PENDING or CONFIRMED order.
        A paid order is refunded first; the cancellation is only persisted
        once the gateway accepted the refund. Stock comes back only for paid
        orders, since stock is decremented at payment time.
        """
        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found", order_id=order_id)

        if not is_admin and (user_id is None or order.user_id != user_id):
            raise AuthorizationError("Access denied")

        if OrderStatus(order.status) not in CANCELLABLE:
            raise InvalidTransitionError(order.status, OrderStatus.CANCELLED.value)

        was_paid = order.payment_status == PaymentStatus.PAID.value
        note = reason or ("Cancelled by admin" if is_admin else "Cancelled by customer")

        if was_paid:
            refund = self._refund(order)
            note = f"{note} (refund {refund.id}: {refund.status})"
        elif self._close_session(order) == "complete":
            raise ConflictError(
                "Payment for this order was just completed, cancel again once it is confirmed",
                order_id=order_id,
            )

        rows = self.repo.mark_cancelled(
            order.id,
            expected_status=order.status,
            expected_payment_status=order.payment_status,
            payment_status=PaymentStatus.REFUNDED.value if was_paid else order.payment_status,
            cancelled_at=datetime.now(timezone.utc),
        )
        if rows == 0:
            self.repo.rollback()
            logger.error(f"Order {order.order_number} changed during cancellation (refunded: {was_paid})")
            raise ConflictError("Order was modified concurrently, please retry", order_id=order_id)

        self.repo.add_timeline(order.id, OrderStatus.CANCELLED.value, note)

        if was_paid:
            for item in order.items:
                self.catalog.increment_stock(item.product_id, item.variant_id, item.quantity)

        self.repo.commit()
        logger.info(f"Order {order.order_number} cancelled ({note})")

        return order_to_dict(self.repo.reload(order.id))

    def update_status(
        self,
        order_id: int,
        status: OrderStatus | str,
        tracking_number: str | None = None,
        note: str | None = None,
    ) -> Dict[str, Any]:
        """Privileged transition along the status table. No inventory effects, except CANCELLED."""
        target = OrderStatus(status)

        if target is OrderStatus.CANCELLED:
            #cancel has side effects (refund, restock), go through the full flow
            return self.cancel_order(order_id, user_id=None, is_admin=True, reason=note)

        order = self.repo.get_order(order_id)
        if not order:
            raise NotFoundError("Order not found", order_id=order_id)

        ensure_transition(order.status, target)

        paid = order.payment_status == PaymentStatus.PAID.value
        if target is OrderStatus.CONFIRMED and not paid:
            #only the payment webhook confirms an unpaid order
            raise InvalidTransitionError(order.status, target.value, payment_status=order.payment_status)

        now = datetime.now(timezone.utc)
        values: Dict[str, Any] = {"status": target.value}
        default_note = f"Status updated to {target.value}"
        if target is OrderStatus.SHIPPED:
            values["shipped_at"] = now
            if tracking_number:
                values["tracking_number"] = tracking_number
        elif target is OrderStatus.DELIVERED:
            values["delivered_at"] = now
        elif target is OrderStatus.REFUNDED and paid:
            refund = self._refund(order)
            values["payment_status"] = PaymentStatus.REFUNDED.value
            default_note = f"Refunded (refund {refund.id}: {refund.status})"

        rows = self.repo.update_status(order.id, expected_status=order.status, values=values)
        if rows == 0:
            self.repo.rollback()
            if "payment_status" in values:
                logger.error(f"Order {order.order_number} changed after refund was issued")
            raise ConflictError("Order was modified concurrently, please retry", order_id=order_id)

        self.repo.add_timeline(order.id, target.value, note or default_note)
        self.repo.commit()

        logger.info(f"Order {order.order_number}: {order.status} -> {target.value}")
        return order_to_dict(self.repo.reload(order.id))

    def expire_order(self, order_id: int, note: str, check_gateway: bool = True) -> bool:
        """
        Cancels an abandoned PENDING/PENDING order. With check_gateway the
        payment session is closed first; a session that already completed is
        left for the webhook.
        """
        order = self.repo.get_order(order_id)
        if not order or order.status != OrderStatus.PENDING.value:
            return False

        if check_gateway and self._close_session(order) == "complete":
            logger.warning(f"Order {order.order_number} session completed, waiting for webhook")
            return False

        rows = self.repo.mark_cancelled(
            order.id,
            expected_status=OrderStatus.PENDING.value,
            expected_payment_status=PaymentStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            cancelled_at=datetime.now(timezone.utc),
        )
        if rows == 0:
            self.repo.rollback()
            return False

        self.repo.add_timeline(order.id, OrderStatus.CANCELLED.value, note)
        self.repo.commit()
        logger.info(f"Order {order.order_number} expired: {note}")
        return True

    def expire_stale_orders(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(seconds=self.config.pending_order_ttl_seconds)

        stale = self.repo.stale_pending(cutoff)
        logger.info(f"Found {len(stale)} stale pending orders (created before {cutoff.isoformat()})")

        expired = 0
        for order in stale:
            try:
                if self.expire_order(order.id, "Checkout session expired"):
                    expired += 1
            except GatewayError as e:
                #retried on the next sweep
                self.repo.rollback()
                logger.warning(f"Failed to expire order {order.order_number}: {e}")
        return expired

    # ---------- helpers ----------

    def _close_session(self, order) -> str | None:
        """Expires an open payment session so it can no longer be paid; returns the session status."""
        if not order.payment_session_id or self.gateway is None:
            return None

        session = self.gateway.retrieve_session(order.payment_session_id)
        if session.status == "open":
            self.gateway.expire_session(order.payment_session_id)
            logger.info(f"Payment session for order {order.order_number} expired")
        return session.status

    def _refund(self, order):
        if self.gateway is None:
            raise GatewayError("Payment gateway not configured")
        if not order.payment_session_id:
            raise GatewayError("Order has no payment reference to refund")

        session = self.gateway.retrieve_session(order.payment_session_id)
        if not session.payment_intent:
            raise GatewayError("Payment session has no payment to refund")

        refund = self.gateway.create_refund(session.payment_intent)
        if refund.status not in REFUND_OK_STATUSES:
            logger.error(f"Refund {refund.id} for order {order.order_number} is {refund.status}")
            raise GatewayError(f"Refund was not accepted (status: {refund.status})")
        return refund


def _pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }
