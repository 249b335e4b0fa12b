# storefront/services/webhook_service.py
from typing import Dict, Any

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.identity import Identity
from storefront.domain.order_status import OrderStatus, PaymentStatus
from storefront.repos.cart_repo import CartRepo
from storefront.repos.catalog_repo import CatalogRepo
from storefront.repos.discount_repo import DiscountRepo
from storefront.repos.order_repo import OrderRepo
from storefront.services.notification_service import NotificationService
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import StripeGateway
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

SESSION_COMPLETED = "checkout.session.completed"
SESSION_ASYNC_SUCCEEDED = "checkout.session.async_payment_succeeded"
SESSION_ASYNC_FAILED = "checkout.session.async_payment_failed"
SESSION_EXPIRED = "checkout.session.expired"
PAYMENT_FAILED = "payment_intent.payment_failed"


class PaymentWebhookReconciler:
    """
    Translates verified gateway events into order state.

    Idempotent: confirmation is a conditional update on PENDING/PENDING, so
    a redelivered event finds nothing to update and causes no stock or
    discount effects.
    """

    def __init__(
        self,
        db: Session,
        gateway: StripeGateway,
        notifications: NotificationService | None = None,
    ):
        self.db = db
        self.orders = OrderRepo(db)
        self.catalog = CatalogRepo(db)
        self.discounts = DiscountRepo(db)
        self.carts = CartRepo(db)
        self.gateway = gateway
        self.notifications = notifications or NotificationService()

    def handle(self, payload: bytes, signature: str | None) -> Dict[str, Any]:
        #raises SignatureVerificationError before anything is touched
        event = self.gateway.parse_event(payload, signature)
        event_type = event["type"]
        obj = (event.get("data") or {}).get("object") or {}

        logger.info(f"Webhook {event.get('id')} received: {event_type}")

        if event_type in (SESSION_COMPLETED, SESSION_ASYNC_SUCCEEDED):
            self._on_session_completed(obj)
        elif event_type in (PAYMENT_FAILED, SESSION_ASYNC_FAILED):
            self._on_payment_failed(obj)
        elif event_type == SESSION_EXPIRED:
            self._on_session_expired(obj)
        else:
            logger.info(f"Unhandled webhook event type: {event_type}")

        return {"received": True}

    # ---------- handlers ----------

    def _on_session_completed(self, session: dict):
        order_id = self._order_id(session)
        if order_id is None:
            logger.warning(f"Completed session {session.get('id')} carries no order_id, ignoring")
            return

        if session.get("payment_status") == "unpaid":
            #delayed payment methods confirm via async_payment_succeeded
            logger.info(f"Session {session.get('id')} completed but payment still pending")
            return

        order = self.orders.get_order(order_id)
        if not order:
            logger.warning(f"Webhook for unknown order {order_id}")
            return

        rows = self.orders.mark_paid(order.id, payment_method=self.gateway.provider)
        if rows == 0:
            self._on_already_settled(order)
            return

        self.orders.add_timeline(order.id, OrderStatus.CONFIRMED.value, "Payment received via Stripe")

        self._decrement_stock(order)

        if order.discount_code_id is not None:
            self.discounts.increment_usage(order.discount_code_id)

        if order.user_id is not None:
            cleared = self.carts.clear(Identity(user_id=order.user_id))
            logger.info(f"Cleared {cleared} cart items of user {order.user_id}")

        self.orders.commit()
        logger.info(f"Order {order.order_number} confirmed and paid")

        confirmed = self.orders.reload(order.id)
        self.notifications.send_order_confirmation(confirmed)

    def _on_already_settled(self, order: OrderModel):
        self.db.refresh(order)
        if order.payment_status == PaymentStatus.PAID.value:
            logger.info(f"Order {order.order_number} already paid, duplicate delivery ignored")
            return

        logger.error(
            f"Payment completed for order {order.order_number} in state "
            f"{order.status}/{order.payment_status}, manual refund needed"
        )
        self.orders.add_timeline(
            order.id,
            order.status,
            "Payment received for an order that is no longer pending, manual review required",
        )
        self.orders.commit()

    def _on_payment_failed(self, obj: dict):
        order_id = self._order_id(obj)
        if order_id is None:
            logger.warning(f"Payment failed for {obj.get('id')} (no order reference)")
            return

        order = self.orders.get_order(order_id)
        if not order:
            logger.warning(f"Payment failed for unknown order {order_id}")
            return

        logger.warning(f"Payment failed for order {order.order_number}")
        self.orders.add_timeline(order.id, order.status, "Payment failed")
        self.orders.commit()

    def _on_session_expired(self, session: dict):
        order_id = self._order_id(session)
        if order_id is None:
            return
        OrderService(self.db, gateway=self.gateway).expire_order(
            order_id, "Checkout session expired", check_gateway=False
        )

    # ---------- helpers ----------

    def _decrement_stock(self, order: OrderModel):
        for item in order.items:
            if item.product_id is None:
                logger.warning(f"Order {order.order_number}: item {item.name} no longer in catalog")
                continue

            product = self.catalog.get_product(item.product_id)
            allow_backorder = bool(product and product.allow_backorder)

            rows = self.catalog.decrement_stock(
                item.product_id, item.variant_id, item.quantity, allow_backorder
            )
            if rows == 0:
                logger.error(
                    f"Order {order.order_number}: not enough stock for {item.name} "
                    f"(ordered {item.quantity}), manual reconciliation required"
                )
                self.orders.add_timeline(
                    order.id,
                    OrderStatus.CONFIRMED.value,
                    f"Insufficient stock for {item.name} x{item.quantity}, manual reconciliation required",
                )

    @staticmethod
    def _order_id(obj: dict) -> int | None:
        metadata = obj.get("metadata") or {}
        raw = metadata.get("order_id")
        try:
            return int(raw) if raw is not None else None
        except (TypeError, ValueError):
            logger.warning(f"Invalid order_id in webhook metadata: {raw!r}")
            return None
