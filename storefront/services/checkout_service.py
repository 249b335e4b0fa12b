# storefront/services/checkout_service.py
from datetime import datetime, timezone
from typing import Dict, Any, Callable

from sqlalchemy.orm import Session

from storefront.data.models.address import AddressModel
from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.data.models.order_timeline import OrderTimelineModel
from storefront.domain.errors import EmptyCartError, GatewayError
from storefront.domain.identity import Identity
from storefront.domain.order_number import generate_order_number
from storefront.domain.order_status import OrderStatus, PaymentStatus
from storefront.domain.pricing import price_cart_item, ensure_in_stock, compute_totals
from storefront.domain.schemas import CheckoutIn
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.repos.user_repo import UserRepo
from storefront.services.discount_service import DiscountService
from storefront.services.payment_gateway import StripeGateway
from storefront.utils.settings import CheckoutConfig
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CheckoutService:
    """
    Turns a cart snapshot into a PENDING order plus a hosted payment session.
    Stock is only checked here, never reserved or decremented.
    """

    def __init__(
        self,
        db: Session,
        gateway: StripeGateway,
        config: CheckoutConfig,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.carts = CartRepo(db)
        self.orders = OrderRepo(db)
        self.users = UserRepo(db)
        self.discounts = DiscountService(db, currency=config.currency)
        self.gateway = gateway
        self.config = config
        self.clock = clock

    def checkout(self, identity: Identity, payload: CheckoutIn) -> Dict[str, Any]:
        """
        Use Case: checkout.

        1. price the cart and check stock (advisory)
        2. apply discount, shipping, totals
        3. persist the order in PENDING/PENDING
        4. create the payment session and store its reference
        """
        now = self.clock()

        items = self.carts.list_items(identity)
        if not items:
            raise EmptyCartError()

        lines = [price_cart_item(item) for item in items]
        for line in lines:
            ensure_in_stock(line)

        discount = self.discounts.lookup(payload.discount_code) if payload.discount_code else None
        totals = compute_totals(lines, self.config, discount=discount, now=now)

        address = payload.shipping_address
        address_id = None
        if identity.user_id is not None:
            saved = self.users.add_address(
                AddressModel(
                    user_id=identity.user_id,
                    first_name=address.first_name,
                    last_name=address.last_name,
                    phone=address.phone,
                    street=address.street,
                    city=address.city,
                    state=address.state,
                    postal_code=address.postal_code,
                    country=address.country,
                )
            )
            address_id = saved.id

        order = OrderModel(
            order_number=generate_order_number(self.config.order_number_prefix, now),
            user_id=identity.user_id,
            email=str(payload.email),
            phone=payload.phone,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            subtotal=totals.subtotal,
            shipping_cost=totals.shipping,
            discount_amount=totals.discount,
            total=totals.total,
            currency=self.config.currency,
            notes=payload.notes,
            shipping_address_id=address_id,
            discount_code_id=discount.id if discount else None,
            ship_first_name=address.first_name,
            ship_last_name=address.last_name,
            ship_phone=address.phone,
            ship_street=address.street,
            ship_city=address.city,
            ship_state=address.state,
            ship_postal_code=address.postal_code,
            ship_country=address.country,
            created_at=now,
            items=[
                OrderItemModel(
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    name=line.display_name,
                    variant_name=line.variant_name,
                    sku=line.sku,
                    price=line.unit_price,
                    quantity=line.quantity,
                    total=line.total,
                )
                for line in lines
            ],
            timeline=[
                OrderTimelineModel(
                    status=OrderStatus.PENDING.value,
                    note="Order created, awaiting payment",
                    created_at=now,
                )
            ],
        )

        self.orders.create_order(order)
        self.orders.commit()
        logger.info(
            f"Order {order.order_number} created: subtotal {totals.subtotal}, "
            f"discount {totals.discount}, shipping {totals.shipping}, total {totals.total}"
        )

        try:
            #a zero discount needs no coupon
            coupon_id = self.gateway.get_or_create_coupon(discount) if discount and totals.discount > 0 else None
            session = self.gateway.create_checkout_session(
                lines=lines,
                shipping_cost=totals.shipping,
                email=order.email,
                metadata={"order_id": str(order.id), "order_number": order.order_number},
                success_url=self.config.success_url,
                cancel_url=self.config.cancel_url,
                coupon_id=coupon_id,
            )
        except GatewayError:
            #order stays PENDING without a session, the expiry sweep picks it up
            logger.error(f"Payment session for order {order.order_number} could not be created")
            self.orders.add_timeline(order.id, OrderStatus.PENDING.value, "Payment session could not be created")
            self.orders.commit()
            raise

        order.payment_session_id = session.id
        self.orders.commit()
        logger.info(f"Order {order.order_number} linked to payment session {session.id}")

        return {
            "checkout_url": session.url,
            "session_id": session.id,
            "order_id": order.id,
            "order_number": order.order_number,
        }
