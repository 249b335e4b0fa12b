# storefront/domain/order_status.py
from enum import Enum
from typing import Dict, FrozenSet

from storefront.domain.errors import InvalidTransitionError


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"
    FREE_SHIPPING = "FREE_SHIPPING"


#target -> allowed predecessors, PENDING only exists at creation
ALLOWED_PREDECESSORS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PENDING}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.CONFIRMED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.CONFIRMED, OrderStatus.PROCESSING}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.SHIPPED}),
    OrderStatus.CANCELLED: frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED}),
    OrderStatus.REFUNDED: frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED}),
}

CANCELLABLE = ALLOWED_PREDECESSORS[OrderStatus.CANCELLED]


def can_transition(current: OrderStatus | str, target: OrderStatus | str) -> bool:
    return OrderStatus(current) in ALLOWED_PREDECESSORS[OrderStatus(target)]


def ensure_transition(current: OrderStatus | str, target: OrderStatus | str) -> OrderStatus:
    """Return the target status or raise InvalidTransitionError."""
    current, target = OrderStatus(current), OrderStatus(target)
    if current not in ALLOWED_PREDECESSORS[target]:
        raise InvalidTransitionError(current.value, target.value)
    return target
