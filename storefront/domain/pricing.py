# storefront/domain/pricing.py
"""
Pricing rules for checkout: line pricing, stock check, discount rules,
flat-rate shipping and order totals. Pure functions, no session access.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from storefront.domain.errors import (
    InsufficientStockError,
    DiscountInactiveError,
    DiscountExpiredError,
    DiscountExhaustedError,
    DiscountMinimumNotMetError,
)
from storefront.domain.order_status import DiscountType
from storefront.utils.settings import CheckoutConfig

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    return int((money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def as_utc(value: datetime | None) -> datetime | None:
    #sqlite drops tzinfo
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class PricedLine:
    product_id: int
    variant_id: Optional[int]
    name: str
    variant_name: Optional[str]
    sku: Optional[str]
    unit_price: Decimal
    quantity: int
    available: int
    allow_backorder: bool

    @property
    def total(self) -> Decimal:
        return money(self.unit_price * self.quantity)

    @property
    def display_name(self) -> str:
        if self.variant_name:
            return f"{self.name} - {self.variant_name}"
        return self.name


def price_cart_item(item) -> PricedLine:
    """Effective price and availability: the variant's when one is selected, else the product's."""
    product, variant = item.product, item.variant
    source = variant if variant is not None else product
    return PricedLine(
        product_id=product.id,
        variant_id=variant.id if variant is not None else None,
        name=product.name,
        variant_name=variant.name if variant is not None else None,
        sku=(variant.sku if variant is not None else None) or product.sku,
        unit_price=money(source.price),
        quantity=item.quantity,
        available=source.quantity,
        allow_backorder=bool(product.allow_backorder),
    )


def ensure_in_stock(line: PricedLine, quantity: int | None = None) -> None:
    requested = line.quantity if quantity is None else quantity
    if not line.allow_backorder and requested > line.available:
        raise InsufficientStockError(
            product_id=line.product_id,
            variant_id=line.variant_id,
            available=line.available,
            name=line.display_name,
        )


def validate_discount(discount, subtotal: Decimal, now: datetime, currency: str = "ILS") -> None:
    if not discount.is_active:
        raise DiscountInactiveError()

    starts_at = as_utc(discount.starts_at)
    if starts_at is not None and starts_at > now:
        raise DiscountInactiveError("Discount code is not active yet")

    expires_at = as_utc(discount.expires_at)
    if expires_at is not None and expires_at < now:
        raise DiscountExpiredError()

    if discount.max_uses is not None and discount.used_count >= discount.max_uses:
        raise DiscountExhaustedError()

    if discount.min_order_amount is not None and subtotal < money(discount.min_order_amount):
        raise DiscountMinimumNotMetError(money(discount.min_order_amount), currency)


def discount_amount(discount, subtotal: Decimal) -> tuple[Decimal, bool]:
    """Returns (amount, free_shipping). Fixed amounts are capped at the subtotal."""
    kind = DiscountType(discount.type)
    value = Decimal(str(discount.value))

    if kind is DiscountType.PERCENTAGE:
        return money(subtotal * value / Decimal(100)), False
    if kind is DiscountType.FIXED_AMOUNT:
        return money(min(value, subtotal)), False
    return ZERO, True


def shipping_cost(subtotal: Decimal, config: CheckoutConfig, free_shipping: bool = False) -> Decimal:
    if free_shipping or subtotal > config.free_shipping_threshold:
        return ZERO
    return money(config.flat_shipping_rate)


@dataclass
class Totals:
    subtotal: Decimal
    discount: Decimal
    shipping: Decimal
    total: Decimal
    free_shipping: bool = False


def compute_totals(
    lines: Iterable[PricedLine],
    config: CheckoutConfig,
    discount=None,
    now: datetime | None = None,
) -> Totals:
    subtotal = money(sum((line.total for line in lines), ZERO))

    amount, free_shipping = ZERO, False
    if discount is not None:
        validate_discount(discount, subtotal, now or datetime.now(timezone.utc), config.currency)
        amount, free_shipping = discount_amount(discount, subtotal)

    shipping = shipping_cost(subtotal, config, free_shipping)
    total = max(subtotal - amount + shipping, ZERO)

    return Totals(
        subtotal=subtotal,
        discount=amount,
        shipping=shipping,
        total=money(total),
        free_shipping=free_shipping,
    )
