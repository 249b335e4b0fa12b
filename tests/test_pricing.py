from datetime import datetime, timezone, timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from storefront.domain.errors import (
    InsufficientStockError,
    DiscountInactiveError,
    DiscountExpiredError,
    DiscountExhaustedError,
    DiscountMinimumNotMetError,
)
from storefront.domain.pricing import (
    PricedLine,
    compute_totals,
    ensure_in_stock,
    to_minor_units,
    validate_discount,
    money,
)
from storefront.utils.settings import CheckoutConfig

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def line(price="50.00", quantity=2, available=10, backorder=False):
    return PricedLine(
        product_id=1,
        variant_id=None,
        name="Mug",
        variant_name=None,
        sku="MUG-1",
        unit_price=Decimal(price),
        quantity=quantity,
        available=available,
        allow_backorder=backorder,
    )


def discount(type_, value, **kw):
    fields = dict(
        code="CODE",
        type=type_,
        value=Decimal(value),
        is_active=True,
        starts_at=None,
        expires_at=None,
        max_uses=None,
        used_count=0,
        min_order_amount=None,
    )
    fields.update(kw)
    return SimpleNamespace(**fields)


def test_flat_shipping_below_threshold():
    totals = compute_totals([line()], CheckoutConfig(), now=NOW)
    assert totals.subtotal == Decimal("100.00")
    assert totals.shipping == Decimal("25.00")
    assert totals.total == Decimal("125.00")


def test_free_shipping_only_strictly_above_threshold():
    at_threshold = compute_totals([line(quantity=4)], CheckoutConfig(), now=NOW)
    above = compute_totals([line(quantity=5)], CheckoutConfig(), now=NOW)
    assert at_threshold.shipping == Decimal("25.00")
    assert above.shipping == Decimal("0.00")
    assert above.total == Decimal("250.00")


def test_fixed_discount_with_minimum():
    totals = compute_totals(
        [line()], CheckoutConfig(), discount("FIXED_AMOUNT", "20", min_order_amount=Decimal("50")), now=NOW
    )
    assert totals.discount == Decimal("20.00")
    assert totals.total == Decimal("105.00")
    assert totals.total == totals.subtotal - totals.discount + totals.shipping


def test_fixed_discount_capped_at_subtotal():
    totals = compute_totals([line(price="10.00", quantity=1)], CheckoutConfig(), discount("FIXED_AMOUNT", "50"), now=NOW)
    assert totals.discount == Decimal("10.00")
    assert totals.total == Decimal("25.00")


def test_percentage_discount_rounds_half_up():
    totals = compute_totals([line(price="33.35", quantity=1)], CheckoutConfig(), discount("PERCENTAGE", "10"), now=NOW)
    assert totals.discount == Decimal("3.34")


def test_free_shipping_discount():
    totals = compute_totals([line()], CheckoutConfig(), discount("FREE_SHIPPING", "0"), now=NOW)
    assert totals.discount == Decimal("0.00")
    assert totals.shipping == Decimal("0.00")
    assert totals.free_shipping is True
    assert totals.total == Decimal("100.00")


@pytest.mark.parametrize(
    "kw, error",
    [
        ({"is_active": False}, DiscountInactiveError),
        ({"starts_at": NOW + timedelta(days=1)}, DiscountInactiveError),
        ({"expires_at": NOW - timedelta(seconds=1)}, DiscountExpiredError),
        ({"max_uses": 3, "used_count": 3}, DiscountExhaustedError),
        ({"min_order_amount": Decimal("150")}, DiscountMinimumNotMetError),
    ],
)
def test_discount_rejections(kw, error):
    with pytest.raises(error):
        validate_discount(discount("PERCENTAGE", "10", **kw), Decimal("100.00"), NOW)


def test_naive_datetimes_are_treated_as_utc():
    #sqlite hands back naive values
    d = discount("PERCENTAGE", "10", expires_at=(NOW + timedelta(hours=1)).replace(tzinfo=None))
    validate_discount(d, Decimal("100.00"), NOW)


def test_minimum_error_carries_amount():
    with pytest.raises(DiscountMinimumNotMetError) as exc:
        validate_discount(discount("FIXED_AMOUNT", "20", min_order_amount=Decimal("150")), Decimal("100"), NOW)
    assert exc.value.detail()["minimum"] == "150.00"


def test_stock_check_and_backorder():
    with pytest.raises(InsufficientStockError) as exc:
        ensure_in_stock(line(quantity=3, available=2))
    assert exc.value.available == 2

    ensure_in_stock(line(quantity=3, available=0, backorder=True))


def test_minor_units():
    assert to_minor_units(Decimal("125")) == 12500
    assert to_minor_units(Decimal("0.015")) == 2
    assert money("19.999") == Decimal("20.00")


@pytest.mark.parametrize("percent, expected", [("0", "0.00"), ("10", "20.00"), ("100", "200.00")])
def test_percentage_boundaries(percent, expected):
    totals = compute_totals([line(price="100.00", quantity=2)], CheckoutConfig(), discount("PERCENTAGE", percent), now=NOW)
    assert totals.discount == Decimal(expected)
    assert totals.total >= Decimal("0")
