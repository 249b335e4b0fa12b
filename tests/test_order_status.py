import re
from datetime import datetime, timezone

import pytest

from storefront.domain.errors import InvalidTransitionError
from storefront.domain.order_number import generate_order_number
from storefront.domain.order_status import OrderStatus, can_transition, ensure_transition, CANCELLABLE


@pytest.mark.parametrize(
    "current, target",
    [
        ("PENDING", "CONFIRMED"),
        ("CONFIRMED", "PROCESSING"),
        ("CONFIRMED", "SHIPPED"),
        ("PROCESSING", "SHIPPED"),
        ("SHIPPED", "DELIVERED"),
        ("PENDING", "CANCELLED"),
        ("CONFIRMED", "CANCELLED"),
        ("SHIPPED", "REFUNDED"),
        ("DELIVERED", "REFUNDED"),
    ],
)
def test_allowed_transitions(current, target):
    assert can_transition(current, target)
    assert ensure_transition(current, target) is OrderStatus(target)


@pytest.mark.parametrize(
    "current, target",
    [
        ("DELIVERED", "PENDING"),
        ("CONFIRMED", "PENDING"),
        ("PENDING", "SHIPPED"),
        ("CONFIRMED", "DELIVERED"),
        ("SHIPPED", "CANCELLED"),
        ("CANCELLED", "CONFIRMED"),
        ("REFUNDED", "DELIVERED"),
    ],
)
def test_rejected_transitions(current, target):
    assert not can_transition(current, target)
    with pytest.raises(InvalidTransitionError) as exc:
        ensure_transition(current, target)
    assert exc.value.detail() == {
        "error": f"Order cannot move from {current} to {target}",
        "current": current,
        "target": target,
    }


def test_only_unfulfilled_orders_are_cancellable():
    assert CANCELLABLE == {OrderStatus.PENDING, OrderStatus.CONFIRMED}


def test_order_number_format():
    number = generate_order_number("ZPS", datetime(2024, 3, 1, 23, 59, tzinfo=timezone.utc))
    assert re.fullmatch(r"ZPS-20240301-[A-Z0-9]{4}", number)


def test_order_numbers_vary():
    numbers = {generate_order_number("ZPS") for _ in range(50)}
    assert len(numbers) > 1
