# storefront/domain/errors.py
from decimal import Decimal
from typing import Any, Dict


class StorefrontError(Exception):
    """Base for business errors; routers turn these into HTTP responses."""

    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def detail(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        for key, value in self.context.items():
            payload[key] = str(value) if isinstance(value, Decimal) else value
        return payload


class ValidationError(StorefrontError, ValueError):
    status_code = 400


class EmptyCartError(StorefrontError):
    status_code = 400

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class InsufficientStockError(StorefrontError):
    status_code = 400

    def __init__(self, product_id: int, available: int, variant_id: int | None = None, name: str | None = None):
        label = name or f"product {product_id}"
        super().__init__(
            f"Not enough stock for {label}",
            product_id=product_id,
            variant_id=variant_id,
            available=available,
        )
        self.product_id = product_id
        self.variant_id = variant_id
        self.available = available


class DiscountError(StorefrontError):
    status_code = 400


class InvalidDiscountError(DiscountError):
    def __init__(self, message: str = "Invalid discount code"):
        super().__init__(message)


class DiscountInactiveError(DiscountError):
    def __init__(self, message: str = "Discount code is no longer active"):
        super().__init__(message)


class DiscountExpiredError(DiscountError):
    def __init__(self, message: str = "Discount code has expired"):
        super().__init__(message)


class DiscountExhaustedError(DiscountError):
    def __init__(self, message: str = "Discount code usage limit reached"):
        super().__init__(message)


class DiscountMinimumNotMetError(DiscountError):
    def __init__(self, minimum: Decimal, currency: str = "ILS"):
        super().__init__(
            f"Minimum order amount of {minimum} {currency} required",
            minimum=minimum,
        )
        self.minimum = minimum


class NotFoundError(StorefrontError, LookupError):
    status_code = 404


class AuthorizationError(StorefrontError, PermissionError):
    status_code = 403


class InvalidTransitionError(StorefrontError):
    status_code = 409

    def __init__(self, current: str, target: str, **context):
        super().__init__(
            f"Order cannot move from {current} to {target}",
            current=current,
            target=target,
            **context,
        )
        self.current = current
        self.target = target


class OrderNumberConflictError(StorefrontError):
    status_code = 409

    def __init__(self, order_number: str):
        super().__init__(f"Order number {order_number} already exists", order_number=order_number)


class GatewayError(StorefrontError):
    status_code = 502

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message, retryable=retryable)
        self.retryable = retryable


class SignatureVerificationError(StorefrontError):
    status_code = 400

    def __init__(self, message: str = "Webhook signature verification failed"):
        super().__init__(message)


class ConflictError(StorefrontError):
    status_code = 409
