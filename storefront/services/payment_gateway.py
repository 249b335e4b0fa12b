# storefront/services/payment_gateway.py
import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Optional

import stripe

from storefront.domain.errors import GatewayError, SignatureVerificationError, ValidationError
from storefront.domain.order_status import DiscountType
from storefront.domain.pricing import PricedLine, to_minor_units
from storefront.utils.retry import gateway_retry, RETRYABLE_GATEWAY_ERRORS
from storefront.utils.settings import (
    STRIPE_SECRET_KEY,
    STRIPE_WEBHOOK_SECRET,
    GATEWAY_TIMEOUT_SECONDS,
    STORE_CURRENCY,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class GatewaySession:
    id: str
    url: Optional[str] = None
    payment_intent: Optional[str] = None
    status: Optional[str] = None


@dataclass
class GatewayRefund:
    id: str
    status: str


class StripeGateway:
    """
    Hosted checkout through Stripe:
    - checkout sessions, coupons, refunds
    - webhook signature verification
    Network calls are retried on transient errors and surface as GatewayError.
    """

    provider = "stripe"

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        currency: str = "ILS",
        timeout: int = 10,
        webhook_tolerance: int = 300,
    ):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.currency = currency.lower()
        self.timeout = timeout
        self.webhook_tolerance = webhook_tolerance

    @classmethod
    def from_settings(cls) -> "StripeGateway":
        gateway = cls(
            api_key=STRIPE_SECRET_KEY,
            webhook_secret=STRIPE_WEBHOOK_SECRET,
            currency=STORE_CURRENCY,
            timeout=GATEWAY_TIMEOUT_SECONDS,
        )
        gateway.configure_http_client()
        return gateway

    def configure_http_client(self):
        #every stripe request is bounded by the timeout
        stripe.default_http_client = stripe.RequestsClient(timeout=self.timeout)

    # ---------- checkout ----------

    def create_checkout_session(
        self,
        lines: Iterable[PricedLine],
        shipping_cost: Decimal,
        email: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
        coupon_id: str | None = None,
    ) -> GatewaySession:
        params = {
            "payment_method_types": ["card"],
            "mode": "payment",
            "line_items": [self._line_item(line) for line in lines],
            "shipping_options": [self._shipping_option(shipping_cost)],
            "customer_email": email,
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if coupon_id:
            params["discounts"] = [{"coupon": coupon_id}]

        session = self._guard("create checkout session", self._create_session, params)
        logger.info(f"Stripe checkout session {session.id} created for order {metadata.get('order_number')}")
        return GatewaySession(id=session.id, url=session.url, status=getattr(session, "status", None))

    def coupon_id(self, discount) -> str:
        """
        Coupons are immutable on Stripe, so the id carries the terms:
        TEN-PCT10, SAVE20-ILS2000. A code recreated with other terms
        gets a new coupon.
        """
        if DiscountType(discount.type) is DiscountType.PERCENTAGE:
            value = format(Decimal(discount.value).normalize(), "f").replace(".", "_")
            return f"{discount.code}-PCT{value}"
        return f"{discount.code}-{self.currency.upper()}{to_minor_units(discount.value)}"

    def get_or_create_coupon(self, discount) -> str | None:
        """Gateway-side mirror of a discount code; None when the code takes nothing off the items."""
        kind = DiscountType(discount.type)
        if kind is DiscountType.FREE_SHIPPING:
            #free shipping is applied through the shipping line, not a coupon
            return None
        if Decimal(discount.value) <= 0:
            return None

        coupon_id = self.coupon_id(discount)
        try:
            coupon = self._retrieve_coupon(coupon_id)
            return coupon.id
        except stripe.InvalidRequestError:
            logger.info(f"Stripe coupon {coupon_id} not found, creating")
        except stripe.StripeError as e:
            raise self._wrap("retrieve coupon", e) from e

        params = {"id": coupon_id, "name": discount.code}
        if kind is DiscountType.PERCENTAGE:
            params["percent_off"] = float(discount.value)
        else:
            params["amount_off"] = to_minor_units(discount.value)
            params["currency"] = self.currency

        coupon = self._guard("create coupon", self._create_coupon, params)
        return coupon.id

    def retrieve_session(self, session_id: str) -> GatewaySession:
        session = self._guard("retrieve session", self._retrieve_session, session_id)
        payment_intent = session.payment_intent
        if payment_intent is not None and not isinstance(payment_intent, str):
            payment_intent = payment_intent.id
        return GatewaySession(
            id=session.id,
            url=getattr(session, "url", None),
            payment_intent=payment_intent,
            status=getattr(session, "status", None),
        )

    def create_refund(self, payment_intent: str) -> GatewayRefund:
        refund = self._guard("create refund", self._create_refund, payment_intent)
        logger.info(f"Stripe refund {refund.id} for {payment_intent}: {refund.status}")
        return GatewayRefund(id=refund.id, status=refund.status)

    def expire_session(self, session_id: str) -> None:
        self._guard("expire session", self._expire_session, session_id)
        logger.info(f"Stripe checkout session {session_id} expired")

    # ---------- webhooks ----------

    def parse_event(self, payload: bytes | str, signature: str | None) -> dict:
        if not signature:
            raise SignatureVerificationError("Missing Stripe-Signature header")

        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        try:
            stripe.WebhookSignature.verify_header(
                body, signature, self.webhook_secret, self.webhook_tolerance
            )
        except stripe.SignatureVerificationError as e:
            raise SignatureVerificationError(f"Webhook signature verification failed: {e}") from e

        try:
            event = json.loads(body)
        except ValueError as e:
            raise ValidationError("Malformed webhook payload") from e

        if not isinstance(event, dict) or "type" not in event:
            raise ValidationError("Malformed webhook payload")
        return event

    # ---------- helpers ----------

    def _line_item(self, line: PricedLine) -> dict:
        product_data = {"name": line.name}
        if line.variant_name:
            product_data["description"] = line.variant_name
        return {
            "price_data": {
                "currency": self.currency,
                "product_data": product_data,
                "unit_amount": to_minor_units(line.unit_price),
            },
            "quantity": line.quantity,
        }

    def _shipping_option(self, shipping_cost: Decimal) -> dict:
        return {
            "shipping_rate_data": {
                "type": "fixed_amount",
                "fixed_amount": {
                    "amount": to_minor_units(shipping_cost),
                    "currency": self.currency,
                },
                "display_name": "Free Shipping" if shipping_cost == 0 else "Standard Shipping",
                "delivery_estimate": {
                    "minimum": {"unit": "business_day", "value": 3},
                    "maximum": {"unit": "business_day", "value": 7},
                },
            }
        }

    def _guard(self, action: str, fn, *args):
        try:
            return fn(*args)
        except stripe.StripeError as e:
            raise self._wrap(action, e) from e

    @staticmethod
    def _wrap(action: str, error: Exception) -> GatewayError:
        retryable = isinstance(error, RETRYABLE_GATEWAY_ERRORS)
        logger.error(f"Stripe {action} failed ({type(error).__name__}): {error}")
        return GatewayError(f"Payment gateway error during {action}", retryable=retryable)

    @gateway_retry()
    def _create_session(self, params: dict):
        return stripe.checkout.Session.create(api_key=self.api_key, **params)

    @gateway_retry()
    def _retrieve_session(self, session_id: str):
        return stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)

    @gateway_retry()
    def _expire_session(self, session_id: str):
        return stripe.checkout.Session.expire(session_id, api_key=self.api_key)

    @gateway_retry()
    def _retrieve_coupon(self, code: str):
        return stripe.Coupon.retrieve(code, api_key=self.api_key)

    @gateway_retry()
    def _create_coupon(self, params: dict):
        return stripe.Coupon.create(api_key=self.api_key, **params)

    @gateway_retry()
    def _create_refund(self, payment_intent: str):
        return stripe.Refund.create(payment_intent=payment_intent, api_key=self.api_key)
