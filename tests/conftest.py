import hashlib
import hmac
import json
import os
import time
from decimal import Decimal

#must be set before storefront.utils.settings is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_storefront"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_storefront"
os.environ["SMTP_HOST"] = ""

import pytest
from fastapi.testclient import TestClient

from storefront.api.deps import get_gateway, get_notifications, get_config
from storefront.data.database import Base, engine, SessionLocal
from storefront.data.models import (
    UserModel,
    ProductModel,
    ProductVariantModel,
    DiscountCodeModel,
)
from storefront.domain.errors import GatewayError
from storefront.domain.order_status import DiscountType
from storefront.main import create_app
from storefront.services.notification_service import NotificationService
from storefront.services.payment_gateway import StripeGateway, GatewaySession, GatewayRefund
from storefront.utils.settings import CheckoutConfig

WEBHOOK_SECRET = "whsec_test_storefront"

CUSTOMER_ID = 1
OTHER_CUSTOMER_ID = 2
ADMIN_ID = 99

SHIPPING_ADDRESS = {
    "first_name": "Dana",
    "last_name": "Levi",
    "phone": "+972500000000",
    "street": "Herzl 1",
    "city": "Tel Aviv",
    "postal_code": "6100000",
    "country": "IL",
}


class FakeGateway(StripeGateway):
    """Stripe adapter with the network calls replaced; webhook signatures are verified for real."""

    def __init__(self):
        super().__init__(api_key="sk_test_storefront", webhook_secret=WEBHOOK_SECRET, currency="ILS")
        self.sessions = []
        self.coupons = []
        self.refunds = []
        self.expired = []
        self.session_status = "open"
        self.refund_status = "succeeded"
        self.fail_checkout = False
        self.fail_refund = False

    def create_checkout_session(self, lines, shipping_cost, email, metadata, success_url, cancel_url, coupon_id=None):
        if self.fail_checkout:
            raise GatewayError("Payment gateway error during create checkout session", retryable=True)
        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.sessions.append(
            {
                "id": session_id,
                "lines": list(lines),
                "shipping_cost": shipping_cost,
                "email": email,
                "metadata": metadata,
                "success_url": success_url,
                "cancel_url": cancel_url,
                "coupon_id": coupon_id,
            }
        )
        return GatewaySession(id=session_id, url=f"https://checkout.stripe.test/{session_id}", status="open")

    def get_or_create_coupon(self, discount):
        self.coupons.append(discount.code)
        if DiscountType(discount.type) is DiscountType.FREE_SHIPPING:
            return None
        return discount.code

    def retrieve_session(self, session_id):
        return GatewaySession(id=session_id, payment_intent=f"pi_{session_id}", status=self.session_status)

    def create_refund(self, payment_intent):
        if self.fail_refund:
            raise GatewayError("Payment gateway error during create refund")
        self.refunds.append(payment_intent)
        return GatewayRefund(id=f"re_{len(self.refunds)}", status=self.refund_status)

    def expire_session(self, session_id):
        self.expired.append(session_id)


class RecordingNotifier(NotificationService):
    def __init__(self):
        self.sent = []

    def send_order_confirmation(self, order):
        self.sent.append(order.order_number)
        return True


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def config():
    return CheckoutConfig()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(db, gateway, notifier, config):
    app = create_app(with_lifespan=False)
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_notifications] = lambda: notifier
    app.dependency_overrides[get_config] = lambda: config
    with TestClient(app) as c:
        yield c


@pytest.fixture
def users(db):
    db.add_all(
        [
            UserModel(id=CUSTOMER_ID, name="Dana", email="dana@example.com"),
            UserModel(id=OTHER_CUSTOMER_ID, name="Noa", email="noa@example.com"),
            UserModel(id=ADMIN_ID, name="Admin", email="admin@example.com", role="ADMIN"),
        ]
    )
    db.commit()


@pytest.fixture
def catalog(db):
    mug = ProductModel(name="Mug", sku="MUG-1", price=Decimal("50.00"), quantity=10)
    tee = ProductModel(
        name="T-Shirt",
        sku="TEE-1",
        price=Decimal("100.00"),
        quantity=0,
        variants=[
            ProductVariantModel(name="M", sku="TEE-1-M", price=Decimal("120.00"), quantity=3),
            ProductVariantModel(name="L", sku="TEE-1-L", price=Decimal("120.00"), quantity=0),
        ],
    )
    printed = ProductModel(name="Print", sku="PRN-1", price=Decimal("60.00"), quantity=0, allow_backorder=True)
    hidden = ProductModel(name="Old Mug", sku="MUG-0", price=Decimal("10.00"), quantity=5, is_active=False)
    db.add_all([mug, tee, printed, hidden])
    db.commit()
    return {
        "mug": mug,
        "tee": tee,
        "tee_m": tee.variants[0],
        "tee_l": tee.variants[1],
        "print": printed,
        "hidden": hidden,
    }


@pytest.fixture
def discounts(db):
    codes = {
        "fixed": DiscountCodeModel(code="SAVE20", type="FIXED_AMOUNT", value=Decimal("20"), min_order_amount=Decimal("50")),
        "percent": DiscountCodeModel(code="TEN", type="PERCENTAGE", value=Decimal("10")),
        "ship": DiscountCodeModel(code="FREESHIP", type="FREE_SHIPPING", value=Decimal("0")),
        "used_up": DiscountCodeModel(code="GONE", type="PERCENTAGE", value=Decimal("5"), max_uses=1, used_count=1),
    }
    db.add_all(codes.values())
    db.commit()
    return codes


# ---------- helpers ----------

def user_params(user_id=CUSTOMER_ID):
    return {"user_id": user_id}


def add_to_cart(client, product_id, quantity=1, variant_id=None, user_id=CUSTOMER_ID, session=None):
    body = {"product_id": product_id, "quantity": quantity}
    if variant_id is not None:
        body["variant_id"] = variant_id
    if session is not None:
        return client.post("/cart/items", json=body, headers={"X-Cart-Session": session})
    return client.post("/cart/items", json=body, params=user_params(user_id))


def checkout(client, user_id=CUSTOMER_ID, session=None, **extra):
    body = {"email": "dana@example.com", "shipping_address": SHIPPING_ADDRESS, **extra}
    if session is not None:
        return client.post("/checkout", json=body, headers={"X-Cart-Session": session})
    return client.post("/checkout", json=body, params=user_params(user_id))


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    ts = timestamp or int(time.time())
    signature = hmac.new(secret.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={ts},v1={signature}"


def session_event(order_id, event_type="checkout.session.completed", session_id="cs_test_1", event_id="evt_1", **fields):
    obj = {
        "id": session_id,
        "object": "checkout.session",
        "payment_status": "paid",
        "metadata": {"order_id": str(order_id)} if order_id is not None else {},
    }
    obj.update(fields)
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


def post_webhook(client, event, secret: str = WEBHOOK_SECRET):
    payload = json.dumps(event)
    return client.post(
        "/webhooks/payment",
        content=payload,
        headers={"Stripe-Signature": sign(payload, secret), "Content-Type": "application/json"},
    )


def place_order(client, product_id, quantity=1, user_id=CUSTOMER_ID, **extra):
    assert add_to_cart(client, product_id, quantity, user_id=user_id).status_code == 200
    resp = checkout(client, user_id=user_id, **extra)
    assert resp.status_code == 201, resp.text
    return resp.json()


def pay(client, placed):
    resp = post_webhook(client, session_event(placed["order_id"], session_id=placed["session_id"]))
    assert resp.status_code == 200
    return resp
