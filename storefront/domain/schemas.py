# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict, EmailStr
from typing import List, Optional
from decimal import Decimal
from datetime import datetime

from storefront.domain.order_status import OrderStatus, PaymentStatus, DiscountType


# ---------- cart ----------

class CartItemIn(BaseModel):
    """Adding a product (optionally a variant) to the cart."""

    product_id: int = Field(..., gt=0)
    variant_id: Optional[int] = Field(None, gt=0)
    quantity: int = Field(1, gt=0, description="Must be > 0")


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., gt=0, description="Must be > 0")


class CartMergeIn(BaseModel):
    session_id: Optional[str] = None


class CartLineOut(BaseModel):
    id: int
    product_id: int
    variant_id: Optional[int] = None
    name: str
    variant_name: Optional[str] = None
    quantity: int
    price: Decimal
    total: Decimal
    available_quantity: int
    in_stock: bool


class CartOut(BaseModel):
    session_id: Optional[str] = None
    items: List[CartLineOut]
    item_count: int
    subtotal: Decimal
    currency: str


# ---------- checkout ----------

class ShippingAddressIn(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = Field(..., min_length=1)


class CheckoutIn(BaseModel):
    email: EmailStr
    phone: Optional[str] = None
    shipping_address: ShippingAddressIn
    discount_code: Optional[str] = None
    notes: Optional[str] = None


class CheckoutOut(BaseModel):
    checkout_url: Optional[str] = None
    session_id: str
    order_id: int
    order_number: str


# ---------- orders ----------

class OrderItemOut(BaseModel):
    id: int
    product_id: Optional[int] = None
    variant_id: Optional[int] = None
    name: str
    sku: Optional[str] = None
    price: Decimal
    quantity: int
    total: Decimal

    model_config = ConfigDict(from_attributes=True)


class TimelineEntryOut(BaseModel):
    status: str
    note: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ShippingOut(BaseModel):
    first_name: str
    last_name: str
    phone: str
    street: str
    city: str
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str


class OrderOut(BaseModel):
    id: int
    order_number: str
    user_id: Optional[int] = None
    email: str
    phone: Optional[str] = None
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: Optional[str] = None
    subtotal: Decimal
    shipping_cost: Decimal
    discount_amount: Decimal
    total: Decimal
    currency: str
    notes: Optional[str] = None
    discount_code: Optional[str] = None
    shipping: ShippingOut
    tracking_number: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    items: List[OrderItemOut]
    timeline: List[TimelineEntryOut]


class PaginationOut(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class OrderListOut(BaseModel):
    orders: List[OrderOut]
    pagination: PaginationOut


class OrderStatsOut(BaseModel):
    total_orders: int
    total_revenue: Decimal


class AdminOrderListOut(OrderListOut):
    stats: OrderStatsOut


class CancelOrderIn(BaseModel):
    reason: Optional[str] = None


class StatusUpdateIn(BaseModel):
    status: OrderStatus
    tracking_number: Optional[str] = None
    note: Optional[str] = None


class WebhookAck(BaseModel):
    received: bool = True


# ---------- discounts ----------

class DiscountCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    type: DiscountType
    value: Decimal = Field(..., ge=0)
    min_order_amount: Optional[Decimal] = Field(None, ge=0)
    max_uses: Optional[int] = Field(None, ge=0)
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: bool = True


class DiscountOut(BaseModel):
    id: int
    code: str
    type: DiscountType
    value: Decimal
    min_order_amount: Optional[Decimal] = None
    max_uses: Optional[int] = None
    used_count: int
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class DiscountValidateIn(BaseModel):
    code: str = Field(..., min_length=1)
    subtotal: Decimal = Field(..., ge=0)


class DiscountValidateOut(BaseModel):
    code: str
    type: DiscountType
    discount_amount: Decimal
    free_shipping: bool


# ---------- users ----------

class UserCreate(BaseModel):
    """Creating a user (token issuance lives elsewhere)."""

    id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    role: str = Field("CUSTOMER", pattern="^(CUSTOMER|ADMIN)$")


class UserRead(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    role: str

    model_config = ConfigDict(from_attributes=True)
