from datetime import datetime, timezone
from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, Numeric, Text
from sqlalchemy.orm import relationship

from storefront.data.database import Base


def _now():
    return datetime.now(timezone.utc)


class OrderModel(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String, nullable=False, unique=True, index=True)
    #NULL for guest checkout
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    email = Column(String, nullable=False)
    phone = Column(String, nullable=True)

    status = Column(String, nullable=False, default="PENDING", index=True)
    payment_status = Column(String, nullable=False, default="PENDING")
    payment_method = Column(String, nullable=True)
    payment_session_id = Column(String, nullable=True, index=True)

    subtotal = Column(Numeric(10, 2), nullable=False)
    shipping_cost = Column(Numeric(10, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total = Column(Numeric(10, 2), nullable=False)
    currency = Column(String, nullable=False, default="ILS")
    notes = Column(Text, nullable=True)

    shipping_address_id = Column(Integer, ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True)
    discount_code_id = Column(Integer, ForeignKey("discount_codes.id", ondelete="SET NULL"), nullable=True)

    #denormalized shipping copy, also kept for guests
    ship_first_name = Column(String, nullable=False)
    ship_last_name = Column(String, nullable=False)
    ship_phone = Column(String, nullable=False)
    ship_street = Column(String, nullable=False)
    ship_city = Column(String, nullable=False)
    ship_state = Column(String, nullable=True)
    ship_postal_code = Column(String, nullable=True)
    ship_country = Column(String, nullable=False)

    tracking_number = Column(String, nullable=True)
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    items = relationship(
        "OrderItemModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.id",
    )
    timeline = relationship(
        "OrderTimelineModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderTimelineModel.id.desc()",
    )
    discount_code = relationship("DiscountCodeModel")
