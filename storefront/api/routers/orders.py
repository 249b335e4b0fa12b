# storefront/api/routers/orders.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from storefront.api.deps import (
    get_current_user,
    require_user,
    require_admin,
    get_gateway,
    get_config,
    ADMIN_ROLE,
)
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.errors import StorefrontError
from storefront.domain.order_status import OrderStatus, PaymentStatus
from storefront.domain.schemas import (
    OrderOut,
    OrderListOut,
    AdminOrderListOut,
    CancelOrderIn,
    StatusUpdateIn,
)
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import StripeGateway
from storefront.utils.settings import CheckoutConfig

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_gateway),
    config: CheckoutConfig = Depends(get_config),
):
    return OrderService(db, gateway=gateway, config=config)


@router.get("", response_model=OrderListOut)
def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: UserModel = Depends(require_user),
    svc: OrderService = Depends(get_service),
):
    return svc.list_user_orders(user.id, page, limit)


@router.get("/admin/all", response_model=AdminOrderListOut)
def list_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[OrderStatus] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None),
    search: Optional[str] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    admin: UserModel = Depends(require_admin),
    svc: OrderService = Depends(get_service),
):
    """
    Admin listing with filters and revenue stats.
    """
    return svc.list_all_orders(
        page=page,
        limit=limit,
        status=status.value if status else None,
        payment_status=payment_status.value if payment_status else None,
        search=search,
        date_from=date_from,
        date_to=date_to,
    )


@router.get("/track/{order_number}", response_model=OrderOut)
def track_order(
    order_number: str,
    email: Optional[str] = Query(None),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.track_order(order_number, email)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user: UserModel | None = Depends(get_current_user),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.get_order(
            order_id,
            user_id=user.id if user else None,
            is_admin=bool(user and user.role == ADMIN_ROLE),
        )
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: int,
    payload: CancelOrderIn | None = None,
    user: UserModel = Depends(require_user),
    svc: OrderService = Depends(get_service),
):
    """
    Cancels a PENDING or CONFIRMED order; paid orders are refunded and restocked.
    """
    try:
        return svc.cancel_order(
            order_id,
            user_id=user.id,
            is_admin=user.role == ADMIN_ROLE,
            reason=payload.reason if payload else None,
        )
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.patch("/{order_id}/status", response_model=OrderOut)
def update_status(
    order_id: int,
    payload: StatusUpdateIn,
    admin: UserModel = Depends(require_admin),
    svc: OrderService = Depends(get_service),
):
    try:
        return svc.update_status(
            order_id,
            payload.status,
            tracking_number=payload.tracking_number,
            note=payload.note,
        )
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())
