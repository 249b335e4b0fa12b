#storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, HTTPException, Header, Request
from sqlalchemy.orm import Session

from storefront.api.deps import get_identity, get_config, require_user, CART_SESSION_COOKIE
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.errors import StorefrontError
from storefront.domain.identity import Identity
from storefront.domain.schemas import CartItemIn, CartItemUpdate, CartMergeIn, CartOut
from storefront.services.cart_service import CartService
from storefront.utils.settings import CheckoutConfig

router = APIRouter(prefix="/cart", tags=["cart"])


def get_service(db: Session, config: CheckoutConfig):
    return CartService(db=db, currency=config.currency)


@router.get("", response_model=CartOut)
def get_cart(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    config: CheckoutConfig = Depends(get_config),
):
    svc = get_service(db, config)
    return svc.get_cart(identity)


@router.post("/items", response_model=CartOut)
def add_item(
    payload: CartItemIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    config: CheckoutConfig = Depends(get_config),
):
    svc = get_service(db, config)
    try:
        return svc.add_item(
            identity,
            product_id=payload.product_id,
            quantity=payload.quantity,
            variant_id=payload.variant_id,
        )
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.put("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: int,
    payload: CartItemUpdate,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    config: CheckoutConfig = Depends(get_config),
):
    svc = get_service(db, config)
    try:
        return svc.update_item(identity, item_id, payload.quantity)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(
    item_id: int,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    config: CheckoutConfig = Depends(get_config),
):
    svc = get_service(db, config)
    try:
        return svc.remove_item(identity, item_id)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.delete("", response_model=CartOut)
def clear_cart(
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    config: CheckoutConfig = Depends(get_config),
):
    svc = get_service(db, config)
    return svc.clear(identity)


@router.post("/merge", response_model=CartOut)
def merge_cart(
    request: Request,
    payload: CartMergeIn | None = None,
    user: UserModel = Depends(require_user),
    x_cart_session: str | None = Header(None),
    db: Session = Depends(get_db),
    config: CheckoutConfig = Depends(get_config),
):
    """Moves the guest cart into the user's cart after login."""
    session_id = (
        (payload.session_id if payload else None)
        or request.cookies.get(CART_SESSION_COOKIE)
        or x_cart_session
    )
    svc = get_service(db, config)
    try:
        return svc.merge_guest_cart(user.id, session_id)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())
