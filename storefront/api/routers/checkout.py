# storefront/api/routers/checkout.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.api.deps import get_identity, get_gateway, get_config
from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError
from storefront.domain.identity import Identity
from storefront.domain.schemas import CheckoutIn, CheckoutOut
from storefront.services.checkout_service import CheckoutService
from storefront.services.payment_gateway import StripeGateway
from storefront.utils.settings import CheckoutConfig

router = APIRouter(prefix="/checkout", tags=["checkout"])


@router.post("", response_model=CheckoutOut, status_code=201)
def checkout(
    payload: CheckoutIn,
    identity: Identity = Depends(get_identity),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_gateway),
    config: CheckoutConfig = Depends(get_config),
):
    """
    Creates a PENDING order from the cart and returns the hosted payment page.
    Stock is decremented later, when the payment webhook arrives.
    """
    svc = CheckoutService(db, gateway=gateway, config=config)
    try:
        return svc.checkout(identity, payload)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())
