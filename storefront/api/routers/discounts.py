# storefront/api/routers/discounts.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from storefront.api.deps import require_admin, get_config
from storefront.data.database import get_db
from storefront.data.models.user import UserModel
from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import DiscountCreate, DiscountOut, DiscountValidateIn, DiscountValidateOut
from storefront.services.discount_service import DiscountService
from storefront.utils.settings import CheckoutConfig

router = APIRouter(prefix="/discounts", tags=["discounts"])


def get_service(
    db: Session = Depends(get_db),
    config: CheckoutConfig = Depends(get_config),
):
    return DiscountService(db, currency=config.currency)


@router.post("/validate", response_model=DiscountValidateOut)
def validate_code(payload: DiscountValidateIn, svc: DiscountService = Depends(get_service)):
    """Same rules as checkout, nothing is reserved."""
    try:
        return svc.evaluate(payload.code, payload.subtotal)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.get("", response_model=List[DiscountOut])
def list_codes(admin: UserModel = Depends(require_admin), svc: DiscountService = Depends(get_service)):
    return svc.list_codes()


@router.post("", response_model=DiscountOut, status_code=201)
def create_code(
    payload: DiscountCreate,
    admin: UserModel = Depends(require_admin),
    svc: DiscountService = Depends(get_service),
):
    try:
        return svc.create_code(payload)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())


@router.delete("/{discount_id}", status_code=204)
def delete_code(
    discount_id: int,
    admin: UserModel = Depends(require_admin),
    svc: DiscountService = Depends(get_service),
):
    try:
        svc.delete_code(discount_id)
    except StorefrontError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail())
