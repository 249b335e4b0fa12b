# storefront/services/discount_service.py
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, List

from sqlalchemy.orm import Session

from storefront.data.models.discount_code import DiscountCodeModel
from storefront.domain.errors import InvalidDiscountError, NotFoundError, ValidationError
from storefront.domain.order_status import DiscountType
from storefront.domain.pricing import validate_discount, discount_amount, money
from storefront.domain.schemas import DiscountCreate
from storefront.repos.discount_repo import DiscountRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class DiscountService:
    def __init__(self, db: Session, currency: str = "ILS"):
        self.repo = DiscountRepo(db)
        self.currency = currency

    def lookup(self, code: str) -> DiscountCodeModel:
        """Case-insensitive lookup, InvalidDiscountError when absent."""
        discount = self.repo.get_by_code(code) if code and code.strip() else None
        if not discount:
            raise InvalidDiscountError()
        return discount

    def evaluate(self, code: str, subtotal: Decimal, now: datetime | None = None) -> Dict[str, Any]:
        discount = self.lookup(code)
        subtotal = money(subtotal)
        validate_discount(discount, subtotal, now or datetime.now(timezone.utc), self.currency)
        amount, free_shipping = discount_amount(discount, subtotal)
        return {
            "code": discount.code,
            "type": discount.type,
            "discount_amount": amount,
            "free_shipping": free_shipping,
        }

    def list_codes(self) -> List[DiscountCodeModel]:
        return self.repo.list_all()

    def create_code(self, payload: DiscountCreate) -> DiscountCodeModel:
        code = payload.code.strip().upper()
        if self.repo.get_by_code(code):
            raise ValidationError(f"Discount code {code} already exists")
        if payload.type is DiscountType.PERCENTAGE and payload.value > 100:
            raise ValidationError("Percentage discount cannot exceed 100")
        if payload.starts_at and payload.expires_at and payload.expires_at <= payload.starts_at:
            raise ValidationError("expires_at must be after starts_at")

        created = self.repo.create(
            DiscountCodeModel(
                code=code,
                type=payload.type.value,
                value=payload.value,
                min_order_amount=payload.min_order_amount,
                max_uses=payload.max_uses,
                used_count=0,
                starts_at=payload.starts_at,
                expires_at=payload.expires_at,
                is_active=payload.is_active,
            )
        )
        logger.info(f"Discount code {code} created ({payload.type.value} {payload.value})")
        return created

    def delete_code(self, discount_id: int) -> None:
        discount = self.repo.get(discount_id)
        if not discount:
            raise NotFoundError("Discount code not found", discount_id=discount_id)
        self.repo.delete(discount)
        logger.info(f"Discount code {discount.code} deleted")
