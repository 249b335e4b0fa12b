# storefront/repos/discount_repo.py
from typing import List

from sqlalchemy import select, update, func
from sqlalchemy.orm import Session

from storefront.data.models.discount_code import DiscountCodeModel


class DiscountRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_by_code(self, code: str) -> DiscountCodeModel | None:
        normalized = code.strip().upper()
        stmt = select(DiscountCodeModel).where(func.upper(DiscountCodeModel.code) == normalized)
        return self.db.execute(stmt).scalar_one_or_none()

    def get(self, discount_id: int) -> DiscountCodeModel | None:
        return self.db.get(DiscountCodeModel, discount_id)

    def list_all(self) -> List[DiscountCodeModel]:
        stmt = select(DiscountCodeModel).order_by(DiscountCodeModel.created_at.desc(), DiscountCodeModel.id.desc())
        return list(self.db.execute(stmt).scalars().all())

    def create(self, discount: DiscountCodeModel) -> DiscountCodeModel:
        self.db.add(discount)
        self.db.commit()
        self.db.refresh(discount)
        return discount

    def delete(self, discount: DiscountCodeModel) -> None:
        self.db.delete(discount)
        self.db.commit()

    def increment_usage(self, discount_id: int) -> int:
        stmt = (
            update(DiscountCodeModel)
            .where(DiscountCodeModel.id == discount_id)
            .values(used_count=DiscountCodeModel.used_count + 1)
        )
        return self.db.execute(stmt).rowcount
