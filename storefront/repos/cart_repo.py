# storefront/repos/cart_repo.py
from typing import List

from sqlalchemy import select, delete
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.cart_item import CartItemModel
from storefront.domain.identity import Identity


def _owned_by(identity: Identity):
    if identity.user_id is not None:
        return CartItemModel.user_id == identity.user_id
    return CartItemModel.session_id == identity.session_id


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def list_items(self, identity: Identity) -> List[CartItemModel]:
        stmt = (
            select(CartItemModel)
            .where(_owned_by(identity))
            .options(
                selectinload(CartItemModel.product),
                selectinload(CartItemModel.variant),
            )
            .order_by(CartItemModel.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def get_item(self, identity: Identity, item_id: int) -> CartItemModel | None:
        stmt = select(CartItemModel).where(CartItemModel.id == item_id, _owned_by(identity))
        return self.db.execute(stmt).scalar_one_or_none()

    def find_item(self, identity: Identity, product_id: int, variant_id: int | None) -> CartItemModel | None:
        #unique constraints treat NULL variant_id as distinct
        variant_clause = (
            CartItemModel.variant_id.is_(None)
            if variant_id is None
            else CartItemModel.variant_id == variant_id
        )
        stmt = select(CartItemModel).where(
            _owned_by(identity),
            CartItemModel.product_id == product_id,
            variant_clause,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def add_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def delete_item(self, item: CartItemModel) -> None:
        self.db.delete(item)
        self.db.flush()

    def clear(self, identity: Identity) -> int:
        result = self.db.execute(delete(CartItemModel).where(_owned_by(identity)))
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
