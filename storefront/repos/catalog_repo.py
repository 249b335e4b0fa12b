# storefront/repos/catalog_repo.py
from sqlalchemy import update
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel
from storefront.data.models.product_variant import ProductVariantModel


class CatalogRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id)

    def get_variant(self, variant_id: int) -> ProductVariantModel | None:
        return self.db.get(ProductVariantModel, variant_id)

    def decrement_stock(
        self,
        product_id: int,
        variant_id: int | None,
        quantity: int,
        allow_backorder: bool,
    ) -> int:
        """
        Conditional decrement: UPDATE ... SET quantity = quantity - n WHERE quantity >= n.
        Backorderable products may go below zero. Returns rowcount (0 = not enough stock).
        """
        model = ProductVariantModel if variant_id is not None else ProductModel
        row_id = variant_id if variant_id is not None else product_id

        stmt = update(model).where(model.id == row_id)
        if not allow_backorder:
            stmt = stmt.where(model.quantity >= quantity)
        stmt = stmt.values(quantity=model.quantity - quantity)

        return self.db.execute(stmt).rowcount

    def increment_stock(self, product_id: int | None, variant_id: int | None, quantity: int) -> int:
        if variant_id is not None:
            model, row_id = ProductVariantModel, variant_id
        elif product_id is not None:
            model, row_id = ProductModel, product_id
        else:
            #product deleted from the catalog
            return 0

        stmt = (
            update(model)
            .where(model.id == row_id)
            .values(quantity=model.quantity + quantity)
        )
        return self.db.execute(stmt).rowcount
