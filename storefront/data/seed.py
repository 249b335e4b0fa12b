# storefront/data/seed.py
from decimal import Decimal

from storefront.data.database import SessionLocal, Base, engine
from storefront.data.models import ProductModel, ProductVariantModel, DiscountCodeModel, UserModel
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def seed():
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            logger.info("Catalog already seeded")
            return

        db.add_all(
            [
                ProductModel(name="Ceramic Mug", sku="MUG-001", price=Decimal("50.00"), quantity=40),
                ProductModel(name="Linen Tote Bag", sku="BAG-001", price=Decimal("89.90"), quantity=15),
                ProductModel(
                    name="Cotton T-Shirt",
                    sku="TEE-001",
                    price=Decimal("120.00"),
                    quantity=0,
                    variants=[
                        ProductVariantModel(name="S", sku="TEE-001-S", price=Decimal("120.00"), quantity=10),
                        ProductVariantModel(name="M", sku="TEE-001-M", price=Decimal("120.00"), quantity=12),
                        ProductVariantModel(name="XL", sku="TEE-001-XL", price=Decimal("130.00"), quantity=4),
                    ],
                ),
                #made to order
                ProductModel(
                    name="Custom Print",
                    sku="PRN-001",
                    price=Decimal("240.00"),
                    quantity=0,
                    allow_backorder=True,
                ),
            ]
        )
        db.add_all(
            [
                DiscountCodeModel(code="WELCOME10", type="PERCENTAGE", value=Decimal("10")),
                DiscountCodeModel(
                    code="SAVE20",
                    type="FIXED_AMOUNT",
                    value=Decimal("20"),
                    min_order_amount=Decimal("50"),
                ),
                DiscountCodeModel(code="FREESHIP", type="FREE_SHIPPING", value=Decimal("0"), max_uses=100),
            ]
        )
        if not db.get(UserModel, 1):
            db.add(UserModel(id=1, name="Store Admin", email="admin@example.com", role="ADMIN"))

        db.commit()
        logger.info("Demo catalog seeded")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
