#import all models so SQLAlchemy registers them in Base.metadata

from storefront.data.models.user import UserModel
from storefront.data.models.address import AddressModel
from storefront.data.models.product import ProductModel
from storefront.data.models.product_variant import ProductVariantModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.discount_code import DiscountCodeModel
from storefront.data.models.order import OrderModel
from storefront.data.models.order_item import OrderItemModel
from storefront.data.models.order_timeline import OrderTimelineModel

__all__ = [
    "UserModel",
    "AddressModel",
    "ProductModel",
    "ProductVariantModel",
    "CartItemModel",
    "DiscountCodeModel",
    "OrderModel",
    "OrderItemModel",
    "OrderTimelineModel",
]
