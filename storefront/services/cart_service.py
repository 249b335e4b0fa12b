# storefront/services/cart_service.py
from decimal import Decimal
from typing import Dict, Any

from sqlalchemy.orm import Session

from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import NotFoundError, ValidationError
from storefront.domain.identity import Identity
from storefront.domain.pricing import price_cart_item, ensure_in_stock, money, PricedLine
from storefront.repos.cart_repo import CartRepo
from storefront.repos.catalog_repo import CatalogRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Cart snapshot per identity (user or anonymous session).
    commands (add, update, remove, clear, merge) modify state,
    query (get) is read only
    """

    def __init__(self, db: Session, currency: str = "ILS"):
        self.repo = CartRepo(db)
        self.catalog = CatalogRepo(db)
        self.currency = currency

    #query
    def get_cart(self, identity: Identity) -> Dict[str, Any]:
        items = self.repo.list_items(identity)

        lines = []
        subtotal = Decimal("0.00")
        for item in items:
            priced = price_cart_item(item)
            subtotal += priced.total
            lines.append(
                {
                    "id": item.id,
                    "product_id": priced.product_id,
                    "variant_id": priced.variant_id,
                    "name": priced.name,
                    "variant_name": priced.variant_name,
                    "quantity": priced.quantity,
                    "price": priced.unit_price,
                    "total": priced.total,
                    "available_quantity": priced.available,
                    "in_stock": priced.available > 0 or priced.allow_backorder,
                }
            )

        return {
            "session_id": identity.session_id,
            "items": lines,
            "item_count": sum(line["quantity"] for line in lines),
            "subtotal": money(subtotal),
            "currency": self.currency,
        }

    #commands
    def add_item(
        self,
        identity: Identity,
        product_id: int,
        quantity: int,
        variant_id: int | None = None,
    ) -> Dict[str, Any]:

        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        product = self.catalog.get_product(product_id)
        if not product or not product.is_active:
            raise NotFoundError("Product not found", product_id=product_id)

        variant = None
        if variant_id is not None:
            variant = self.catalog.get_variant(variant_id)
            if not variant or variant.product_id != product.id or not variant.is_active:
                raise NotFoundError("Product variant not found", variant_id=variant_id)

        existing = self.repo.find_item(identity, product_id, variant_id)
        new_quantity = quantity + (existing.quantity if existing else 0)

        #advisory only, nothing is reserved
        ensure_in_stock(self._line(product, variant, new_quantity))

        if existing:
            logger.info(
                f"Product {product_id} already in cart, quantity "
                f"{existing.quantity} -> {new_quantity}"
            )
            existing.quantity = new_quantity
        else:
            logger.info(f"Adding product {product_id} (variant {variant_id}) to cart")
            self.repo.add_item(
                CartItemModel(
                    user_id=identity.user_id,
                    session_id=identity.session_id,
                    product_id=product_id,
                    variant_id=variant_id,
                    quantity=quantity,
                )
            )

        self.repo.commit()
        return self.get_cart(identity)

    def update_item(self, identity: Identity, item_id: int, quantity: int) -> Dict[str, Any]:
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")

        item = self.repo.get_item(identity, item_id)
        if not item:
            raise NotFoundError("Cart item not found", item_id=item_id)

        ensure_in_stock(price_cart_item(item), quantity)

        item.quantity = quantity
        self.repo.commit()

        logger.info(f"Cart item {item_id} quantity set to {quantity}")
        return self.get_cart(identity)

    def remove_item(self, identity: Identity, item_id: int) -> Dict[str, Any]:
        item = self.repo.get_item(identity, item_id)
        if not item:
            raise NotFoundError("Cart item not found", item_id=item_id)

        self.repo.delete_item(item)
        self.repo.commit()

        logger.info(f"Cart item {item_id} removed")
        return self.get_cart(identity)

    def clear(self, identity: Identity) -> Dict[str, Any]:
        removed = self.repo.clear(identity)
        self.repo.commit()
        logger.info(f"Cart cleared, {removed} items removed")
        return self.get_cart(identity)

    def merge_guest_cart(self, user_id: int, session_id: str | None) -> Dict[str, Any]:
        """Moves guest rows to the user after login, summing quantities of duplicates."""
        user = Identity(user_id=user_id)
        if not session_id:
            return self.get_cart(user)

        guest_items = self.repo.list_items(Identity(session_id=session_id))
        pairs = [
            (guest_item, self.repo.find_item(user, guest_item.product_id, guest_item.variant_id))
            for guest_item in guest_items
        ]

        #checked before any row moves, a rejected merge leaves both carts as they were
        for guest_item, existing in pairs:
            if existing:
                ensure_in_stock(price_cart_item(guest_item), guest_item.quantity + existing.quantity)

        for guest_item, existing in pairs:
            if existing:
                existing.quantity += guest_item.quantity
                self.repo.delete_item(guest_item)
            else:
                guest_item.user_id = user_id
                guest_item.session_id = None

        self.repo.commit()
        logger.info(f"Merged {len(guest_items)} guest cart items into user {user_id} cart")
        return self.get_cart(user)

    @staticmethod
    def _line(product, variant, quantity: int) -> PricedLine:
        source = variant if variant is not None else product
        return PricedLine(
            product_id=product.id,
            variant_id=variant.id if variant is not None else None,
            name=product.name,
            variant_name=variant.name if variant is not None else None,
            sku=None,
            unit_price=money(source.price),
            quantity=quantity,
            available=source.quantity,
            allow_backorder=bool(product.allow_backorder),
        )
