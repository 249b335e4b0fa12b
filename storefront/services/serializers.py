# storefront/services/serializers.py
from typing import Dict, Any

from storefront.data.models.order import OrderModel
from storefront.domain.schemas import OrderOut


def order_to_dict(order: OrderModel) -> Dict[str, Any]:
    #plain dict, validated by the response_model
    return {
        "id": order.id,
        "order_number": order.order_number,
        "user_id": order.user_id,
        "email": order.email,
        "phone": order.phone,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "subtotal": order.subtotal,
        "shipping_cost": order.shipping_cost,
        "discount_amount": order.discount_amount,
        "total": order.total,
        "currency": order.currency,
        "notes": order.notes,
        "discount_code": order.discount_code.code if order.discount_code else None,
        "shipping": {
            "first_name": order.ship_first_name,
            "last_name": order.ship_last_name,
            "phone": order.ship_phone,
            "street": order.ship_street,
            "city": order.ship_city,
            "state": order.ship_state,
            "postal_code": order.ship_postal_code,
            "country": order.ship_country,
        },
        "tracking_number": order.tracking_number,
        "shipped_at": order.shipped_at,
        "delivered_at": order.delivered_at,
        "cancelled_at": order.cancelled_at,
        "created_at": order.created_at,
        "items": [
            {
                "id": i.id,
                "product_id": i.product_id,
                "variant_id": i.variant_id,
                "name": i.name,
                "sku": i.sku,
                "price": i.price,
                "quantity": i.quantity,
                "total": i.total,
            }
            for i in order.items
        ],
        "timeline": [
            {"status": t.status, "note": t.note, "created_at": t.created_at}
            for t in order.timeline
        ],
    }


def order_payload(order: OrderModel) -> Dict[str, Any]:
    """JSON-safe snapshot of an order, used as a Celery task argument."""
    return OrderOut.model_validate(order_to_dict(order)).model_dump(mode="json")
