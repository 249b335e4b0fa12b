# storefront/services/notification_service.py
import smtplib
from email.message import EmailMessage
from typing import Any, Dict

from storefront.celery_worker import celery_app
from storefront.data.models.order import OrderModel
from storefront.services.serializers import order_payload
from storefront.utils.settings import SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD, MAIL_FROM
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Order notifications.
    Uses Celery for async delivery; never raises to the caller.
    """

    def send_order_confirmation(self, order: OrderModel) -> bool:
        try:
            send_order_confirmation_task.delay(order_payload(order))
            return True
        except Exception as e:
            logger.warning(f"Order confirmation for {order.order_number} not queued: {e}")
            return False


def render_order_confirmation(order: Dict[str, Any]) -> EmailMessage:
    currency = order["currency"]
    lines = [
        f"Hi {order['shipping']['first_name']},",
        "",
        "Thank you for your order! Here are your order details:",
        "",
        f"Order #{order['order_number']}",
        f"Status: {order['status']}",
        "",
    ]
    for item in order["items"]:
        lines.append(f"  {item['name']} x{item['quantity']}  {item['total']} {currency}")
    lines.append("")
    lines.append(f"Subtotal: {order['subtotal']} {currency}")
    if float(order["discount_amount"]) > 0:
        lines.append(f"Discount: -{order['discount_amount']} {currency}")
    lines.append(f"Shipping: {order['shipping_cost']} {currency}")
    lines.append(f"Total: {order['total']} {currency}")

    msg = EmailMessage()
    msg["Subject"] = f"Order Confirmation - {order['order_number']}"
    msg["From"] = MAIL_FROM
    msg["To"] = order["email"]
    msg.set_content("\n".join(lines))
    return msg


@celery_app.task(name="storefront.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(order: Dict[str, Any]):
    """
    Celery task: email the order confirmation.
    Without SMTP_HOST only logs.
    """
    msg = render_order_confirmation(order)

    if not SMTP_HOST:
        logger.info(f"[NOTIFICATION] {order['email']}: order {order['order_number']} confirmed (SMTP not configured)")
        return {"order_number": order["order_number"], "status": "logged"}

    with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=10) as smtp:
        smtp.starttls()
        if SMTP_USER:
            smtp.login(SMTP_USER, SMTP_PASSWORD)
        smtp.send_message(msg)

    logger.info(f"[NOTIFICATION] Order confirmation sent to {order['email']} for {order['order_number']}")
    return {"order_number": order["order_number"], "status": "sent"}
