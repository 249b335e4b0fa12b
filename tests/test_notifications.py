from storefront.data.models import OrderModel
from storefront.services.notification_service import (
    NotificationService,
    render_order_confirmation,
    send_order_confirmation_task,
)
from storefront.services.serializers import order_payload

from conftest import place_order, pay


def test_confirmation_email_content(client, db, users, catalog):
    placed = place_order(client, catalog["mug"].id, 2)
    pay(client, placed)

    payload = order_payload(db.get(OrderModel, placed["order_id"]))
    msg = render_order_confirmation(payload)

    assert msg["To"] == "dana@example.com"
    assert msg["Subject"] == f"Order Confirmation - {placed['order_number']}"
    body = msg.get_content()
    assert "Mug x2" in body
    assert "Total: 125.00 ILS" in body


def test_task_only_logs_without_smtp(client, db, users, catalog):
    placed = place_order(client, catalog["mug"].id, 1)
    payload = order_payload(db.get(OrderModel, placed["order_id"]))

    result = send_order_confirmation_task(payload)

    assert result == {"order_number": placed["order_number"], "status": "logged"}


def test_service_queues_task_eagerly(client, db, users, catalog):
    placed = place_order(client, catalog["mug"].id, 1)

    assert NotificationService().send_order_confirmation(db.get(OrderModel, placed["order_id"])) is True


def test_service_swallows_failures(client, db, users, catalog, monkeypatch):
    placed = place_order(client, catalog["mug"].id, 1)

    def broken(*args, **kwargs):
        raise ConnectionError("broker down")

    monkeypatch.setattr(send_order_confirmation_task, "delay", broken)

    assert NotificationService().send_order_confirmation(db.get(OrderModel, placed["order_id"])) is False
