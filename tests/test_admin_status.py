from storefront.data.models import OrderModel, ProductModel

from conftest import place_order, pay, user_params, ADMIN_ID


def _patch(client, order_id, user_id=ADMIN_ID, **body):
    return client.patch(f"/orders/{order_id}/status", json=body, params=user_params(user_id))


def test_ship_and_deliver(client, users, catalog):
    placed = place_order(client, catalog["mug"].id, 1)
    pay(client, placed)

    shipped = _patch(client, placed["order_id"], status="SHIPPED", tracking_number="TRK123")
    assert shipped.status_code == 200
    assert shipped.json()["status"] == "SHIPPED"
    assert shipped.json()["tracking_number"] == "TRK123"
    assert shipped.json()["shipped_at"] is not None
    assert shipped.json()["timeline"][0]["note"] == "Status updated to SHIPPED"

    delivered = _patch(client, placed["order_id"], status="DELIVERED", note="Left at the door")
    assert delivered.status_code == 200
    assert delivered.json()["delivered_at"] is not None
    assert delivered.json()["timeline"][0]["note"] == "Left at the door"


def test_processing_step(client, users, catalog):
    placed = place_order(client, catalog["mug"].id, 1)
    pay(client, placed)

    assert _patch(client, placed["order_id"], status="PROCESSING").status_code == 200
    assert _patch(client, placed["order_id"], status="SHIPPED").status_code == 200


def test_backward_transition_is_rejected(client, users, catalog):
    placed = place_order(client, catalog["mug"].id, 1)
    pay(client, placed)
    _patch(client, placed["order_id"], status="SHIPPED")
    _patch(client, placed["order_id"], status="DELIVERED")

    resp = _patch(client, placed["order_id"], status="PENDING")

    assert resp.status_code == 409
    assert resp.json()["detail"] == {
        "error": "Order cannot move from DELIVERED to PENDING",
        "current": "DELIVERED",
        "target": "PENDING",
    }


def test_unpaid_order_cannot_ship(client, users, catalog):
    placed = place_order(client, catalog["mug"].id, 1)

    resp = _patch(client, placed["order_id"], status="SHIPPED")

    assert resp.status_code == 409


def test_refund_after_delivery_issues_gateway_refund(client, db, users, catalog, gateway):
    placed = place_order(client, catalog["mug"].id, 1)
    pay(client, placed)
    _patch(client, placed["order_id"], status="SHIPPED")
    _patch(client, placed["order_id"], status="DELIVERED")

    resp = _patch(client, placed["order_id"], status="REFUNDED")

    assert resp.status_code == 200
    assert resp.json()["payment_status"] == "REFUNDED"
    assert gateway.refunds == [f"pi_{placed['session_id']}"]
    assert resp.json()["timeline"][0]["note"] == "Refunded (refund re_1: succeeded)"
    #no inventory effects
    db.expire_all()
    assert db.get(ProductModel, catalog["mug"].id).quantity == 9


def test_admin_cancel_runs_full_flow(client, db, users, catalog, gateway):
    placed = place_order(client, catalog["mug"].id, 3)
    pay(client, placed)

    resp = _patch(client, placed["order_id"], status="CANCELLED", note="Fraud check")

    assert resp.status_code == 200
    assert resp.json()["payment_status"] == "REFUNDED"
    assert len(gateway.refunds) == 1
    db.expire_all()
    assert db.get(ProductModel, catalog["mug"].id).quantity == 10


def test_customer_cannot_change_status(client, users, catalog):
    placed = place_order(client, catalog["mug"].id, 1)

    resp = _patch(client, placed["order_id"], user_id=1, status="CONFIRMED")

    assert resp.status_code == 403


def test_invalid_status_value(client, users, catalog):
    placed = place_order(client, catalog["mug"].id, 1)
    assert _patch(client, placed["order_id"], status="LOST").status_code == 422


def test_failed_refund_keeps_delivered_order(client, db, users, catalog, gateway):
    placed = place_order(client, catalog["mug"].id, 1)
    pay(client, placed)
    _patch(client, placed["order_id"], status="SHIPPED")
    _patch(client, placed["order_id"], status="DELIVERED")
    gateway.fail_refund = True

    resp = _patch(client, placed["order_id"], status="REFUNDED")

    assert resp.status_code == 502
    db.expire_all()
    order = db.get(OrderModel, placed["order_id"])
    assert order.status == "DELIVERED"
    assert order.payment_status == "PAID"


def test_unpaid_order_cannot_be_confirmed_by_admin(client, db, users, catalog):
    placed = place_order(client, catalog["mug"].id, 1)

    resp = _patch(client, placed["order_id"], status="CONFIRMED")

    assert resp.status_code == 409
    assert resp.json()["detail"]["payment_status"] == "PENDING"

    #the real payment still settles the order
    pay(client, placed)
    db.expire_all()
    order = db.get(OrderModel, placed["order_id"])
    assert (order.status, order.payment_status) == ("CONFIRMED", "PAID")
    assert db.get(ProductModel, catalog["mug"].id).quantity == 9
