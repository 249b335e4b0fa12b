from decimal import Decimal

from conftest import add_to_cart, user_params, OTHER_CUSTOMER_ID


def test_guest_gets_session_cookie(client, catalog):
    resp = client.get("/cart")

    assert resp.status_code == 200
    session_id = resp.cookies.get("cart_session")
    assert session_id
    assert resp.json()["session_id"] == session_id
    assert resp.json()["items"] == []


def test_add_merges_same_product(client, users, catalog):
    add_to_cart(client, catalog["mug"].id, 2)
    resp = add_to_cart(client, catalog["mug"].id, 3)

    assert resp.status_code == 200
    cart = resp.json()
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 5
    assert cart["item_count"] == 5
    assert Decimal(cart["subtotal"]) == Decimal("250.00")
    assert cart["currency"] == "ILS"


def test_add_beyond_stock_is_rejected(client, users, catalog):
    add_to_cart(client, catalog["mug"].id, 8)
    resp = add_to_cart(client, catalog["mug"].id, 3)

    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["available"] == 10
    assert detail["product_id"] == catalog["mug"].id


def test_variant_price_and_stock(client, users, catalog):
    resp = add_to_cart(client, catalog["tee"].id, 2, variant_id=catalog["tee_m"].id)

    assert resp.status_code == 200
    line = resp.json()["items"][0]
    assert line["variant_name"] == "M"
    assert Decimal(line["price"]) == Decimal("120.00")
    assert line["available_quantity"] == 3

    sold_out = add_to_cart(client, catalog["tee"].id, 1, variant_id=catalog["tee_l"].id)
    assert sold_out.status_code == 400


def test_variant_must_belong_to_product(client, users, catalog):
    resp = add_to_cart(client, catalog["mug"].id, 1, variant_id=catalog["tee_m"].id)
    assert resp.status_code == 404


def test_inactive_product_cannot_be_added(client, users, catalog):
    resp = add_to_cart(client, catalog["hidden"].id, 1)
    assert resp.status_code == 404


def test_backorder_allows_more_than_available(client, users, catalog):
    resp = add_to_cart(client, catalog["print"].id, 4)

    assert resp.status_code == 200
    assert resp.json()["items"][0]["in_stock"] is True


def test_update_and_remove_item(client, users, catalog):
    item_id = add_to_cart(client, catalog["mug"].id, 1).json()["items"][0]["id"]

    updated = client.put(f"/cart/items/{item_id}", json={"quantity": 4}, params=user_params())
    assert updated.status_code == 200
    assert updated.json()["items"][0]["quantity"] == 4

    too_many = client.put(f"/cart/items/{item_id}", json={"quantity": 11}, params=user_params())
    assert too_many.status_code == 400

    zero = client.put(f"/cart/items/{item_id}", json={"quantity": 0}, params=user_params())
    assert zero.status_code == 422

    removed = client.delete(f"/cart/items/{item_id}", params=user_params())
    assert removed.status_code == 200
    assert removed.json()["items"] == []


def test_items_of_another_identity_are_not_found(client, users, catalog):
    item_id = add_to_cart(client, catalog["mug"].id, 1).json()["items"][0]["id"]

    resp = client.delete(f"/cart/items/{item_id}", params=user_params(OTHER_CUSTOMER_ID))
    assert resp.status_code == 404


def test_clear_cart(client, users, catalog):
    add_to_cart(client, catalog["mug"].id, 1)
    add_to_cart(client, catalog["print"].id, 1)

    resp = client.delete("/cart", params=user_params())

    assert resp.status_code == 200
    assert resp.json()["items"] == []


def test_merge_guest_cart_into_user_cart(client, users, catalog):
    add_to_cart(client, catalog["mug"].id, 2, session="guest-abc")
    add_to_cart(client, catalog["print"].id, 1, session="guest-abc")
    add_to_cart(client, catalog["mug"].id, 1)

    resp = client.post("/cart/merge", json={"session_id": "guest-abc"}, params=user_params())

    assert resp.status_code == 200
    quantities = {line["name"]: line["quantity"] for line in resp.json()["items"]}
    assert quantities == {"Mug": 3, "Print": 1}

    guest = client.get("/cart", headers={"X-Cart-Session": "guest-abc"})
    assert guest.json()["items"] == []


def test_merge_beyond_stock_is_rejected(client, users, catalog):
    add_to_cart(client, catalog["mug"].id, 6, session="guest-abc")
    add_to_cart(client, catalog["mug"].id, 5)

    resp = client.post("/cart/merge", json={"session_id": "guest-abc"}, params=user_params())

    assert resp.status_code == 400
    assert resp.json()["detail"]["available"] == 10
    #both carts untouched
    user_cart = client.get("/cart", params=user_params())
    assert [line["quantity"] for line in user_cart.json()["items"]] == [5]
    guest = client.get("/cart", headers={"X-Cart-Session": "guest-abc"})
    assert [line["quantity"] for line in guest.json()["items"]] == [6]


def test_merge_requires_user(client, catalog):
    resp = client.post("/cart/merge", json={"session_id": "guest-abc"})
    assert resp.status_code == 401


def test_unknown_user_is_rejected(client, catalog):
    resp = client.get("/cart", params={"user_id": 12345})
    assert resp.status_code == 403
