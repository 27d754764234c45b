from storefront.models.cart import CartItem
from storefront.services.cart_snapshot import CartLine
from storefront.services.order_ledger import OrderLedger
from storefront.services.reconciler import FulfillmentReconciler

from conftest import USER_ID


def test_add_creates_cart_and_accumulates(client, db, auth_headers, song_x):
    assert client.get("/cart", headers=auth_headers).json() == {"items": [], "total_cents": 0}

    client.post("/cart/add", headers=auth_headers, json={"song_id": "song-x"})
    resp = client.post("/cart/add", headers=auth_headers, json={"song_id": "song-x", "qty": 2})

    assert resp.status_code == 200
    assert resp.json() == {
        "items": [{
            "song_id": "song-x", "title": "Midnight Taxi", "qty": 3,
            "unit_price_cents": 500, "line_total_cents": 1500,
        }],
        "total_cents": 1500,
    }


def test_add_unknown_song_is_404(client, auth_headers):
    resp = client.post("/cart/add", headers=auth_headers, json={"song_id": "nope"})
    assert resp.status_code == 404


def test_cart_requires_authentication(client):
    assert client.get("/cart").status_code == 401


def test_remove_and_clear(client, db, auth_headers, song_x):
    client.post("/cart/add", headers=auth_headers, json={"song_id": "song-x"})

    assert client.delete("/cart/items/song-x", headers=auth_headers).json()["items"] == []
    assert client.delete("/cart/items/song-x", headers=auth_headers).status_code == 404

    client.post("/cart/add", headers=auth_headers, json={"song_id": "song-x"})
    assert client.delete("/cart", headers=auth_headers).json() == {"items": [], "total_cents": 0}
    db.expire_all()
    assert db.query(CartItem).count() == 0


def test_order_detail_is_private(client, db, auth_headers, song_x):
    order_id = OrderLedger(db).create_pending(USER_ID, [CartLine("song-x", 2, "Midnight Taxi", 500)], "ZAR")
    other = OrderLedger(db).create_pending("someone-else", [CartLine("song-x", 1, "Midnight Taxi", 500)], "ZAR")

    resp = client.get(f"/orders/{order_id}", headers=auth_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert (body["status"], body["amount_cents"], body["currency"]) == ("pending", 1000, "ZAR")
    assert body["items"] == [{"song_id": "song-x", "title": "Midnight Taxi", "qty": 2, "price_cents": 500}]

    assert client.get(f"/orders/{other}", headers=auth_headers).status_code == 404


def test_purchases_list_owned_songs(client, db, auth_headers, song_x):
    order_id = OrderLedger(db).create_pending(USER_ID, [CartLine("song-x", 1, "Midnight Taxi", 500)], "ZAR")
    FulfillmentReconciler(db).reconcile(
        {"status": "paid", "metadata": {"order_id": order_id, "user_id": USER_ID}}
    )

    items = client.get("/purchases", headers=auth_headers).json()["items"]

    assert [(i["song_id"], i["title"], i["order_id"]) for i in items] == [("song-x", "Midnight Taxi", order_id)]
