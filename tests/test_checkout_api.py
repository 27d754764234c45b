import httpx
import pytest

from storefront.models.order import Order
from storefront.models.song import Song
from storefront.utils.identity import create_access_token

from conftest import USER_ID, fill_cart


def orders(db):
    db.expire_all()
    return db.query(Order).all()


def test_checkout_creates_pending_order_and_returns_redirect(client, db, gateway, auth_headers, song_x):
    fill_cart(db, USER_ID, ("song-x", 2))

    resp = client.post("/checkout", headers=auth_headers)

    assert resp.status_code == 200
    assert resp.json() == {"redirectUrl": "https://pay.test/checkout/ch_test_1"}

    [order] = orders(db)
    assert order.amount_cents == 1000
    assert order.status == "pending"
    assert order.gateway_checkout_id == "ch_test_1"
    assert order.user_id == USER_ID


def test_gateway_request_carries_order_and_user(client, db, gateway, auth_headers, song_x):
    cart = fill_cart(db, USER_ID, ("song-x", 2))

    client.post("/checkout", headers=auth_headers)

    [order] = orders(db)
    request = gateway.requests[-1]
    assert str(request.url) == "https://gateway.test/api/checkouts"
    assert request.headers["Authorization"] == "Bearer sk_test_123"
    assert request.headers["Idempotency-Key"] == order.id
    assert gateway.last_payload == {
        "amount": 1000,
        "currency": "ZAR",
        "description": "BliximStraat: Midnight Taxi",
        "successUrl": f"https://shop.test/music?payment=success&order={order.id}",
        "cancelUrl": f"https://shop.test/music?payment=cancelled&order={order.id}",
        "failureUrl": f"https://shop.test/music?payment=failed&order={order.id}",
        "metadata": {"order_id": order.id, "user_id": USER_ID, "cart_id": str(cart.id)},
    }


def test_multi_item_description(client, db, gateway, auth_headers, song_x):
    db.add(Song(id="song-y", title="Stoep Blues", price_cents=1299))
    db.commit()
    fill_cart(db, USER_ID, ("song-x", 1), ("song-y", 1))

    client.post("/checkout", headers=auth_headers)

    assert gateway.last_payload["description"] == "BliximStraat cart (2 items)"
    assert gateway.last_payload["amount"] == 1799


def test_client_supplied_prices_are_ignored(client, db, gateway, auth_headers, song_x):
    fill_cart(db, USER_ID, ("song-x", 1))

    resp = client.post(
        "/checkout", headers=auth_headers,
        json={"items": [{"song_id": "song-x", "price_cents": 1}], "amount": 1},
    )

    assert resp.status_code == 200
    assert gateway.last_payload["amount"] == 500


def test_missing_token_is_401(client, gateway):
    resp = client.post("/checkout")

    assert resp.status_code == 401
    assert "error" in resp.json()
    assert gateway.requests == []


def test_invalid_token_is_401(client, gateway):
    resp = client.post("/checkout", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


@pytest.mark.parametrize("scheme", ["Basic", "bearer", "Token"])
def test_non_bearer_scheme_is_401(client, gateway, settings, scheme):
    token = create_access_token(USER_ID, settings)

    resp = client.post("/checkout", headers={"Authorization": f"{scheme} {token}"})

    assert resp.status_code == 401
    assert "error" in resp.json()
    assert gateway.requests == []


def test_empty_cart_is_400(client, db, gateway, auth_headers):
    resp = client.post("/checkout", headers=auth_headers)

    assert resp.status_code == 400
    assert resp.json() == {"error": "Cart is empty"}
    assert orders(db) == []
    assert gateway.requests == []


def test_invalid_price_is_400(client, db, gateway, auth_headers):
    db.add(Song(id="song-cheap", title="Glitch", price_cents=10))
    db.commit()
    fill_cart(db, USER_ID, ("song-cheap", 1))

    resp = client.post("/checkout", headers=auth_headers)

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid price detected"}
    assert orders(db) == []


def test_gateway_rejection_fails_the_order(client, db, gateway, auth_headers, song_x):
    fill_cart(db, USER_ID, ("song-x", 1))
    gateway.status_code = 422
    gateway.body = {"errorCode": "invalid_amount"}

    resp = client.post("/checkout", headers=auth_headers)

    assert resp.status_code == 500
    assert resp.json()["error"] == "Payment gateway checkout failed"
    assert resp.json()["details"] == {"errorCode": "invalid_amount"}
    [order] = orders(db)
    assert order.status == "failed"


def test_gateway_unreachable_fails_the_order(client, db, gateway, auth_headers, song_x):
    fill_cart(db, USER_ID, ("song-x", 1))
    gateway.error = httpx.ConnectTimeout("timed out")

    resp = client.post("/checkout", headers=auth_headers)

    assert resp.status_code == 500
    [order] = orders(db)
    assert order.status == "failed"


def test_missing_redirect_url_fails_the_order(client, db, gateway, auth_headers, song_x):
    fill_cart(db, USER_ID, ("song-x", 1))
    gateway.body = {"id": "ch_no_redirect"}

    resp = client.post("/checkout", headers=auth_headers)

    assert resp.status_code == 500
    [order] = orders(db)
    assert order.status == "failed"


def test_each_checkout_creates_a_fresh_order(client, db, gateway, auth_headers, song_x):
    fill_cart(db, USER_ID, ("song-x", 1))
    gateway.status_code = 503
    assert client.post("/checkout", headers=auth_headers).status_code == 500

    gateway.status_code = 200
    assert client.post("/checkout", headers=auth_headers).status_code == 200

    assert sorted(o.status for o in orders(db)) == ["failed", "pending"]
