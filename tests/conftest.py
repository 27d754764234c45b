import base64
import json
import time

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.config import Settings, get_settings
from storefront.database import Base, get_db
from storefront.main import create_app
from storefront.models.cart import Cart, CartItem
from storefront.models.song import Song
import storefront.models.order  # noqa: F401
import storefront.models.purchase  # noqa: F401
import storefront.models.log  # noqa: F401
from storefront.utils.gateway_client import GatewayClient, get_gateway_client
from storefront.utils.identity import create_access_token
from storefront.utils.webhook_auth import sign

WEBHOOK_KEY = b"storefront-test-webhook-signing-key"
WEBHOOK_SECRET = "whsec_" + base64.b64encode(WEBHOOK_KEY).decode()
USER_ID = "5f0c3c8e-0d0a-4d8e-9a41-3b1f2f6a9e11"


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite://",
        JWT_SECRET="test-jwt-secret",
        GATEWAY_API_URL="https://gateway.test",
        GATEWAY_SECRET_KEY="sk_test_123",
        WEBHOOK_SECRET=WEBHOOK_SECRET,
        SITE_URL="https://shop.test",
        STORE_NAME="BliximStraat",
        CURRENCY="ZAR",
        MIN_UNIT_PRICE_CENTS=50,
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class FakeGateway:
    """Records checkout requests and answers with a configurable response."""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.body = {"id": "ch_test_1", "redirectUrl": "https://pay.test/checkout/ch_test_1"}
        self.error = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json=self.body)

    @property
    def last_payload(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(settings, session_factory, gateway):
    app = create_app(create_tables=False)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_gateway_client] = lambda: GatewayClient(
        settings, transport=httpx.MockTransport(gateway.handler)
    )
    return TestClient(app)


@pytest.fixture
def auth_headers(settings):
    return {"Authorization": f"Bearer {create_access_token(USER_ID, settings)}"}


@pytest.fixture
def song_x(db):
    song = Song(id="song-x", title="Midnight Taxi", price_cents=500)
    db.add(song)
    db.commit()
    return song


def fill_cart(db, user_id, *items):
    """items are (song_id, quantity) pairs."""
    cart = Cart(user_id=user_id)
    db.add(cart)
    db.flush()
    for song_id, quantity in items:
        db.add(CartItem(cart_id=cart.id, song_id=song_id, quantity=quantity))
    db.commit()
    return cart


def signed_headers(body: bytes, event_id: str = "msg_1", timestamp=None, key: bytes = WEBHOOK_KEY):
    timestamp = str(int(time.time()) if timestamp is None else timestamp)
    return {
        "webhook-id": event_id,
        "webhook-timestamp": timestamp,
        "webhook-signature": "v1," + sign(key, event_id, timestamp, body),
        "content-type": "application/json",
    }
