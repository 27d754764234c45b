# storefront/services/cart_snapshot.py
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.models.cart import Cart
from storefront.models.song import Song
from storefront.utils.errors import EmptyCart, InvalidPrice, UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    song_id: str
    qty: int
    title: str
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.qty


@dataclass(frozen=True)
class CartSnapshot:
    cart_id: int
    lines: List[CartLine]

    @property
    def total_cents(self) -> int:
        return sum(line.line_total_cents for line in self.lines)


def latest_cart(db: Session, user_id: str) -> Optional[Cart]:
    # The most recent cart is the user's current one
    return (
        db.query(Cart)
        .filter(Cart.user_id == user_id)
        .order_by(Cart.created_at.desc(), Cart.id.desc())
        .first()
    )


def _coerce_qty(value) -> int:
    try:
        qty = int(value or 1)
    except (TypeError, ValueError):
        qty = 1
    return max(1, qty)


class CartSnapshotReader:
    """Turns the user's cart into priced lines using catalog prices only."""

    def __init__(self, db: Session, min_unit_price_cents: int = 50):
        self.db = db
        self.min_unit_price_cents = min_unit_price_cents

    def read(self, user_id: str) -> CartSnapshot:
        try:
            cart = latest_cart(self.db, user_id)
            if not cart or not cart.items:
                raise EmptyCart()
            cart_id = cart.id

            # Merge duplicates, drop lines without a song reference
            quantities: Dict[str, int] = {}
            for item in cart.items:
                if not isinstance(item.song_id, str) or not item.song_id:
                    continue
                quantities[item.song_id] = quantities.get(item.song_id, 0) + _coerce_qty(item.quantity)

            songs = {}
            if quantities:
                rows = self.db.query(Song).filter(Song.id.in_(list(quantities))).all()
                songs = {s.id: s for s in rows}
        except SQLAlchemyError as e:
            logger.exception("Failed to load cart for checkout: %s", e)
            raise UpstreamFailure("Failed to load cart", details=str(e))

        lines = []
        for song_id, qty in quantities.items():
            song = songs.get(song_id)
            if song is None:
                logger.info("Dropping cart line for unknown song %s", song_id)
                continue
            lines.append(CartLine(
                song_id=song_id,
                qty=qty,
                title=song.title or "Song",
                unit_price_cents=int(song.price_cents or 0),
            ))

        if not lines:
            raise EmptyCart()

        if any(line.unit_price_cents < self.min_unit_price_cents for line in lines):
            raise InvalidPrice()

        return CartSnapshot(cart_id=cart_id, lines=lines)
