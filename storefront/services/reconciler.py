# storefront/services/reconciler.py
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.models.cart import Cart, CartItem
from storefront.models.purchase import UserPurchase
from storefront.services.order_ledger import OrderLedger
from storefront.utils.errors import InvalidTransition, OrderNotFound, UpstreamFailure

logger = logging.getLogger(__name__)

PAID_STATUSES = frozenset({"succeeded", "successful", "paid", "completed"})
FAILED_STATUSES = frozenset({"failed", "cancelled", "canceled"})

# Places where gateway event formats have carried status and metadata, in lookup order
FIELD_PATHS: Sequence[Sequence[str]] = (
    (),
    ("data",),
    ("payment",),
    ("event",),
    ("payload",),
)


def _lookup(payload: Any, key: str) -> Any:
    for path in FIELD_PATHS:
        node = payload
        for part in path:
            node = node.get(part) if isinstance(node, dict) else None
        if isinstance(node, dict) and node.get(key) not in (None, ""):
            return node[key]
    return None


def _first(mapping: dict, *keys: str) -> Optional[str]:
    for key in keys:
        value = mapping.get(key)
        if value not in (None, ""):
            return str(value)
    return None


@dataclass(frozen=True)
class PaymentEvent:
    """The shape-independent view of a webhook payload."""

    status: Optional[str]
    order_id: Optional[str]
    user_id: Optional[str]

    @classmethod
    def from_payload(cls, payload: Any) -> "PaymentEvent":
        status = _lookup(payload, "status")
        metadata = _lookup(payload, "metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        return cls(
            status=str(status).lower() if status is not None else None,
            order_id=_first(metadata, "order_id", "orderId"),
            user_id=_first(metadata, "user_id", "userId"),
        )


@dataclass
class ReconcileOutcome:
    action: str  # paid | failed | ignored | conflict
    reason: str
    order_id: Optional[str] = None
    granted_song_ids: List[str] = field(default_factory=list)


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise UpstreamFailure(f"Purchase grants are not supported on the {dialect} database")


class FulfillmentReconciler:
    """Applies a verified gateway event to its order exactly once.

    Duplicate and concurrent deliveries are absorbed by the conditional status
    update in the ledger and the unique (user_id, song_id) purchase key.
    """

    def __init__(self, db: Session, ledger: Optional[OrderLedger] = None,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.db = db
        self.ledger = ledger or OrderLedger(db)
        self.clock = clock

    def reconcile(self, payload: Any) -> ReconcileOutcome:
        event = PaymentEvent.from_payload(payload)

        if not event.order_id or not event.user_id:
            return ReconcileOutcome("ignored", "No order metadata. Ignored.")

        order = self.ledger.get(event.order_id)
        if order is None or order.user_id != event.user_id:
            logger.warning("Webhook references unknown order %s for user %s", event.order_id, event.user_id)
            return ReconcileOutcome("ignored", "Unknown order. Ignored.", event.order_id)

        try:
            if event.status in PAID_STATUSES:
                return self._fulfill(order.id, order.user_id)
            if event.status in FAILED_STATUSES:
                self.ledger.mark_failed(order.id)
                return ReconcileOutcome("failed", "Order marked failed", order.id)
        except InvalidTransition as e:
            logger.error("Ignoring %s event for order %s: %s", event.status, order.id, e)
            return ReconcileOutcome("conflict", "Order already finalized", order.id)
        except OrderNotFound:
            return ReconcileOutcome("ignored", "Unknown order. Ignored.", event.order_id)

        return ReconcileOutcome("ignored", "Ignored status", order.id)

    def _fulfill(self, order_id: str, user_id: str) -> ReconcileOutcome:
        # Fail before marking paid if grants cannot be written on this database
        _insert_for(self.db)
        self.ledger.mark_paid(order_id, self.clock())

        song_ids = []
        for line in self.ledger.lines(order_id):
            if line.song_id and line.song_id not in song_ids:
                song_ids.append(line.song_id)

        if song_ids:
            self.grant(user_id, order_id, song_ids)

        self.clear_cart(user_id)
        return ReconcileOutcome("paid", "OK", order_id, song_ids)

    def grant(self, user_id: str, order_id: str, song_ids: Sequence[str]) -> None:
        rows = [{"user_id": user_id, "song_id": song_id, "order_id": order_id} for song_id in song_ids]
        insert = _insert_for(self.db)
        stmt = insert(UserPurchase).values(rows).on_conflict_do_nothing(index_elements=["user_id", "song_id"])
        try:
            self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to write purchases for order %s: %s", order_id, e)
            raise UpstreamFailure("Failed to write purchases", details=str(e))

    def clear_cart(self, user_id: str) -> None:
        # Ownership is already durable here; a stale cart is acceptable
        try:
            cart_ids = select(Cart.id).where(Cart.user_id == user_id)
            self.db.execute(
                delete(CartItem)
                .where(CartItem.cart_id.in_(cart_ids))
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to clear cart for user %s after payment: %s", user_id, e)
