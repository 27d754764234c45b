# storefront/services/order_ledger.py
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.models.order import Order, OrderItem, ORDER_PENDING, ORDER_PAID, ORDER_FAILED
from storefront.services.cart_snapshot import CartLine
from storefront.utils.errors import InvalidTransition, OrderNotFound, UpstreamFailure

logger = logging.getLogger(__name__)


class OrderLedger:
    """Creates order snapshots and moves them through pending -> paid | failed.

    Transitions are conditional updates (``WHERE status = 'pending'``) so that
    concurrent webhook handlers cannot both apply a transition, and a terminal
    status is never overwritten by a different one.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_pending(self, user_id: str, lines: Sequence[CartLine], currency: str) -> str:
        if not lines:
            raise ValueError("An order needs at least one line")

        amount_cents = sum(line.unit_price_cents * line.qty for line in lines)
        order = Order(user_id=user_id, status=ORDER_PENDING, currency=currency, amount_cents=amount_cents)
        try:
            self.db.add(order)
            self.db.flush()
            self.db.add_all([
                OrderItem(
                    order_id=order.id,
                    song_id=line.song_id,
                    title=line.title,
                    price_cents=line.unit_price_cents,
                    qty=line.qty,
                )
                for line in lines
            ])
            # Order and lines land together or not at all
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to create order for user %s: %s", user_id, e)
            raise UpstreamFailure("Failed to create order", details=str(e))

        logger.info("Created pending order %s (%s %s)", order.id, amount_cents, currency)
        return order.id

    def mark_paid(self, order_id: str, paid_at: datetime) -> bool:
        """Returns True if this call moved the order to paid, False if it already was."""
        return self._transition(order_id, ORDER_PAID, paid_at=paid_at)

    def mark_failed(self, order_id: str) -> bool:
        """Returns True if this call moved the order to failed, False if it already was."""
        return self._transition(order_id, ORDER_FAILED)

    def attach_gateway_reference(self, order_id: str, gateway_checkout_id: Optional[str]) -> None:
        if not gateway_checkout_id:
            return
        try:
            self.db.execute(
                update(Order).where(Order.id == order_id).values(gateway_checkout_id=gateway_checkout_id)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Could not store gateway checkout id for order %s: %s", order_id, e)

    def get(self, order_id: str) -> Optional[Order]:
        try:
            return self.db.query(Order).filter(Order.id == order_id).first()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to load order %s: %s", order_id, e)
            raise UpstreamFailure("Failed to load order", details=str(e))

    def lines(self, order_id: str) -> List[OrderItem]:
        try:
            return self.db.query(OrderItem).filter(OrderItem.order_id == order_id).order_by(OrderItem.id).all()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to load lines of order %s: %s", order_id, e)
            raise UpstreamFailure("Failed to load order lines", details=str(e))

    def _transition(self, order_id: str, target: str, **values) -> bool:
        try:
            result = self.db.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == ORDER_PENDING)
                .values(status=target, **values)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to mark order %s %s: %s", order_id, target, e)
            raise UpstreamFailure(f"Failed to mark order {target}", details=str(e))

        if result.rowcount == 1:
            logger.info("Order %s marked %s", order_id, target)
            return True

        try:
            current = self.db.query(Order.status).filter(Order.id == order_id).scalar()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to read status of order %s: %s", order_id, e)
            raise UpstreamFailure("Failed to read order status", details=str(e))
        if current is None:
            raise OrderNotFound()
        if current == target:
            return False
        raise InvalidTransition(order_id, current, target)
