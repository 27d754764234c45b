import uuid

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, CheckConstraint, func
from sqlalchemy.orm import relationship
from storefront.database import Base

ORDER_PENDING = "pending"
ORDER_PAID = "paid"
ORDER_FAILED = "failed"

class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), index=True, nullable=False)
    status = Column(String(16), nullable=False, default=ORDER_PENDING, index=True)
    currency = Column(String(3), nullable=False)
    amount_cents = Column(Integer, CheckConstraint("amount_cents >= 0"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    paid_at = Column(DateTime(timezone=True), nullable=True)

    # Payment gateway checkout session id
    gateway_checkout_id = Column(String, nullable=True, index=True)

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'paid', 'failed')", name="ck_orders_status"),
    )

# Line snapshot frozen at checkout; never updated afterwards
class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False)
    song_id = Column(String(36), ForeignKey("songs.id"), nullable=False)
    title = Column(String, nullable=False)
    price_cents = Column(Integer, CheckConstraint("price_cents >= 0"), nullable=False)
    qty = Column(Integer, CheckConstraint("qty >= 1"), nullable=False)

    order = relationship("Order", back_populates="items")
