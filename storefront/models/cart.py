from sqlalchemy import Column, Integer, ForeignKey, String, DateTime, UniqueConstraint, func
from sqlalchemy.orm import relationship
from storefront.database import Base

# Represents the user's shopping cart; the most recent one is the current cart
class Cart(Base):
    __tablename__ = "carts" # Table name

    id = Column(Integer, primary_key=True, index=True) # Primary key
    user_id = Column(String(64), index=True, nullable=False) # Identity service subject
    created_at = Column(DateTime(timezone=True), server_default=func.now()) # Creation timestamp

    # One-to-many relationship with cart items
    items = relationship("CartItem", back_populates="cart", cascade="all, delete-orphan")


# Represents a single song + quantity within a cart
class CartItem(Base):
    __tablename__ = "cart_items" # Table name

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), index=True, nullable=False) # Parent cart
    song_id = Column(String(36), ForeignKey("songs.id"), index=True, nullable=True) # Referenced song
    quantity = Column(Integer, nullable=False, default=1) # Quantity, never trusted for price

    cart = relationship("Cart", back_populates="items") # Relationship back to Cart
    song = relationship("Song") # Relationship to Song

    __table_args__ = (
        # Unique constraint to prevent duplicate song entries in the same cart
        UniqueConstraint("cart_id", "song_id", name="uq_cartitem_cart_song"),
    )
