from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, UniqueConstraint, func
from sqlalchemy.orm import relationship
from storefront.database import Base

# Durable ownership of a song; a user owns each song at most once
class UserPurchase(Base):
    __tablename__ = "user_purchases"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), index=True, nullable=False)
    song_id = Column(String(36), ForeignKey("songs.id"), nullable=False)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    song = relationship("Song")

    __table_args__ = (
        UniqueConstraint("user_id", "song_id", name="uq_user_purchases_user_song"),
    )
