import uuid

from sqlalchemy import Column, String, Integer, CheckConstraint
from storefront.database import Base

# Catalog entry for a purchasable track; the authoritative price source at checkout
class Song(Base):
    __tablename__ = "songs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String, nullable=False, index=True)
    price_cents = Column(Integer, CheckConstraint("price_cents >= 0"), nullable=False, default=0)
