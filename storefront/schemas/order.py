from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


# Output schema for an order line snapshot
class OrderItemOut(BaseModel):
    song_id: str
    title: str
    qty: int
    price_cents: int

    class Config:
        from_attributes = True


# Output schema representing the full order details
class OrderResponse(BaseModel):
    id: str
    status: str
    currency: str
    amount_cents: int
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    items: List[OrderItemOut]

    class Config:
        from_attributes = True


# Response schema for checkout initiation; the storefront reads redirectUrl
class CheckoutResponse(BaseModel):
    redirect_url: str = Field(alias="redirectUrl")

    class Config:
        populate_by_name = True
