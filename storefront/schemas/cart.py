from pydantic import BaseModel, Field
from typing import List

# Request schema for adding a song to the cart
class CartAddItem(BaseModel):
    song_id: str = Field(min_length=1)
    qty: int = Field(default=1, ge=1)

# Response schema for a single cart line item
class CartItemOut(BaseModel):
    song_id: str
    title: str
    qty: int
    unit_price_cents: int
    line_total_cents: int

# Response schema for the entire cart summary
class CartOut(BaseModel):
    items: List[CartItemOut]
    total_cents: int
