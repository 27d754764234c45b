from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime


# A song the user owns
class PurchaseOut(BaseModel):
    song_id: str
    title: str
    order_id: str
    created_at: Optional[datetime] = None


class PurchasesOut(BaseModel):
    items: List[PurchaseOut]
