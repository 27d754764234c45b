# storefront/routes/orders.py
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

from storefront.database import get_db
from storefront.utils.identity import get_current_user_id
from storefront.models.order import Order
from storefront.models.purchase import UserPurchase
from storefront.schemas.order import OrderResponse
from storefront.schemas.purchase import PurchaseOut, PurchasesOut

router = APIRouter(tags=["Orders"])


# Order status for the payment return page
@router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order_detail(
    order_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    o = db.query(Order).options(joinedload(Order.items)).filter(Order.id == order_id).first()

    # Other users' orders look exactly like missing ones
    if not o or o.user_id != user_id:
        raise HTTPException(status_code=404, detail="Order not found")
    return o


# Songs the current user owns
@router.get("/purchases", response_model=PurchasesOut)
def list_purchases(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    rows = db.query(UserPurchase).options(
        joinedload(UserPurchase.song)
    ).filter(UserPurchase.user_id == user_id).order_by(UserPurchase.created_at.desc(), UserPurchase.id.desc()).all()

    items = [PurchaseOut(
        song_id=p.song_id,
        title=p.song.title if p.song else "Song",
        order_id=p.order_id,
        created_at=p.created_at,
    ) for p in rows]
    return {"items": items}
