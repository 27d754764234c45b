# storefront/routes/cart.py
from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from storefront.database import get_db
from storefront.utils.identity import get_current_user_id
from storefront.utils.audit import write_log
from storefront.models.song import Song
from storefront.models.cart import Cart, CartItem
from storefront.schemas.cart import CartAddItem, CartOut, CartItemOut
from storefront.services.cart_snapshot import latest_cart

router = APIRouter(prefix="/cart", tags=["Cart"])

def _get_or_create_cart(db: Session, user_id: str) -> Cart:
    # Retrieve the current cart or create one on first add
    cart = latest_cart(db, user_id)
    if not cart:
        cart = Cart(user_id=user_id)
        db.add(cart)
        db.commit()
        db.refresh(cart)
    return cart

def _cart_to_out(cart) -> CartOut:
    items_out = []
    total_cents = 0

    # Display uses live catalog prices; checkout re-reads them anyway
    for it in (cart.items if cart else []):
        if it.song is None:
            continue
        price = it.song.price_cents or 0
        line_total = price * it.quantity
        total_cents += line_total
        items_out.append(CartItemOut(
            song_id=it.song_id,
            title=it.song.title,
            qty=it.quantity,
            unit_price_cents=price,
            line_total_cents=line_total,
        ))

    return CartOut(items=items_out, total_cents=total_cents)

@router.get("", response_model=CartOut)
def get_cart(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    return _cart_to_out(latest_cart(db, user_id))

@router.post("/add", response_model=CartOut, status_code=status.HTTP_200_OK)
def add_to_cart(
    payload: CartAddItem,
    request: Request,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    song = db.query(Song).filter(Song.id == payload.song_id).first()
    if not song:
        raise HTTPException(status_code=404, detail="Song not found")

    cart = _get_or_create_cart(db, user_id)
    item = db.query(CartItem).filter(
        CartItem.cart_id == cart.id, CartItem.song_id == song.id
    ).first()

    if item:
        item.quantity += payload.qty
    else:
        db.add(CartItem(cart_id=cart.id, song_id=song.id, quantity=payload.qty))

    db.commit()
    db.refresh(cart)

    out = _cart_to_out(cart)
    write_log(
        db,
        user_id=user_id,
        action="CART_ADD",
        resource="cart",
        status="SUCCESS",
        ip=request.client.host if request.client else None,
        meta={"song_id": song.id, "qty": payload.qty, "cart_items": len(out.items)},
    )
    return out

@router.delete("/items/{song_id}", response_model=CartOut)
def delete_cart_item(
    song_id: str,
    request: Request,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    cart = latest_cart(db, user_id)
    item = None
    if cart:
        item = db.query(CartItem).filter(CartItem.cart_id == cart.id, CartItem.song_id == song_id).first()
    if not item:
        raise HTTPException(status_code=404, detail="Cart item not found")

    db.delete(item)
    db.commit()
    db.refresh(cart)

    out = _cart_to_out(cart)
    write_log(
        db,
        user_id=user_id,
        action="CART_DELETE",
        resource="cart",
        status="SUCCESS",
        ip=request.client.host if request.client else None,
        meta={"song_id": song_id, "cart_items": len(out.items)},
    )
    return out

@router.delete("", response_model=CartOut)
def clear_cart(
    request: Request,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    cart = latest_cart(db, user_id)
    if cart:
        db.query(CartItem).filter(CartItem.cart_id == cart.id).delete(synchronize_session=False)
        db.commit()
        db.refresh(cart)

    write_log(
        db,
        user_id=user_id,
        action="CART_CLEAR",
        resource="cart",
        status="SUCCESS",
        ip=request.client.host if request.client else None,
    )
    return _cart_to_out(cart)
