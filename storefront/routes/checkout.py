# storefront/routes/checkout.py
import logging
from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from storefront.config import Settings, get_settings
from storefront.database import get_db
from storefront.schemas.order import CheckoutResponse
from storefront.services.cart_snapshot import CartLine, CartSnapshotReader
from storefront.services.order_ledger import OrderLedger
from storefront.utils.audit import write_log
from storefront.utils.errors import GatewayError, UpstreamFailure
from storefront.utils.gateway_client import GatewayClient, get_gateway_client
from storefront.utils.identity import get_current_user_id

router = APIRouter(tags=["Checkout"])
logger = logging.getLogger(__name__)


def _description(store_name: str, lines: List[CartLine]) -> str:
    if len(lines) == 1:
        return f"{store_name}: {lines[0].title}"
    return f"{store_name} cart ({len(lines)} items)"


def _return_url(settings: Settings, outcome: str, order_id: str) -> str:
    return f"{settings.SITE_URL.rstrip('/')}/music?payment={outcome}&order={order_id}"


# Create a pending order from the server-side cart and start a gateway checkout
@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    request: Request,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
    gateway: GatewayClient = Depends(get_gateway_client),
):
    # Request body is ignored: prices and items come from the stored cart only
    snapshot = CartSnapshotReader(db, settings.MIN_UNIT_PRICE_CENTS).read(user_id)
    lines = snapshot.lines

    ledger = OrderLedger(db)
    order_id = ledger.create_pending(user_id, lines, settings.CURRENCY)
    amount_cents = snapshot.total_cents

    metadata = {"order_id": order_id, "user_id": user_id, "cart_id": str(snapshot.cart_id)}

    try:
        checkout = await gateway.create_checkout(
            amount_cents=amount_cents,
            currency=settings.CURRENCY,
            description=_description(settings.STORE_NAME, lines),
            success_url=_return_url(settings, "success", order_id),
            cancel_url=_return_url(settings, "cancelled", order_id),
            failure_url=_return_url(settings, "failed", order_id),
            metadata=metadata,
        )
    except Exception as e:
        # Never leave a pending order behind a failed gateway call
        try:
            ledger.mark_failed(order_id)
        except UpstreamFailure:
            logger.exception("Could not mark order %s failed after gateway error", order_id)

        write_log(
            db, user_id=user_id, action="CHECKOUT_FAIL", resource="orders", status="FAIL",
            ip=request.client.host if request.client else None,
            meta={"order_id": order_id, "amount_cents": amount_cents},
        )
        if isinstance(e, GatewayError):
            raise
        logger.exception("Unexpected error creating gateway checkout for order %s: %s", order_id, e)
        raise GatewayError(details=str(e))

    ledger.attach_gateway_reference(order_id, checkout.id)

    write_log(
        db, user_id=user_id, action="CHECKOUT_INIT", resource="orders", status="SUCCESS",
        ip=request.client.host if request.client else None,
        meta={"order_id": order_id, "amount_cents": amount_cents, "gateway_checkout_id": checkout.id},
    )
    return CheckoutResponse(redirect_url=checkout.redirect_url)
