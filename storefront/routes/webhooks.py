# storefront/routes/webhooks.py
import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from storefront.config import Settings, get_settings
from storefront.database import get_db
from storefront.services.reconciler import FulfillmentReconciler
from storefront.utils.audit import write_log
from storefront.utils.errors import SignatureRejected, UpstreamFailure
from storefront.utils.webhook_auth import WebhookAuthenticator

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
logger = logging.getLogger(__name__)

AUDIT_ACTIONS = {"paid": "WEBHOOK_PAID", "failed": "WEBHOOK_FAILED", "conflict": "WEBHOOK_CONFLICT"}


def get_webhook_authenticator(settings: Settings = Depends(get_settings)) -> WebhookAuthenticator:
    return WebhookAuthenticator(
        settings.WEBHOOK_SECRET,
        replay_window=settings.WEBHOOK_REPLAY_WINDOW_SECONDS,
        prefix=settings.WEBHOOK_SECRET_PREFIX,
    )


@router.post("/gateway", response_class=PlainTextResponse)
async def gateway_webhook(
    request: Request,
    db: Session = Depends(get_db),
    authenticator: WebhookAuthenticator = Depends(get_webhook_authenticator),
):
    # The signature covers the exact bytes received, so nothing is parsed before verifying
    body = await request.body()

    try:
        event_id = authenticator.verify(request.headers, body)
    except SignatureRejected:
        return PlainTextResponse("Invalid signature", status_code=403)

    try:
        payload = json.loads(body)
    except ValueError:
        logger.warning("Webhook %s has an unparsable body", event_id)
        return PlainTextResponse("Invalid JSON", status_code=400)

    try:
        outcome = FulfillmentReconciler(db).reconcile(payload)
    except UpstreamFailure:
        # Non-2xx makes the gateway redeliver; reapplying is safe
        logger.exception("Webhook %s could not be applied", event_id)
        return PlainTextResponse("Webhook error", status_code=500)

    logger.info("Webhook %s: %s (%s) order=%s", event_id, outcome.action, outcome.reason, outcome.order_id)

    if outcome.action in AUDIT_ACTIONS:
        write_log(
            db, user_id=None, action=AUDIT_ACTIONS[outcome.action], resource="orders",
            status="FAIL" if outcome.action == "conflict" else "SUCCESS",
            ip=request.client.host if request.client else None,
            meta={"order_id": outcome.order_id, "webhook_id": event_id, "songs": outcome.granted_song_ids},
        )

    return PlainTextResponse(outcome.reason, status_code=200)
