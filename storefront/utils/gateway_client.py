# storefront/utils/gateway_client.py
import httpx
import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin

from fastapi import Depends

from storefront.config import Settings, get_settings
from storefront.utils.errors import GatewayError

logger = logging.getLogger(__name__)

REQUIRED_METADATA_KEYS = ("order_id", "user_id")


@dataclass(frozen=True)
class GatewayCheckout:
    id: Optional[str]
    redirect_url: str


class GatewayClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        # Initialize configuration; transport is swappable for tests
        self.api_url = settings.GATEWAY_API_URL
        self.secret_key = settings.GATEWAY_SECRET_KEY
        self.timeout = settings.GATEWAY_TIMEOUT_SECONDS
        self.transport = transport

    async def create_checkout(
        self,
        *,
        amount_cents: int,
        currency: str,
        description: str,
        success_url: str,
        cancel_url: str,
        failure_url: str,
        metadata: dict,
    ) -> GatewayCheckout:
        # Metadata is the only way a later webhook can be matched to an order
        missing = [k for k in REQUIRED_METADATA_KEYS if not metadata.get(k)]
        if missing:
            raise ValueError(f"Checkout metadata must include {', '.join(missing)}")

        if not self.secret_key:
            raise GatewayError("Payment gateway is not configured")

        checkout_url = urljoin(self.api_url, "/api/checkouts")
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.secret_key}",
            # One gateway session per order even if the request is resent
            "Idempotency-Key": str(metadata["order_id"]),
        }
        payload = {
            "amount": amount_cents,
            "currency": currency,
            "description": description,
            "successUrl": success_url,
            "cancelUrl": cancel_url,
            "failureUrl": failure_url,
            "metadata": metadata,
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(checkout_url, json=payload, headers=headers)
            except httpx.RequestError as e:
                logger.error("Gateway checkout request error: %s", e)
                raise GatewayError("Payment gateway unreachable", details=str(e))

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            logger.error("Gateway checkout failed: status=%s body=%s", response.status_code, response.text[:1000])
            raise GatewayError(details=data or response.text[:1000], status_code=response.status_code)

        if not isinstance(data, dict) or not data.get("redirectUrl"):
            logger.error("Gateway checkout response has no redirectUrl: %s", response.text[:1000])
            raise GatewayError("Payment gateway did not return redirectUrl", status_code=response.status_code)

        return GatewayCheckout(id=data.get("id"), redirect_url=data["redirectUrl"])


def get_gateway_client(settings: Settings = Depends(get_settings)) -> GatewayClient:
    return GatewayClient(settings)
