# storefront/utils/webhook_auth.py
import base64
import binascii
import hashlib
import hmac
import logging
import time
from typing import Callable, List, Mapping, Optional

from storefront.utils.errors import SignatureRejected

logger = logging.getLogger(__name__)

ID_HEADER = "webhook-id"
TIMESTAMP_HEADER = "webhook-timestamp"
SIGNATURE_HEADER = "webhook-signature"

SUPPORTED_SIGNATURE_VERSION = "v1"
DEFAULT_REPLAY_WINDOW_SECONDS = 180


def decode_secret(secret: Optional[str], prefix: str = "whsec_") -> Optional[bytes]:
    """Returns the HMAC key bytes for a ``<prefix><base64>`` secret, or None if unusable."""
    if not secret:
        return None
    if prefix and secret.startswith(prefix):
        secret = secret[len(prefix):]
    try:
        key = base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError):
        return None
    return key or None


def sign(key: bytes, event_id: str, timestamp: str, raw_body: bytes) -> str:
    signed_content = f"{event_id}.{timestamp}.".encode("utf-8") + raw_body
    mac = hmac.new(key, signed_content, hashlib.sha256).digest()
    return base64.b64encode(mac).decode("ascii")


def signature_candidates(signature_header: str, version: str = SUPPORTED_SIGNATURE_VERSION) -> List[str]:
    """Signatures of the given version from a space separated ``version,signature`` list."""
    candidates = []
    for token in signature_header.split():
        ver, sep, sig = token.partition(",")
        if sep and ver == version and sig:
            candidates.append(sig)
    return candidates


class WebhookAuthenticator:
    """Verifies that a webhook delivery was signed by the payment gateway and is fresh.

    Every check must pass; there is no fallback to trusting a delivery when the
    secret is missing. ``raw_body`` must be the exact request bytes.
    """

    def __init__(
        self,
        secret: Optional[str],
        replay_window: int = DEFAULT_REPLAY_WINDOW_SECONDS,
        prefix: str = "whsec_",
        clock: Callable[[], float] = time.time,
    ):
        self.key = decode_secret(secret, prefix)
        self.replay_window = replay_window
        self.clock = clock
        if self.key is None:
            logger.error("Webhook secret is missing or malformed; every delivery will be rejected")

    def verify(self, headers: Mapping[str, str], raw_body: bytes) -> str:
        """Returns the event id of an authentic delivery, raises SignatureRejected otherwise."""
        event_id = headers.get(ID_HEADER)
        timestamp = headers.get(TIMESTAMP_HEADER)
        signature_header = headers.get(SIGNATURE_HEADER)

        if not event_id or not timestamp or not signature_header:
            self._reject("missing webhook headers", event_id)

        if self.key is None:
            self._reject("no usable webhook secret configured", event_id)

        try:
            sent_at = int(timestamp)
        except ValueError:
            self._reject("non-numeric timestamp", event_id)
        if abs(self.clock() - sent_at) > self.replay_window:
            self._reject("timestamp outside replay window", event_id)

        expected = sign(self.key, event_id, timestamp, raw_body).encode("ascii")
        matched = False
        for candidate in signature_candidates(signature_header):
            # compare every candidate, constant time each
            if hmac.compare_digest(expected, candidate.encode("utf-8", "replace")):
                matched = True
        if not matched:
            self._reject("signature mismatch", event_id)

        return event_id

    def _reject(self, reason: str, event_id: Optional[str]):
        logger.warning("Webhook delivery rejected (%s). webhook_id=%s", reason, event_id)
        raise SignatureRejected()
