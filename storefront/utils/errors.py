# storefront/utils/errors.py
from typing import Any, Optional


class StorefrontError(Exception):
    """Base class for errors raised by the checkout and webhook services."""

    message = "Server error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details


class Unauthenticated(StorefrontError):
    message = "Missing Authorization Bearer token"


class CheckoutValidationError(StorefrontError):
    """User-correctable problem with the checkout request (HTTP 400)."""


class EmptyCart(CheckoutValidationError):
    message = "Cart is empty"


class InvalidPrice(CheckoutValidationError):
    message = "Invalid price detected"


class UpstreamFailure(StorefrontError):
    """The database or the payment gateway failed (HTTP 500)."""


class GatewayError(UpstreamFailure):
    message = "Payment gateway checkout failed"

    def __init__(self, message: Optional[str] = None, details: Any = None, status_code: Optional[int] = None):
        super().__init__(message, details)
        self.status_code = status_code


class SignatureRejected(StorefrontError):
    # Deliberately generic: the reason is only ever logged server-side
    message = "Invalid signature"


class OrderNotFound(StorefrontError):
    message = "Order not found"


class InvalidTransition(StorefrontError):
    message = "Invalid order status transition"

    def __init__(self, order_id: str, current: str, target: str):
        super().__init__(f"Order {order_id} is {current}, cannot become {target}")
        self.order_id = order_id
        self.current = current
        self.target = target
