"""
Stripe adapter.

The Stripe SDK is synchronous, so every API call runs in the threadpool to
keep the event loop free. Stripe error classes are translated into the
domain GatewayError hierarchy here and nowhere else; services never see a
stripe exception.

Webhook verification (construct_event) is local HMAC work and stays
synchronous.
"""

from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from typing import Any, Optional

import stripe
from starlette.concurrency import run_in_threadpool

from arena.core.config import get_settings
from arena.core.exceptions import (
    CardDeclinedError,
    GatewayAuthenticationError,
    GatewayError,
    GatewayRateLimitError,
    GatewayUnavailableError,
    InvalidPaymentRequestError,
    SignatureError,
)
from arena.core.logging import get_logger
from arena.core.metrics import record_gateway_error

logger = get_logger(__name__)

# Checked in order; subclasses before StripeError.
_ERROR_MAP = (
    (stripe.CardError, CardDeclinedError, "Your card was declined"),
    (stripe.InvalidRequestError, InvalidPaymentRequestError, "Invalid payment request"),
    (stripe.APIConnectionError, GatewayUnavailableError, "Payment provider is unreachable, please try again"),
    (stripe.AuthenticationError, GatewayAuthenticationError, "Payment provider authentication failed"),
    (stripe.RateLimitError, GatewayRateLimitError, "Too many payment requests, please retry shortly"),
    (stripe.StripeError, GatewayError, "Payment provider error"),
)


def map_stripe_error(exc: stripe.StripeError) -> GatewayError:
    for stripe_cls, domain_cls, message in _ERROR_MAP:
        if isinstance(exc, stripe_cls):
            user_message = getattr(exc, "user_message", None) or message
            return domain_cls(user_message, detail=str(exc))
    return GatewayError("Payment provider error", detail=str(exc))


def stripe_field(obj, key: str, default=None):
    """
    Read one field of a Stripe object (or a plain mapping).

    Newer SDKs no longer make StripeObject a dict, so dict methods such as
    .get() are unavailable; subscription works on every version.
    """
    if obj is None:
        return default
    try:
        value = obj[key]
    except KeyError:
        return default
    return default if value is None else value


def to_minor_units(amount) -> int:
    """Decimal dollars -> integer cents."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripeGateway:
    def __init__(self, api_key: str, webhook_secret: str, currency: str = "usd"):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.currency = currency

    async def _call(self, fn, *args, **kwargs) -> Any:
        try:
            return await run_in_threadpool(fn, *args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as e:
            error = map_stripe_error(e)
            record_gateway_error(error.category)
            logger.warning(
                "stripe_call_failed",
                call=getattr(fn, "__qualname__", str(fn)),
                category=error.category,
                error=str(e),
            )
            raise error from e

    async def create_checkout_session(self, **params) -> Any:
        return await self._call(stripe.checkout.Session.create, **params)

    async def retrieve_checkout_session(self, session_id: str) -> Any:
        return await self._call(stripe.checkout.Session.retrieve, session_id)

    async def create_payment_intent(self, **params) -> Any:
        return await self._call(stripe.PaymentIntent.create, **params)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Any:
        if not signature:
            raise SignatureError("Missing Stripe-Signature header")
        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            raise SignatureError("Invalid webhook payload", detail=str(e))
        except stripe.SignatureVerificationError as e:
            logger.warning("webhook_signature_invalid", error=str(e))
            raise SignatureError("Invalid webhook signature", detail=str(e))


@lru_cache()
def _default_gateway() -> StripeGateway:
    settings = get_settings()
    return StripeGateway(
        api_key=settings.STRIPE_SECRET_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        currency=settings.STRIPE_CURRENCY,
    )


def get_payment_gateway() -> StripeGateway:
    """FastAPI dependency; overridden in tests."""
    return _default_gateway()
