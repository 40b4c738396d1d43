"""
Domain exception hierarchy.

Every error raised by the services carries its HTTP status code and a
client-facing message. The API layer turns them into the standard
``{"success": false, "message": ...}`` envelope (see arena.api.errors).
"""

from typing import Optional


class ArenaError(Exception):
    """Base class for all domain-level errors."""

    status_code: int = 400
    category: str = "error"

    def __init__(self, message: str, detail: Optional[str] = None):
        self.message = message
        self.detail = detail
        super().__init__(message)


class ValidationError(ArenaError):
    """Missing or malformed input."""

    status_code = 400
    category = "validation_error"


class NotFoundError(ArenaError):
    """A referenced entity does not exist."""

    status_code = 404
    category = "not_found"


class ForbiddenError(ArenaError):
    status_code = 403
    category = "forbidden"


class ConflictError(ArenaError):
    """Capacity exceeded or duplicate booking/registration."""

    status_code = 400
    category = "conflict"


class TransactionError(ArenaError):
    """A database transaction failed and was rolled back."""

    status_code = 500
    category = "transaction_error"


class SignatureError(ArenaError):
    """Webhook payload failed authenticity verification."""

    status_code = 400
    category = "invalid_signature"


class WebhookProcessingError(ArenaError):
    """A verified webhook could not be applied; the provider will retry."""

    status_code = 500
    category = "webhook_error"


class GatewayError(ArenaError):
    """Payment provider rejected or failed a request."""

    status_code = 502
    category = "gateway_error"


class CardDeclinedError(GatewayError):
    status_code = 402
    category = "card_declined"


class InvalidPaymentRequestError(GatewayError):
    status_code = 400
    category = "invalid_request"


class GatewayUnavailableError(GatewayError):
    status_code = 503
    category = "gateway_unavailable"


class GatewayAuthenticationError(GatewayError):
    status_code = 500
    category = "gateway_auth"


class GatewayRateLimitError(GatewayError):
    status_code = 429
    category = "rate_limited"
