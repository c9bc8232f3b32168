"""
Exception hierarchy for order reconciliation.

Anything deriving from ReconciliationError means the event could not be
safely reconciled; the webhook answers non-2xx so Stripe redelivers it.
"""


class ReconciliationError(Exception):
    """Base class for failures that must surface as a failed webhook."""


class DisplayIdError(ReconciliationError):
    """No display order id could be issued."""


class OrderPersistenceError(ReconciliationError):
    """The order header could not be written."""


class SchemaError(ReconciliationError):
    """The orders table lacks columns every insert depends on."""


class StripeAPIError(ReconciliationError):
    """Stripe API request failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class WebhookVerificationError(Exception):
    """Webhook signature missing or invalid."""
