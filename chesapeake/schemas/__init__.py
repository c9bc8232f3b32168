"""
Pydantic schemas package.
"""
from chesapeake.schemas.checkout import (
    CheckoutLineItem,
    CheckoutSessionSummary,
    CheckoutShipping,
    CreateCheckoutSessionRequest,
    CreateCheckoutSessionResponse,
)
from chesapeake.schemas.payment import (
    CustomOrderPayment,
    InvoicePayment,
    PaymentKind,
    StandardSale,
    decode_payment_kind,
)
from chesapeake.schemas.stripe import (
    CheckoutSession,
    CreatedCheckoutSession,
    LineItem,
    ShippingDetails,
    StripeAddress,
    StripeEvent,
)

__all__ = [
    # Stripe payloads
    "CheckoutSession",
    "CreatedCheckoutSession",
    "LineItem",
    "ShippingDetails",
    "StripeAddress",
    "StripeEvent",
    # Payment kind
    "PaymentKind",
    "StandardSale",
    "CustomOrderPayment",
    "InvoicePayment",
    "decode_payment_kind",
    # Checkout summary
    "CheckoutLineItem",
    "CheckoutSessionSummary",
    "CheckoutShipping",
    "CreateCheckoutSessionRequest",
    "CreateCheckoutSessionResponse",
]
