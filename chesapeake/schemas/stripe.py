"""
Pydantic models for the parts of Stripe checkout payloads we consume.

Only fields read by reconciliation are declared; everything else Stripe sends
is ignored. Expandable fields accept either the expanded object or its id.
"""
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class StripeModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class StripeAddress(StripeModel):
    line1: Optional[str] = None
    line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class ShippingDetails(StripeModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[StripeAddress] = None


class CustomerDetails(StripeModel):
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[StripeAddress] = None


class CollectedInformation(StripeModel):
    shipping_details: Optional[ShippingDetails] = None


class StripeProduct(StripeModel):
    id: str
    name: Optional[str] = None
    images: list[str] = Field(default_factory=list)


class StripePrice(StripeModel):
    id: Optional[str] = None
    unit_amount: Optional[int] = None
    product: Union[StripeProduct, str, None] = None

    @property
    def product_id(self) -> Optional[str]:
        if isinstance(self.product, StripeProduct):
            return self.product.id
        return self.product

    @property
    def product_name(self) -> Optional[str]:
        if isinstance(self.product, StripeProduct):
            return self.product.name
        return None


class LineItem(StripeModel):
    id: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[int] = 1
    amount_subtotal: Optional[int] = None
    amount_total: Optional[int] = None
    price: Optional[StripePrice] = None

    @property
    def is_shipping(self) -> bool:
        """Shipping is sold as its own line on some checkouts."""
        if "shipping" in (self.description or "").lower():
            return True
        name = self.price.product_name if self.price else None
        return "shipping" in (name or "").lower()

    @property
    def display_name(self) -> str:
        if self.price and self.price.product_name:
            return self.price.product_name
        return self.description or "Item"


class LineItemList(StripeModel):
    data: list[LineItem] = Field(default_factory=list)


class Card(StripeModel):
    brand: Optional[str] = None
    last4: Optional[str] = None


class PaymentMethod(StripeModel):
    id: Optional[str] = None
    card: Optional[Card] = None


class PaymentIntent(StripeModel):
    id: str
    payment_method: Union[PaymentMethod, str, None] = None


class TotalDetails(StripeModel):
    amount_shipping: Optional[int] = None
    amount_discount: Optional[int] = None
    amount_tax: Optional[int] = None


class ShippingCost(StripeModel):
    amount_total: Optional[int] = None


class CheckoutSession(StripeModel):
    """A checkout session, ideally retrieved with line items expanded."""

    id: str
    amount_total: Optional[int] = None
    amount_subtotal: Optional[int] = None
    currency: Optional[str] = None
    created: Optional[int] = None
    customer_email: Optional[str] = None
    customer_details: Optional[CustomerDetails] = None
    shipping_details: Optional[ShippingDetails] = None
    collected_information: Optional[CollectedInformation] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    payment_intent: Union[PaymentIntent, str, None] = None
    payment_status: Optional[str] = None
    line_items: Optional[LineItemList] = None
    total_details: Optional[TotalDetails] = None
    shipping_cost: Optional[ShippingCost] = None

    @property
    def payment_intent_id(self) -> Optional[str]:
        if isinstance(self.payment_intent, PaymentIntent):
            return self.payment_intent.id
        return self.payment_intent

    @property
    def email(self) -> Optional[str]:
        if self.customer_details and self.customer_details.email:
            return self.customer_details.email
        return self.customer_email

    @property
    def shipping(self) -> Optional[ShippingDetails]:
        """Shipping details; newer API versions nest them under collected_information."""
        if self.shipping_details:
            return self.shipping_details
        if self.collected_information and self.collected_information.shipping_details:
            return self.collected_information.shipping_details
        return None

    @property
    def card(self) -> Optional[Card]:
        if isinstance(self.payment_intent, PaymentIntent):
            method = self.payment_intent.payment_method
            if isinstance(method, PaymentMethod):
                return method.card
        return None

    @property
    def items(self) -> list[LineItem]:
        return self.line_items.data if self.line_items else []

    @property
    def product_items(self) -> list[LineItem]:
        return [item for item in self.items if not item.is_shipping]

    @property
    def shipping_items(self) -> list[LineItem]:
        return [item for item in self.items if item.is_shipping]


class CreatedCheckoutSession(StripeModel):
    """Response of a session create; the storefront mounts it by client_secret."""

    id: str
    client_secret: Optional[str] = None
    url: Optional[str] = None

class StripeEvent(StripeModel):
    """Envelope of a verified webhook event."""

    id: str
    type: str
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def data_object(self) -> dict[str, Any]:
        return self.data.get("object") or {}
