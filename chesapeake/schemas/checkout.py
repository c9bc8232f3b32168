"""
Checkout payloads: session creation for the storefront and the summary
returned to the checkout-return page.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from chesapeake.schemas.stripe import CheckoutSession, StripeAddress


class CheckoutLineItem(BaseModel):
    product_name: str = Field(alias="productName")
    quantity: int
    line_total: int = Field(alias="lineTotal")

    model_config = ConfigDict(populate_by_name=True)


class CheckoutShipping(BaseModel):
    name: Optional[str] = None
    address: Optional[StripeAddress] = None


class CheckoutSessionSummary(BaseModel):
    """Shape consumed by the storefront; keys are snake_case except line items."""

    id: str
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    customer_email: Optional[str] = None
    shipping: CheckoutShipping
    line_items: list[CheckoutLineItem]
    card_last4: Optional[str] = None

    @classmethod
    def from_session(cls, session: CheckoutSession) -> "CheckoutSessionSummary":
        shipping = session.shipping
        card = session.card
        return cls(
            id=session.id,
            amount_total=session.amount_total,
            currency=session.currency,
            customer_email=session.email,
            shipping=CheckoutShipping(
                name=shipping.name if shipping else None,
                address=shipping.address if shipping else None,
            ),
            line_items=[
                CheckoutLineItem(
                    product_name=item.display_name,
                    quantity=item.quantity or 0,
                    line_total=item.amount_total or 0,
                )
                for item in session.items
            ],
            card_last4=card.last4 if card else None,
        )


class CreateCheckoutSessionRequest(BaseModel):
    product_id: Optional[str] = Field(default=None, alias="productId")
    quantity: int = 1

    model_config = ConfigDict(populate_by_name=True)


class CreateCheckoutSessionResponse(BaseModel):
    client_secret: str = Field(alias="clientSecret")
    session_id: str = Field(alias="sessionId")

    model_config = ConfigDict(populate_by_name=True)
