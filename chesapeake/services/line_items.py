"""
Helpers that turn a checkout session into order lines and totals.
"""
from dataclasses import dataclass
from typing import Optional

from chesapeake.schemas.payment import StandardSale
from chesapeake.schemas.stripe import CheckoutSession, LineItem

UNKNOWN_PRODUCT = "unknown"
SHIPPING_PRODUCT = "shipping"


@dataclass(frozen=True)
class LineItemDraft:
    """An order line waiting to be written."""

    product_id: str
    quantity: int
    price_cents: int  # per unit
    name: Optional[str] = None

    @property
    def line_total(self) -> int:
        return self.price_cents * self.quantity


def product_key(item: LineItem, hint: Optional[str] = None) -> str:
    """Stripe product id, then price id, then the order-level hint."""
    if item.price:
        if item.price.product_id:
            return item.price.product_id
        if item.price.id:
            return item.price.id
    return hint or UNKNOWN_PRODUCT


def unit_price(item: LineItem) -> int:
    if item.price and item.price.unit_amount is not None:
        return item.price.unit_amount
    quantity = item.quantity or 1
    return (item.amount_total or 0) // quantity


def shipping_cents(session: CheckoutSession) -> int:
    """Shipping charged on the session, wherever Stripe reported it."""
    if session.total_details and session.total_details.amount_shipping is not None:
        return session.total_details.amount_shipping
    if session.shipping_cost and session.shipping_cost.amount_total is not None:
        return session.shipping_cost.amount_total
    shipping_lines = session.shipping_items
    if shipping_lines:
        return sum(item.amount_total or 0 for item in shipping_lines)
    return 0


def subtotal_cents(session: CheckoutSession) -> int:
    if session.amount_subtotal is not None:
        return session.amount_subtotal
    return max(0, (session.amount_total or 0) - shipping_cents(session))


def drafts_from_session(
    session: CheckoutSession,
    sale: Optional[StandardSale] = None,
) -> list[LineItemDraft]:
    """
    Order lines for a catalog sale: every non-shipping line item, or a single
    line built from the legacy product_id metadata when Stripe returned none.
    """
    hint = sale.product_id if sale else None
    drafts = [
        LineItemDraft(
            product_id=product_key(item, hint),
            quantity=item.quantity or 1,
            price_cents=unit_price(item),
            name=item.display_name,
        )
        for item in session.product_items
    ]
    if drafts or not hint:
        return drafts

    quantity = sale.quantity if sale else 1
    return [
        LineItemDraft(
            product_id=hint,
            quantity=quantity,
            price_cents=subtotal_cents(session) // quantity,
        )
    ]
