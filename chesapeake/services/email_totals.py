"""
Subtotal / shipping / total resolution for order emails.

Each figure is the first usable value from, in order: what the order row
recorded, what the caller computed, and what Stripe put on the session.
"""
import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from chesapeake.schemas.stripe import CheckoutSession, LineItem


@dataclass(frozen=True)
class EmailTotals:
    subtotal_cents: int
    shipping_cents: int
    total_cents: int


def coalesce_cents(values: Iterable[Any]) -> Optional[int]:
    for value in values:
        if value is None:
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if math.isfinite(number):
            return round(number)
    return None


def sum_shipping_lines(line_items: list[LineItem]) -> Optional[int]:
    if not line_items:
        return None
    return sum(round(item.amount_total or 0) for item in line_items if item.is_shipping)


def _session_shipping(session: Optional[CheckoutSession]) -> list[Optional[int]]:
    if session is None:
        return [None, None]
    return [
        session.total_details.amount_shipping if session.total_details else None,
        session.shipping_cost.amount_total if session.shipping_cost else None,
    ]


def resolve_standard_totals(
    order: Optional[dict[str, Any]] = None,
    session: Optional[CheckoutSession] = None,
    line_items: Optional[list[LineItem]] = None,
    shipping_cents_from_context: Optional[int] = None,
) -> EmailTotals:
    order = order or {}
    line_items = line_items if line_items is not None else (session.items if session else [])

    recorded_subtotal = order.get("amount_subtotal_cents")
    recorded_shipping = order.get("shipping_cents")
    total = coalesce_cents([
        order.get("total_cents"),
        recorded_subtotal + recorded_shipping
        if recorded_subtotal is not None and recorded_shipping is not None else None,
        session.amount_total if session else None,
    ]) or 0

    shipping = coalesce_cents([
        recorded_shipping,
        shipping_cents_from_context,
        *_session_shipping(session),
        sum_shipping_lines(line_items),
    ]) or 0

    subtotal = coalesce_cents([order.get("subtotal_cents"), recorded_subtotal])
    if subtotal is None:
        subtotal = max(0, total - shipping)

    return EmailTotals(subtotal_cents=subtotal, shipping_cents=shipping, total_cents=total)


def resolve_custom_totals(
    order: Optional[dict[str, Any]] = None,
    session: Optional[CheckoutSession] = None,
    shipping_cents_from_context: Optional[int] = None,
) -> EmailTotals:
    order = order or {}
    total = coalesce_cents([
        order.get("total_cents"),
        order.get("amount_cents"),
        session.amount_total if session else None,
    ]) or 0

    shipping = coalesce_cents([
        order.get("shipping_cents"),
        order.get("shipping_amount"),
        shipping_cents_from_context,
        *_session_shipping(session),
    ]) or 0

    subtotal = coalesce_cents([order.get("subtotal_cents")])
    if subtotal is None:
        subtotal = max(0, total - shipping)

    return EmailTotals(subtotal_cents=subtotal, shipping_cents=shipping, total_cents=total)


def format_money(cents: int, currency: str = "usd") -> str:
    symbol = "$" if (currency or "usd").lower() in ("usd", "cad") else ""
    return f"{symbol}{cents / 100:,.2f}"
