"""
Customer confirmation and owner "new sale" emails.

Reconciliation builds an OrderEmailData per created order; the dispatcher
renders it and hands it to the NotificationService. Email is best effort and
is only sent after the order has been committed.
"""
import html
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

from chesapeake.core.config import settings
from chesapeake.core.logging import get_logger
from chesapeake.schemas.stripe import Card, StripeAddress
from chesapeake.services.email_totals import EmailTotals, format_money
from chesapeake.services.notification_service import NotificationService

logger = get_logger(__name__)

BRAND_NAME = "The Chesapeake Shell"


@dataclass(frozen=True)
class EmailLine:
    name: str
    quantity: int
    line_total_cents: int


@dataclass
class OrderEmailData:
    order_number: str
    order_date: datetime
    order_type_label: str
    totals: EmailTotals
    items: list[EmailLine] = field(default_factory=list)
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    shipping_address: Optional[str] = None
    payment_method: Optional[str] = None
    currency: str = "usd"
    payment_intent_id: Optional[str] = None


def format_address(
    name: Optional[str],
    address: Union[StripeAddress, dict[str, Any], None],
) -> Optional[str]:
    """Multi-line postal address, or None when nothing is known."""
    if isinstance(address, StripeAddress):
        address = address.model_dump()
    address = address or {}

    city_line = " ".join(
        part for part in [
            ", ".join(p for p in [address.get("city"), address.get("state")] if p),
            address.get("postal_code"),
        ] if part
    )
    lines = [
        name,
        address.get("line1"),
        address.get("line2"),
        city_line,
        address.get("country"),
    ]
    lines = [line for line in lines if line]
    return "\n".join(lines) if lines else None


def format_payment_method(card: Optional[Card]) -> Optional[str]:
    if card is None or not card.last4:
        return None
    brand = (card.brand or "card").title()
    return f"{brand} ending in {card.last4}"


def _money(data: OrderEmailData, cents: int) -> str:
    return format_money(cents, data.currency)


def _text_body(data: OrderEmailData, intro: str, link_label: str, link: str) -> str:
    lines = [intro, "", f"Order {data.order_number} ({data.order_type_label})"]
    lines.append(f"Date: {data.order_date:%B %d, %Y}")
    lines.append("")
    if data.items:
        for item in data.items:
            qty = f" x {item.quantity}" if item.quantity > 1 else ""
            lines.append(f"- {item.name}{qty}: {_money(data, item.line_total_cents)}")
    else:
        lines.append("No items found.")
    lines += [
        "",
        f"Subtotal: {_money(data, data.totals.subtotal_cents)}",
        f"Shipping: {_money(data, data.totals.shipping_cents)}",
        f"Total: {_money(data, data.totals.total_cents)}",
        "",
        "Ship to:",
        data.shipping_address or "Not provided",
    ]
    if data.payment_method:
        lines += ["", f"Paid with {data.payment_method}"]
    lines += ["", f"{link_label}: {link}"]
    return "\n".join(lines)


def _html_body(text: str) -> str:
    paragraphs = "".join(
        f"<p>{html.escape(block).replace(chr(10), '<br>')}</p>"
        for block in text.split("\n\n")
    )
    return f"<!DOCTYPE html><html><body>{paragraphs}</body></html>"


def format_customer_email(data: OrderEmailData, site_url: str) -> tuple[str, str, str]:
    """Returns (subject, html_content, text_content)."""
    greeting = f"Hi {data.customer_name}," if data.customer_name else "Hi,"
    text = _text_body(
        data,
        f"{greeting}\n\nThank you for your order from {BRAND_NAME}!",
        "Visit the shop",
        site_url,
    )
    subject = f"{BRAND_NAME} - Order {data.order_number} confirmed"
    return subject, _html_body(text), text


def format_owner_email(data: OrderEmailData, site_url: str) -> tuple[str, str, str]:
    """Returns (subject, html_content, text_content)."""
    customer = data.customer_name or "Customer"
    if data.customer_email:
        customer = f"{customer} <{data.customer_email}>"
    text = _text_body(
        data,
        f"New sale: {customer}",
        "View in admin",
        f"{site_url.rstrip('/')}/admin",
    )
    if data.payment_intent_id:
        text += f"\nStripe: https://dashboard.stripe.com/payments/{data.payment_intent_id}"
    subject = f"New sale - {data.order_number} ({_money(data, data.totals.total_cents)})"
    return subject, _html_body(text), text


class OrderEmailDispatcher:
    """Sends the customer confirmation and the owner notification."""

    def __init__(
        self,
        notifications: NotificationService,
        owner_email: Optional[str] = None,
        site_url: Optional[str] = None,
    ) -> None:
        self.notifications = notifications
        self.owner_email = owner_email if owner_email is not None else settings.owner_email
        self.site_url = site_url or settings.public_site_url

    async def dispatch(self, data: OrderEmailData) -> dict[str, bool]:
        results = {"customer": False, "owner": False}

        if data.customer_email:
            subject, html_content, text = format_customer_email(data, self.site_url)
            results["customer"] = await self._send(data, data.customer_email, subject, html_content, text)
        else:
            logger.warning("No customer email on order, skipping confirmation", order=data.order_number)

        if self.owner_email:
            subject, html_content, text = format_owner_email(data, self.site_url)
            results["owner"] = await self._send(data, self.owner_email, subject, html_content, text)
        else:
            logger.warning("Owner email not configured, skipping sale notification")

        return results

    async def _send(
        self,
        data: OrderEmailData,
        to: str,
        subject: str,
        html_content: str,
        text: str,
    ) -> bool:
        try:
            sent = await self.notifications.send_email(
                to=to,
                subject=subject,
                html_content=html_content,
                text_content=text,
            )
        except Exception as e:
            logger.error("Order email failed", order=data.order_number, to=to, error=str(e))
            return False
        if not sent:
            logger.warning("Order email not sent", order=data.order_number, to=to)
        return sent
