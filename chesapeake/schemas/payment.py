"""
What a checkout session paid for, decoded once from its metadata.
"""
from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class StandardSale:
    """Catalog purchase. product_id is the legacy single-product hint."""

    product_id: Optional[str] = None
    quantity: int = 1


@dataclass(frozen=True)
class CustomOrderPayment:
    custom_order_id: str


@dataclass(frozen=True)
class InvoicePayment:
    invoice_id: str


PaymentKind = Union[StandardSale, CustomOrderPayment, InvoicePayment]


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _positive_int(value: Any, default: int = 1) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def decode_payment_kind(metadata: dict[str, Any] | None) -> PaymentKind:
    """
    Map checkout metadata onto a payment kind.

    Payment links for custom orders carry ``custom_order_id`` (older links set
    ``type=custom_order`` with the id under ``order_id``); invoices carry
    ``invoice_id``. Anything else is a catalog sale.
    """
    metadata = metadata or {}
    kind = (_clean(metadata.get("type")) or "").lower()

    custom_order_id = _clean(metadata.get("custom_order_id"))
    if custom_order_id is None and kind == "custom_order":
        custom_order_id = _clean(metadata.get("order_id"))
    if custom_order_id:
        return CustomOrderPayment(custom_order_id=custom_order_id)

    invoice_id = _clean(metadata.get("invoice_id"))
    if invoice_id is None and kind == "invoice":
        invoice_id = _clean(metadata.get("order_id"))
    if invoice_id:
        return InvoicePayment(invoice_id=invoice_id)

    return StandardSale(
        product_id=_clean(metadata.get("product_id")),
        quantity=_positive_int(metadata.get("quantity")),
    )
