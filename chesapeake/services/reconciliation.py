"""
Checkout reconciliation.

Turns a completed Stripe checkout session into an order. The payment kind is
decoded once from the session metadata:

- catalog sale: order + items, then stock is taken out of inventory
- custom order: the CustomOrder is marked paid, then an order is written
  with a synthetic item for the piece and one for shipping
- invoice: order + items, inventory untouched

Nothing here commits. The caller commits once reconcile() returns and only
then sends the emails listed in the result.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from chesapeake.core.logging import get_logger
from chesapeake.models.custom_order import CustomOrder
from chesapeake.repositories.custom_order import CustomOrderRepository
from chesapeake.repositories.order import OrderRepository
from chesapeake.schemas.payment import (
    CustomOrderPayment,
    InvoicePayment,
    StandardSale,
    decode_payment_kind,
)
from chesapeake.schemas.stripe import CheckoutSession
from chesapeake.services.email_totals import (
    EmailTotals,
    coalesce_cents,
    resolve_custom_totals,
    resolve_standard_totals,
)
from chesapeake.services.idempotency import IdempotencyGuard
from chesapeake.services.inventory import InventoryService, aggregate_quantities
from chesapeake.services.line_items import (
    SHIPPING_PRODUCT,
    LineItemDraft,
    drafts_from_session,
    shipping_cents,
)
from chesapeake.services.order_emails import (
    EmailLine,
    OrderEmailData,
    format_address,
    format_payment_method,
)
from chesapeake.services.order_writer import (
    InsertedOrder,
    OrderHeader,
    OrderType,
    OrderWriter,
)

logger = get_logger(__name__)


class ReconcileStatus:
    CREATED = "created"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"


@dataclass
class ReconcileResult:
    status: str
    order: Optional[InsertedOrder] = None
    notifications: list[OrderEmailData] = field(default_factory=list)

    @property
    def created(self) -> bool:
        return self.status == ReconcileStatus.CREATED


def custom_order_item_key(custom_order_id: str) -> str:
    return f"custom_order:{custom_order_id}"


def custom_shipping_cents(checkout: CheckoutSession) -> int:
    """Shipping charged on a custom order payment link."""
    shipping_lines = checkout.shipping_items
    return coalesce_cents([
        checkout.total_details.amount_shipping if checkout.total_details else None,
        checkout.shipping_cost.amount_total if checkout.shipping_cost else None,
        sum(item.amount_total or 0 for item in shipping_lines) if shipping_lines else None,
        checkout.metadata.get("shipping_cents"),
    ]) or 0


def shipping_fields(checkout: CheckoutSession) -> dict[str, Optional[str]]:
    """CustomOrder shipping columns from the session; empty when Stripe collected none."""
    shipping = checkout.shipping
    if shipping is None:
        return {}
    address = shipping.address
    return {
        "shipping_name": shipping.name,
        "shipping_line1": address.line1 if address else None,
        "shipping_line2": address.line2 if address else None,
        "shipping_city": address.city if address else None,
        "shipping_state": address.state if address else None,
        "shipping_postal_code": address.postal_code if address else None,
        "shipping_country": address.country if address else None,
        "shipping_phone": shipping.phone,
    }


class CheckoutReconciler:
    """Reconciles one completed checkout session inside the caller's transaction."""

    def __init__(self, session: AsyncSession, orders: OrderRepository) -> None:
        self.session = session
        self.orders = orders
        self.guard = IdempotencyGuard(orders)
        self.writer = OrderWriter(session, orders)
        self.inventory = InventoryService(session)
        self.custom_orders = CustomOrderRepository(session)

    async def reconcile(self, checkout: CheckoutSession) -> ReconcileResult:
        payment = decode_payment_kind(checkout.metadata)
        logger.info(
            "Reconciling checkout session",
            session_id=checkout.id,
            payment_intent_id=checkout.payment_intent_id,
            payment_kind=type(payment).__name__,
        )

        if isinstance(payment, CustomOrderPayment):
            return await self._reconcile_custom(checkout, payment)
        if isinstance(payment, InvoicePayment):
            return await self._reconcile_invoice(checkout, payment)
        return await self._reconcile_standard(checkout, payment)

    async def _reconcile_standard(
        self,
        checkout: CheckoutSession,
        sale: StandardSale,
    ) -> ReconcileResult:
        if not await self.guard.should_process(checkout.payment_intent_id):
            return ReconcileResult(ReconcileStatus.DUPLICATE)

        items = drafts_from_session(checkout, sale)
        header = self._header(checkout, OrderType.STANDARD)
        inserted = await self.writer.insert_order(header, items)
        if inserted is None:
            return ReconcileResult(ReconcileStatus.DUPLICATE)

        quantities = aggregate_quantities(checkout.items, sale.product_id)
        if not quantities and sale.product_id:
            quantities = {sale.product_id: sale.quantity}
        await self.inventory.apply_sale(quantities)

        totals = resolve_standard_totals(
            order={"total_cents": header.total_cents, "shipping_cents": header.shipping_cents},
            session=checkout,
        )
        email = self._email_data(checkout, inserted, header, items, totals, type_label="Order")
        return ReconcileResult(ReconcileStatus.CREATED, inserted, [email])

    async def _reconcile_invoice(
        self,
        checkout: CheckoutSession,
        payment: InvoicePayment,
    ) -> ReconcileResult:
        if not await self.guard.should_process(checkout.payment_intent_id):
            return ReconcileResult(ReconcileStatus.DUPLICATE)

        items = drafts_from_session(checkout)
        header = self._header(checkout, order_type=None)
        inserted = await self.writer.insert_order(header, items)
        if inserted is None:
            return ReconcileResult(ReconcileStatus.DUPLICATE)

        logger.info(
            "Invoice paid",
            invoice_id=payment.invoice_id,
            display_order_id=inserted.display_order_id,
        )
        totals = resolve_standard_totals(
            order={"total_cents": header.total_cents, "shipping_cents": header.shipping_cents},
            session=checkout,
        )
        email = self._email_data(checkout, inserted, header, items, totals, type_label="Invoice")
        return ReconcileResult(ReconcileStatus.CREATED, inserted, [email])

    async def _reconcile_custom(
        self,
        checkout: CheckoutSession,
        payment: CustomOrderPayment,
    ) -> ReconcileResult:
        custom_order = await self.custom_orders.get_by_id(payment.custom_order_id)
        if custom_order is None:
            logger.warning(
                "Custom order not found for checkout session",
                custom_order_id=payment.custom_order_id,
                session_id=checkout.id,
            )
            return ReconcileResult(ReconcileStatus.NOT_FOUND)

        if self.guard.custom_order_already_processed(custom_order):
            logger.info(
                "Custom order already paid, skipping",
                custom_order_id=custom_order.id,
                payment_intent_id=custom_order.stripe_payment_intent_id,
            )
            return ReconcileResult(ReconcileStatus.DUPLICATE)

        await self.custom_orders.mark_paid(
            custom_order,
            session_id=checkout.id,
            payment_intent_id=checkout.payment_intent_id,
            paid_at=datetime.now(timezone.utc),
            shipping=shipping_fields(checkout),
        )

        if not await self.guard.should_process(checkout.payment_intent_id):
            return ReconcileResult(ReconcileStatus.DUPLICATE)

        shipping = custom_shipping_cents(checkout)
        total = checkout.amount_total
        if total is None:
            total = (custom_order.amount or 0) + shipping
        amount = custom_order.amount if custom_order.amount is not None else max(0, total - shipping)

        items = [
            LineItemDraft(
                product_id=custom_order_item_key(custom_order.id),
                quantity=1,
                price_cents=amount,
                name=custom_order.description or "Custom order",
            ),
            LineItemDraft(
                product_id=SHIPPING_PRODUCT,
                quantity=1,
                price_cents=shipping,
                name="Shipping",
            ),
        ]
        header = self._header(checkout, OrderType.CUSTOM)
        header.total_cents = total
        header.shipping_cents = shipping
        header.customer_email = header.customer_email or custom_order.customer_email

        inserted = await self.writer.insert_order(
            header,
            items,
            display_order_id=custom_order.display_custom_order_id,
        )
        if inserted is None:
            return ReconcileResult(ReconcileStatus.DUPLICATE)

        totals = resolve_custom_totals(
            order={"total_cents": total, "shipping_cents": shipping, "amount_cents": amount},
            session=checkout,
            shipping_cents_from_context=shipping,
        )
        email = self._email_data(
            checkout,
            inserted,
            header,
            items[:1],
            totals,
            type_label="Custom Order",
            custom_order=custom_order,
        )
        return ReconcileResult(ReconcileStatus.CREATED, inserted, [email])

    @staticmethod
    def _header(checkout: CheckoutSession, order_type: Optional[str]) -> OrderHeader:
        shipping = checkout.shipping
        card = checkout.card
        return OrderHeader(
            payment_intent_id=checkout.payment_intent_id,
            total_cents=checkout.amount_total or 0,
            shipping_cents=shipping_cents(checkout),
            customer_email=checkout.email,
            shipping_name=shipping.name if shipping else None,
            shipping_address=(
                shipping.address.model_dump() if shipping and shipping.address else None
            ),
            currency=checkout.currency,
            order_type=order_type,
            card_last4=card.last4 if card else None,
            card_brand=card.brand if card else None,
        )

    @staticmethod
    def _email_data(
        checkout: CheckoutSession,
        inserted: InsertedOrder,
        header: OrderHeader,
        items: list[LineItemDraft],
        totals: EmailTotals,
        type_label: str,
        custom_order: Optional[CustomOrder] = None,
    ) -> OrderEmailData:
        shipping = checkout.shipping
        customer_name = shipping.name if shipping else None
        if not customer_name and checkout.customer_details:
            customer_name = checkout.customer_details.name
        if not customer_name and custom_order is not None:
            customer_name = custom_order.customer_name

        return OrderEmailData(
            order_number=inserted.display_order_id,
            order_date=header.created_at,
            order_type_label=type_label,
            totals=totals,
            items=[
                EmailLine(
                    name=item.name or item.product_id,
                    quantity=item.quantity,
                    line_total_cents=item.line_total,
                )
                for item in items
            ],
            customer_name=customer_name,
            customer_email=header.customer_email,
            shipping_address=format_address(
                shipping.name if shipping else None,
                shipping.address if shipping else None,
            ),
            payment_method=format_payment_method(checkout.card),
            currency=checkout.currency or "usd",
            payment_intent_id=header.payment_intent_id,
        )
