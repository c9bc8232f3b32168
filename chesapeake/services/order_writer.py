"""
Order/item persistence.

The header is the unit of success: if it cannot be written the whole event
fails and Stripe retries. Individual item rows are best effort.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chesapeake.core.exceptions import OrderPersistenceError
from chesapeake.core.logging import get_logger
from chesapeake.core.schema import set_schema_capabilities
from chesapeake.models.order import new_id
from chesapeake.repositories.order import OrderItemRepository, OrderRepository
from chesapeake.services.display_id import DisplayIdCounter
from chesapeake.services.line_items import LineItemDraft

logger = get_logger(__name__)


class OrderType:
    STANDARD = "standard"
    CUSTOM = "custom"


@dataclass
class OrderHeader:
    """Everything an order header records, before ids are assigned."""

    payment_intent_id: Optional[str]
    total_cents: int
    shipping_cents: int = 0
    customer_email: Optional[str] = None
    shipping_name: Optional[str] = None
    shipping_address: Optional[dict[str, Any]] = None
    currency: Optional[str] = None
    order_type: Optional[str] = None
    card_last4: Optional[str] = None
    card_brand: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_values(self) -> dict[str, Any]:
        return {
            "stripe_payment_intent_id": self.payment_intent_id,
            "total_cents": self.total_cents,
            "shipping_cents": self.shipping_cents,
            "customer_email": self.customer_email,
            "shipping_name": self.shipping_name,
            "shipping_address_json": (
                json.dumps(self.shipping_address) if self.shipping_address else None
            ),
            "currency": self.currency,
            "order_type": self.order_type,
            "card_last4": self.card_last4,
            "card_brand": self.card_brand,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class InsertedOrder:
    order_id: str
    display_order_id: str
    items_written: int


class OrderWriter:
    """Writes an order header and its items."""

    def __init__(self, session: AsyncSession, orders: OrderRepository) -> None:
        self.session = session
        self.orders = orders
        self.items = OrderItemRepository(session)
        self.display_ids = DisplayIdCounter(session)

    async def insert_order(
        self,
        header: OrderHeader,
        items: list[LineItemDraft],
        display_order_id: Optional[str] = None,
    ) -> Optional[InsertedOrder]:
        """
        Insert a header plus its items.

        Returns None when the payment intent already has an order (a
        redelivery that slipped past the idempotency guard). Raises
        OrderPersistenceError or DisplayIdError when the header cannot be
        written.
        """
        order_id = new_id()
        requested_id = display_order_id

        values = header.to_values()
        values["id"] = order_id

        try:
            display_order_id = await self._write_header(values, requested_id)
        except IntegrityError as e:
            if await self._already_recorded(header):
                return None
            if not requested_id:
                logger.error("Order header violates a constraint", error=str(e))
                raise OrderPersistenceError("order header insert failed") from e

            # Custom orders are numbered separately and may collide with an order.
            try:
                display_order_id = await self._write_header(values, None)
                logger.warning(
                    "Display order id already taken, issued a fresh one",
                    requested=requested_id,
                    display_order_id=display_order_id,
                )
            except IntegrityError as retry_error:
                if await self._already_recorded(header):
                    return None
                logger.error("Order header violates a constraint", error=str(retry_error))
                raise OrderPersistenceError("order header insert failed") from retry_error

        written = 0
        for item in items:
            try:
                async with self.session.begin_nested():
                    await self.items.add(
                        order_id=order_id,
                        product_id=item.product_id,
                        quantity=item.quantity,
                        price_cents=item.price_cents,
                    )
                written += 1
            except SQLAlchemyError as e:
                logger.error(
                    "Failed to insert order item",
                    order_id=order_id,
                    product_id=item.product_id,
                    error=str(e),
                )

        if not items:
            # TODO: confirm with the shop owner whether item-less sessions should
            # still produce an order; kept as-is for now.
            logger.warning("Order created without line items", order_id=order_id)

        logger.info(
            "Order created",
            order_id=order_id,
            display_order_id=display_order_id,
            payment_intent_id=header.payment_intent_id,
            items=written,
        )
        return InsertedOrder(
            order_id=order_id,
            display_order_id=display_order_id,
            items_written=written,
        )

    async def _already_recorded(self, header: OrderHeader) -> bool:
        if not header.payment_intent_id:
            return False
        if await self.orders.find_id_by_payment_intent(header.payment_intent_id):
            logger.info(
                "Concurrent delivery already created this order",
                payment_intent_id=header.payment_intent_id,
            )
            return True
        return False

    async def _write_header(self, values: dict[str, Any], display_order_id: Optional[str]) -> str:
        """
        Issue the display id and insert the header under one savepoint, so a
        rejected header also gives its counter increment back.
        """
        async with self.session.begin_nested():
            values["display_order_id"] = (
                display_order_id or await self.display_ids.next_display_id()
            )
            await self._insert_header(values)
        return values["display_order_id"]

    async def _insert_header(self, values: dict[str, Any]) -> None:
        try:
            async with self.session.begin_nested():
                await self.orders.insert_header(values)
            return
        except IntegrityError:
            raise
        except DBAPIError as e:
            original_error = e

        # The table may have lost columns since startup; re-probe once.
        before = self.orders.capabilities
        after = await self.orders.refresh_capabilities()
        dropped = before.order_columns - after.order_columns
        if not dropped:
            logger.error("Order header insert failed", error=str(original_error))
            raise OrderPersistenceError("order header insert failed") from original_error

        logger.warning(
            "Orders table missing columns, retrying insert without them",
            dropped=sorted(dropped),
        )
        set_schema_capabilities(after)
        try:
            async with self.session.begin_nested():
                await self.orders.insert_header(values)
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            logger.error("Order header fallback insert failed", error=str(e))
            raise OrderPersistenceError("order header insert failed") from e
