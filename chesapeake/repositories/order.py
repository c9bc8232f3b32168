"""
Order repository.

Orders go through SQLAlchemy Core rather than the ORM entity: the deployed
table may lack optional columns, and a Core statement only names the columns
in the probed capability set.
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chesapeake.core.schema import SchemaCapabilities, probe_schema
from chesapeake.models.order import Order, OrderItem
from chesapeake.repositories.base import BaseRepository

orders = Order.__table__


class OrderRepository:
    """Capability-aware access to the orders table."""

    def __init__(self, session: AsyncSession, capabilities: SchemaCapabilities) -> None:
        self.session = session
        self.capabilities = capabilities

    def _columns(self):
        return [c for c in orders.c if self.capabilities.supports(c.name)]

    async def find_id_by_payment_intent(self, payment_intent_id: str) -> Optional[str]:
        stmt = (
            select(orders.c.id)
            .where(orders.c.stripe_payment_intent_id == payment_intent_id)
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def insert_header(self, values: dict[str, Any]) -> None:
        """Insert an order header, naming only supported columns."""
        stmt = insert(orders).values(**self.capabilities.filter_values(values))
        await self.session.execute(stmt)

    async def get(self, order_id: str) -> Optional[dict[str, Any]]:
        stmt = select(*self._columns()).where(orders.c.id == order_id)
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return dict(row) if row else None

    async def count(self) -> int:
        result = await self.session.execute(select(func.count()).select_from(orders))
        return result.scalar() or 0

    async def list_missing_display_ids(self) -> list[tuple[str, Optional[datetime]]]:
        """Orders without a display id, oldest first."""
        missing = or_(orders.c.display_order_id.is_(None), orders.c.display_order_id == "")
        if self.capabilities.supports("created_at"):
            stmt = (
                select(orders.c.id, orders.c.created_at)
                .where(missing)
                .order_by(orders.c.created_at.asc(), orders.c.id.asc())
            )
            result = await self.session.execute(stmt)
            return [(row.id, row.created_at) for row in result]

        stmt = select(orders.c.id).where(missing).order_by(orders.c.id.asc())
        result = await self.session.execute(stmt)
        return [(order_id, None) for order_id in result.scalars()]

    async def set_display_id(self, order_id: str, display_order_id: str) -> None:
        stmt = (
            update(orders)
            .where(orders.c.id == order_id)
            .values(display_order_id=display_order_id)
        )
        await self.session.execute(stmt)

    async def display_ids(self) -> dict[str, Optional[str]]:
        result = await self.session.execute(select(orders.c.id, orders.c.display_order_id))
        return {row.id: row.display_order_id for row in result}

    async def refresh_capabilities(self) -> SchemaCapabilities:
        """Re-probe the orders table on the session's connection."""
        conn = await self.session.connection()
        self.capabilities = await probe_schema(conn)
        return self.capabilities


class OrderItemRepository(BaseRepository[OrderItem]):
    """Repository for OrderItem model operations."""

    model = OrderItem

    async def add(
        self,
        order_id: str,
        product_id: str,
        quantity: int,
        price_cents: int,
    ) -> OrderItem:
        item = OrderItem(
            order_id=order_id,
            product_id=product_id,
            quantity=quantity,
            price_cents=price_cents,
        )
        self.session.add(item)
        await self.session.flush()
        return item

    async def list_for_order(self, order_id: str) -> list[OrderItem]:
        stmt = (
            select(OrderItem)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.product_id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
