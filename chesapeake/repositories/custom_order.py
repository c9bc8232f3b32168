"""
Custom order repository for data access operations.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import func, update

from chesapeake.models.custom_order import CustomOrder, CustomOrderStatus
from chesapeake.repositories.base import BaseRepository

SHIPPING_FIELDS = (
    "shipping_name",
    "shipping_line1",
    "shipping_line2",
    "shipping_city",
    "shipping_state",
    "shipping_postal_code",
    "shipping_country",
    "shipping_phone",
)


class CustomOrderRepository(BaseRepository[CustomOrder]):
    """Repository for CustomOrder model operations."""

    model = CustomOrder

    async def mark_paid(
        self,
        custom_order: CustomOrder,
        *,
        session_id: Optional[str],
        payment_intent_id: Optional[str],
        paid_at: datetime,
        shipping: dict[str, Optional[str]],
    ) -> CustomOrder:
        """
        Move a custom order to paid.

        Payment references and paid_at are first-write-wins (COALESCE with the
        stored value); shipping fields always take the values passed in.
        """
        values = {
            "status": CustomOrderStatus.PAID,
            "stripe_session_id": func.coalesce(CustomOrder.stripe_session_id, session_id),
            "stripe_payment_intent_id": func.coalesce(
                CustomOrder.stripe_payment_intent_id, payment_intent_id
            ),
            "paid_at": func.coalesce(CustomOrder.paid_at, paid_at),
        }
        values.update({k: v for k, v in shipping.items() if k in SHIPPING_FIELDS})

        stmt = (
            update(CustomOrder)
            .where(CustomOrder.id == custom_order.id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        await self.session.refresh(custom_order)
        return custom_order
