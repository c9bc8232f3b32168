"""
Idempotency guard for webhook redelivery.

Stripe delivers events at least once. The guard is a check-then-act fast
path; the unique index on orders.stripe_payment_intent_id is what actually
keeps a concurrent redelivery from producing a second order.
"""
from typing import Optional

from chesapeake.core.logging import get_logger
from chesapeake.models.custom_order import CustomOrder
from chesapeake.repositories.order import OrderRepository

logger = get_logger(__name__)


class IdempotencyGuard:
    def __init__(self, orders: OrderRepository) -> None:
        self.orders = orders

    async def should_process(self, payment_intent_id: Optional[str]) -> bool:
        """True unless an order already references this payment intent."""
        if not payment_intent_id:
            # Nothing to deduplicate on
            return True

        existing = await self.orders.find_id_by_payment_intent(payment_intent_id)
        if existing:
            logger.info(
                "Order already exists for payment intent, skipping",
                payment_intent_id=payment_intent_id,
                order_id=existing,
            )
            return False
        return True

    @staticmethod
    def custom_order_already_processed(custom_order: CustomOrder) -> bool:
        """
        A custom order that already carries payment references was reconciled
        by an earlier delivery; the whole flow (emails included) is skipped.
        """
        return bool(custom_order.stripe_payment_intent_id or custom_order.stripe_session_id)
