"""
Inventory adjustment for catalog sales.
"""
from collections import Counter
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from chesapeake.core.logging import get_logger
from chesapeake.repositories.product import ProductRepository
from chesapeake.schemas.stripe import LineItem
from chesapeake.services.line_items import product_key

logger = get_logger(__name__)


def aggregate_quantities(
    line_items: list[LineItem],
    hint: Optional[str] = None,
) -> dict[str, int]:
    """Total quantity bought per product key, shipping lines excluded."""
    totals: Counter[str] = Counter()
    for item in line_items:
        if item.is_shipping:
            continue
        totals[product_key(item, hint)] += item.quantity or 1
    return dict(totals)


class InventoryService:
    """Decrements stock for everything sold in one checkout."""

    def __init__(self, session: AsyncSession) -> None:
        self.products = ProductRepository(session)

    async def apply_sale(self, quantities: dict[str, int]) -> dict[str, int]:
        """
        Decrement stock per product key. Returns rows updated per key; a key
        matching no product is logged and skipped.
        """
        updated: dict[str, int] = {}
        for key, quantity in quantities.items():
            rows = await self.products.decrement_inventory(key, quantity)
            updated[key] = rows
            if rows:
                logger.info("Inventory decremented", product_key=key, quantity=quantity)
            else:
                logger.warning(
                    "No product matched sold line item",
                    product_key=key,
                    quantity=quantity,
                )
        return updated
