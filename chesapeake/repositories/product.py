"""
Product repository for data access operations.
"""
from typing import Optional

from sqlalchemy import case, or_, select, true, update

from chesapeake.models.product import Product
from chesapeake.repositories.base import BaseRepository


class ProductRepository(BaseRepository[Product]):
    """Repository for Product model operations."""

    model = Product

    async def get_by_key(self, product_key: str) -> Optional[Product]:
        """Find a product by Stripe product id or internal id."""
        stmt = (
            select(Product)
            .where(or_(Product.stripe_product_id == product_key, Product.id == product_key))
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def decrement_inventory(self, product_key: str, quantity: int) -> int:
        """
        Take `quantity` units out of stock in a single UPDATE.

        The stock level floors at zero and the product is flagged sold once it
        runs out; an untracked (NULL) stock level counts as sold out. Matches
        on Stripe product id or internal id. Returns the number of rows hit.
        """
        remaining = Product.quantity_available - quantity
        stmt = (
            update(Product)
            .where(or_(Product.stripe_product_id == product_key, Product.id == product_key))
            .values(
                quantity_available=case(
                    (Product.quantity_available.is_(None), 0),
                    (remaining > 0, remaining),
                    else_=0,
                ),
                is_sold=case(
                    (Product.quantity_available.is_(None), true()),
                    (remaining <= 0, true()),
                    else_=Product.is_sold,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0
