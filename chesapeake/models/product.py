"""
Product model - a catalog piece. Only inventory fields are written here.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from chesapeake.core.database import Base
from chesapeake.models.order import new_id


class Product(Base):
    """Catalog product with Stripe references and stock level."""

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    price_cents: Mapped[Optional[int]] = mapped_column(Integer)
    image_url: Mapped[Optional[str]] = mapped_column(Text)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_one_off: Mapped[bool] = mapped_column(Boolean, default=True)
    is_sold: Mapped[bool] = mapped_column(Boolean, default=False)
    # NULL means "not tracked"; a sale of an untracked piece marks it sold
    quantity_available: Mapped[Optional[int]] = mapped_column(Integer)

    stripe_price_id: Mapped[Optional[str]] = mapped_column(String(255))
    stripe_product_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product {self.name[:30]}>"
