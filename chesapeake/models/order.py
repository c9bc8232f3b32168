"""
Order models - a completed purchase and its line items.
"""
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from chesapeake.core.database import Base


def new_id() -> str:
    return str(uuid4())


class Order(Base):
    """Order header, written once per reconciled checkout (append-only)."""

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    # Human-facing "YY-NNN" number
    display_order_id: Mapped[Optional[str]] = mapped_column(
        String(32),
        unique=True,
        nullable=True,
    )
    # Optional columns (see core.schema) carry no client-side defaults, so a
    # Core INSERT never names them unless the table has them.
    order_type: Mapped[Optional[str]] = mapped_column(String(20))  # standard | custom | NULL

    # Unique backstop for the idempotency guard (NULLs do not collide)
    stripe_payment_intent_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        unique=True,
        nullable=True,
    )

    # Financial (cents)
    total_cents: Mapped[Optional[int]] = mapped_column(Integer)
    shipping_cents: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    currency: Mapped[Optional[str]] = mapped_column(String(3))

    # Customer
    customer_email: Mapped[Optional[str]] = mapped_column(String(255))
    shipping_name: Mapped[Optional[str]] = mapped_column(String(255))
    shipping_address_json: Mapped[Optional[str]] = mapped_column(Text)

    # Display-only payment metadata
    card_last4: Mapped[Optional[str]] = mapped_column(String(4))
    card_brand: Mapped[Optional[str]] = mapped_column(String(32))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Order {self.display_order_id or self.id}>"


class OrderItem(Base):
    """One line of an order. product_id may be a synthetic key ("shipping")."""

    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    order_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        index=True,
    )
    product_id: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<OrderItem {self.product_id} x{self.quantity}>"
