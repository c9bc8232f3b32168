"""
CustomOrder model - a bespoke piece quoted by the owner and paid via a payment link.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from chesapeake.core.database import Base
from chesapeake.models.order import new_id


class CustomOrderStatus:
    PENDING = "pending"
    PAID = "paid"


class CustomOrder(Base):
    """Custom order request; moves pending -> paid once, driven by the webhook."""

    __tablename__ = "custom_orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    display_custom_order_id: Mapped[Optional[str]] = mapped_column(String(32), unique=True)

    customer_name: Mapped[Optional[str]] = mapped_column(String(255))
    customer_email: Mapped[Optional[str]] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text)
    image_url: Mapped[Optional[str]] = mapped_column(Text)
    amount: Mapped[Optional[int]] = mapped_column(Integer)  # cents
    message_id: Mapped[Optional[str]] = mapped_column(String(36))
    status: Mapped[str] = mapped_column(String(20), default=CustomOrderStatus.PENDING)
    payment_link: Mapped[Optional[str]] = mapped_column(Text)

    # Set once, on the pending -> paid transition
    stripe_session_id: Mapped[Optional[str]] = mapped_column(String(255))
    stripe_payment_intent_id: Mapped[Optional[str]] = mapped_column(String(255))
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Shipping, refreshed from every paying event
    shipping_name: Mapped[Optional[str]] = mapped_column(String(255))
    shipping_line1: Mapped[Optional[str]] = mapped_column(String(255))
    shipping_line2: Mapped[Optional[str]] = mapped_column(String(255))
    shipping_city: Mapped[Optional[str]] = mapped_column(String(255))
    shipping_state: Mapped[Optional[str]] = mapped_column(String(255))
    shipping_postal_code: Mapped[Optional[str]] = mapped_column(String(32))
    shipping_country: Mapped[Optional[str]] = mapped_column(String(2))
    shipping_phone: Mapped[Optional[str]] = mapped_column(String(64))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<CustomOrder {self.display_custom_order_id or self.id} {self.status}>"
