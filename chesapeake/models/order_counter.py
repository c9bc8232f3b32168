"""
Per-year counter backing display order ids.
"""
from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column

from chesapeake.core.database import Base


class OrderCounter(Base):
    """Last issued sequence number for a two-digit year."""

    __tablename__ = "order_counters"

    year: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    counter: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return f"<OrderCounter {self.year}:{self.counter}>"
