"""
Display order ids: "YY-NNN", sequential within a two-digit year.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chesapeake.core.exceptions import DisplayIdError
from chesapeake.core.logging import get_logger
from chesapeake.repositories.order_counter import OrderCounterRepository

logger = get_logger(__name__)


def two_digit_year(moment: Optional[datetime] = None) -> int:
    moment = moment or datetime.now(timezone.utc)
    return moment.year % 100


def format_display_id(year: int, counter: int) -> str:
    """Counters past 999 simply widen: 26-999 is followed by 26-1000."""
    return f"{year:02d}-{counter:03d}"


class DisplayIdCounter:
    """Issues display order ids from the order_counters table."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.counters = OrderCounterRepository(session)

    async def next_display_id(self, year: Optional[int] = None) -> str:
        """
        Increment the year's counter and return the new display id.

        Raises DisplayIdError if no counter could be issued; callers must not
        create an order without one.
        """
        year = two_digit_year() if year is None else year

        if self.counters.supports_atomic_increment:
            try:
                async with self.session.begin_nested():
                    counter = await self.counters.increment(year)
                return format_display_id(year, counter)
            except SQLAlchemyError as e:
                logger.warning(
                    "Atomic counter increment failed, falling back to locked increment",
                    year=year,
                    error=str(e),
                )

        try:
            async with self.session.begin_nested():
                counter = await self.counters.increment_locked(year)
        except SQLAlchemyError as e:
            logger.error("Failed to issue display order id", year=year, error=str(e))
            raise DisplayIdError(f"could not issue display order id for year {year}") from e

        return format_display_id(year, counter)
