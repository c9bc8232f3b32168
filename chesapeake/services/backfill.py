"""
Backfill of display order ids for orders created before they existed.
"""
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chesapeake.core.logging import get_logger
from chesapeake.repositories.order import OrderRepository
from chesapeake.repositories.order_counter import OrderCounterRepository
from chesapeake.services.display_id import format_display_id, two_digit_year

logger = get_logger(__name__)


async def backfill_display_ids(
    session: AsyncSession,
    orders: OrderRepository,
) -> dict[str, str]:
    """
    Number every order lacking a display id, oldest first.

    Counters are seeded from order_counters and advanced in memory; all order
    updates and the final counter writes share one savepoint, so a failure
    leaves neither orders nor counters partially updated. Returns the
    assigned ids keyed by order id (empty when nothing was missing).
    """
    missing = await orders.list_missing_display_ids()
    if not missing:
        return {}

    counter_repo = OrderCounterRepository(session)
    counters = await counter_repo.as_dict()
    assigned: dict[str, str] = {}
    touched_years: set[int] = set()

    try:
        async with session.begin_nested():
            for order_id, created_at in missing:
                year = two_digit_year(_as_datetime(created_at))
                counters[year] = counters.get(year, 0) + 1
                touched_years.add(year)
                display_id = format_display_id(year, counters[year])
                await orders.set_display_id(order_id, display_id)
                assigned[order_id] = display_id

            for year in sorted(touched_years):
                await counter_repo.set_counter(year, counters[year])
    except SQLAlchemyError as e:
        logger.error("Failed to backfill display order ids", error=str(e))
        raise

    logger.info("Backfilled display order ids", count=len(assigned))
    return assigned


def _as_datetime(value) -> datetime | None:
    """created_at comes back as a string from older SQLite rows."""
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None
