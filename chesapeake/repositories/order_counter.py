"""
Order counter repository - per-year sequence rows behind display order ids.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from chesapeake.models.order_counter import OrderCounter
from chesapeake.repositories.base import BaseRepository

# Dialects with INSERT ... ON CONFLICT DO UPDATE ... RETURNING
_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class OrderCounterRepository(BaseRepository[OrderCounter]):
    """Repository for OrderCounter model operations."""

    model = OrderCounter

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    @property
    def supports_atomic_increment(self) -> bool:
        return self.dialect_name in _UPSERT_INSERTS

    async def increment(self, year: int) -> int:
        """
        Insert the year with counter=1, or bump it, in one statement.
        Returns the new counter value.
        """
        dialect_insert = _UPSERT_INSERTS[self.dialect_name]
        stmt = dialect_insert(OrderCounter).values(year=year, counter=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[OrderCounter.year],
            set_={"counter": OrderCounter.counter + 1},
        ).returning(OrderCounter.counter)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def increment_locked(self, year: int) -> int:
        """
        Increment under a row lock. Used where the atomic upsert is unavailable.

        Two callers inserting the first row of a year can still collide; the
        primary key turns that into an error rather than a duplicate id.
        """
        stmt = select(OrderCounter).where(OrderCounter.year == year).with_for_update()
        result = await self.session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            row = OrderCounter(year=year, counter=1)
            self.session.add(row)
        else:
            row.counter += 1
        await self.session.flush()
        return row.counter

    async def current(self, year: int) -> Optional[int]:
        row = await self.session.get(OrderCounter, year, populate_existing=True)
        return row.counter if row else None

    async def as_dict(self) -> dict[int, int]:
        result = await self.session.execute(select(OrderCounter.year, OrderCounter.counter))
        return {row.year: row.counter for row in result}

    async def set_counter(self, year: int, counter: int) -> None:
        row = await self.session.get(OrderCounter, year, populate_existing=True)
        if row is None:
            self.session.add(OrderCounter(year=year, counter=counter))
        else:
            row.counter = counter
        await self.session.flush()
