"""
Schema capability probe for the orders table.

Deployed databases have lagged behind the models before (card columns and
order_type were added after launch). Instead of reacting to "no such column"
errors on every insert, the orders table is inspected once at startup and
inserts only ever name columns that are known to exist.
"""
from dataclasses import dataclass
from typing import Any

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncConnection

from chesapeake.core.exceptions import SchemaError
from chesapeake.core.logging import get_logger

logger = get_logger(__name__)

ORDERS_TABLE = "orders"

# Present in every deployed version of the orders table.
GUARANTEED_ORDER_COLUMNS = frozenset({
    "id",
    "display_order_id",
    "stripe_payment_intent_id",
    "total_cents",
    "customer_email",
    "shipping_name",
    "shipping_address_json",
    "shipping_cents",
})

OPTIONAL_ORDER_COLUMNS = frozenset({
    "order_type",
    "currency",
    "card_last4",
    "card_brand",
    "created_at",
})


@dataclass(frozen=True)
class SchemaCapabilities:
    """Static set of orders columns the connected database supports."""

    order_columns: frozenset[str]

    def supports(self, column: str) -> bool:
        return column in self.order_columns

    @property
    def missing_optional(self) -> frozenset[str]:
        return OPTIONAL_ORDER_COLUMNS - self.order_columns

    def filter_values(self, values: dict[str, Any]) -> dict[str, Any]:
        """Drop values for columns the table does not have."""
        return {k: v for k, v in values.items() if k in self.order_columns}

    @classmethod
    def full(cls) -> "SchemaCapabilities":
        return cls(GUARANTEED_ORDER_COLUMNS | OPTIONAL_ORDER_COLUMNS)


def _order_columns(sync_conn) -> set[str]:
    inspector = inspect(sync_conn)
    if not inspector.has_table(ORDERS_TABLE):
        return set()
    return {column["name"] for column in inspector.get_columns(ORDERS_TABLE)}


async def probe_schema(conn: AsyncConnection) -> SchemaCapabilities:
    """Inspect the orders table and return its capability set."""
    columns = await conn.run_sync(_order_columns)

    missing = GUARANTEED_ORDER_COLUMNS - columns
    if missing:
        raise SchemaError(f"orders table is missing required columns: {sorted(missing)}")

    capabilities = SchemaCapabilities(
        frozenset(columns) & (GUARANTEED_ORDER_COLUMNS | OPTIONAL_ORDER_COLUMNS)
    )
    if capabilities.missing_optional:
        logger.warning(
            "Orders table lags behind models, optional columns disabled",
            missing=sorted(capabilities.missing_optional),
        )
    return capabilities


_capabilities: SchemaCapabilities | None = None


def set_schema_capabilities(capabilities: SchemaCapabilities) -> None:
    global _capabilities
    _capabilities = capabilities


def get_schema_capabilities() -> SchemaCapabilities:
    """Dependency returning the capability set probed at startup."""
    if _capabilities is None:
        raise RuntimeError("Schema has not been probed; call init_db() first")
    return _capabilities
