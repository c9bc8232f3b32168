"""
Core package containing configuration, database, schema probing, and logging.
"""
from chesapeake.core.config import settings
from chesapeake.core.database import Base, DbSession, get_db_session
from chesapeake.core.logging import configure_logging, get_logger
from chesapeake.core.schema import SchemaCapabilities, get_schema_capabilities

__all__ = [
    "settings",
    "Base",
    "DbSession",
    "get_db_session",
    "configure_logging",
    "get_logger",
    "SchemaCapabilities",
    "get_schema_capabilities",
]
