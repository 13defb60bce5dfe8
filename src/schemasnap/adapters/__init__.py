"""Per-dialect catalog adapters."""

from .base import CatalogAdapter, Row
from .mysql import MySQLAdapter
from .postgresql import PostgreSQLAdapter
from .registry import AdapterRegistry, open_connection
from .sqlite import SQLiteAdapter

__all__ = [
    "AdapterRegistry",
    "CatalogAdapter",
    "MySQLAdapter",
    "PostgreSQLAdapter",
    "Row",
    "SQLiteAdapter",
    "open_connection",
]
