import sqlite3
from pathlib import Path

import pytest

from schemasnap.config import RunConfiguration, build_run_configuration
from schemasnap.storage import FileSnapshotStore
from tests.utils import StaticCatalogAdapter, shop_catalog

SQLITE_SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE node (id INTEGER PRIMARY KEY, parent_id INTEGER REFERENCES node(id));
CREATE TABLE orders (
    id INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    total REAL
);
CREATE INDEX orders_user_idx ON orders (user_id);
CREATE VIEW big_orders AS SELECT id, total FROM orders WHERE total > 100;
CREATE TRIGGER orders_audit AFTER INSERT ON orders
BEGIN UPDATE users SET email = email WHERE id = NEW.user_id; END;
"""


@pytest.fixture
def store(tmp_path: Path) -> FileSnapshotStore:
    """Empty snapshot store in a temporary directory"""
    return FileSnapshotStore(tmp_path / "store")


@pytest.fixture
def shop_adapter() -> StaticCatalogAdapter:
    """Adapter over the canned shop catalog with a PostgreSQL-style header"""
    return StaticCatalogAdapter(shop_catalog(), header=["SET search_path TO public;"])


@pytest.fixture
def make_config(tmp_path: Path):
    """Build a run configuration writing below tmp_path"""

    def _make(**overrides) -> RunConfiguration:
        values = {
            "output_path": tmp_path / "db" / "structure.sql",
            "store_path": tmp_path / "store",
        }
        values.update(overrides)
        return build_run_configuration(**values)

    return _make


@pytest.fixture
def sqlite_db(tmp_path: Path) -> Path:
    """SQLite database file with tables, an index, a view and a trigger"""
    path = tmp_path / "app.db"
    connection = sqlite3.connect(path)
    try:
        connection.executescript(SQLITE_SCHEMA)
        connection.commit()
    finally:
        connection.close()
    return path


@pytest.fixture
def sqlite_connection(sqlite_db: Path):
    connection = sqlite3.connect(sqlite_db)
    yield connection
    connection.close()
