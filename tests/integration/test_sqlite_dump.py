"""End-to-end dumps of a real SQLite database."""

import sqlite3
from contextlib import closing
from pathlib import Path

import pytest

from schemasnap.adapters import SQLiteAdapter
from schemasnap.domain.errors import DialectUnsupported
from schemasnap.dumper import Dumper, dump
from schemasnap.introspection import Introspector
from schemasnap.models import ObjectKind

USERS_DDL = """CREATE TABLE IF NOT EXISTS users (
  id INTEGER,
  email TEXT NOT NULL,
  created_at TEXT DEFAULT CURRENT_TIMESTAMP,
  PRIMARY KEY (id),
  UNIQUE (email)
);"""


def test_single_file_dump_order(make_config, sqlite_connection) -> None:
    """Tables, then indexes, views and triggers; tables by name."""
    result = Dumper(make_config(), connection=sqlite_connection).run()

    content = result.snapshot.content
    assert result.snapshot.dialect == "sqlite"
    assert result.snapshot.engine_version == sqlite3.sqlite_version
    assert USERS_DDL in content
    assert "  FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE\n" in content
    assert "  FOREIGN KEY (parent_id) REFERENCES node (id)\n" in content
    markers = [
        "PRAGMA foreign_keys = ON;",
        "-- Tables",
        "CREATE TABLE IF NOT EXISTS node (",
        "CREATE TABLE IF NOT EXISTS orders (",
        "CREATE TABLE IF NOT EXISTS users (",
        "-- Indexes",
        "CREATE INDEX orders_user_idx ON orders (user_id);",
        "-- Views",
        "CREATE VIEW IF NOT EXISTS big_orders AS\nSELECT id, total FROM orders WHERE total > 100;",
        "-- Triggers",
        "CREATE TRIGGER orders_audit AFTER INSERT ON orders",
    ]
    positions = [content.index(marker) for marker in markers]
    assert positions == sorted(positions)
    assert "-- Functions" not in content
    assert "ALTER TABLE" not in content


def test_dump_restores_to_identical_schema(make_config, sqlite_db: Path, tmp_path: Path) -> None:
    """Executing a dump into an empty database reproduces the same snapshot."""
    with closing(sqlite3.connect(sqlite_db)) as source:
        original = dump(make_config(), source)

    restored_path = tmp_path / "restored.db"
    restored = sqlite3.connect(restored_path)
    try:
        restored.executescript(original.snapshot.content)
        replay = dump(
            make_config(
                output_path=tmp_path / "replay.sql", store_path=tmp_path / "replay-store"
            ),
            restored,
        )
    finally:
        restored.close()

    assert replay.content_hash == original.content_hash


def test_foreign_key_toggle_drops_inline_keys(make_config, sqlite_connection) -> None:
    config = make_config(include_foreign_keys=False)

    content = Dumper(config, connection=sqlite_connection).run().snapshot.content

    assert "FOREIGN KEY" not in content
    assert "CREATE TABLE IF NOT EXISTS orders (" in content


def test_multi_file_dump_layout(make_config, sqlite_connection, tmp_path: Path) -> None:
    output = tmp_path / "schema"

    result = Dumper(make_config(output_path=output), connection=sqlite_connection).run()

    files = sorted(
        path.relative_to(output).as_posix() for path in output.rglob("*") if path.is_file()
    )
    assert files == [
        "04_tables/node.sql",
        "04_tables/orders.sql",
        "04_tables/users.sql",
        "05_indexes/orders.sql",
        "07_views/000001.sql",
        "09_triggers/000001.sql",
        "_header.sql",
        "_manifest.json",
    ]
    assert result.snapshot.file_count == 7
    users = (output / "04_tables" / "users.sql").read_text(encoding="utf-8")
    assert users == f"-- Tables\n\n{USERS_DDL}\n"


def test_introspect_single_kind(sqlite_connection) -> None:
    introspector = Introspector(SQLiteAdapter(sqlite_connection))

    tables = introspector.introspect_kind(ObjectKind.TABLE)

    assert [obj.qualified_name for obj in tables] == ["main.node", "main.orders", "main.users"]
    with pytest.raises(DialectUnsupported):
        introspector.introspect_kind(ObjectKind.FUNCTION)


def test_unsupported_kinds_are_skipped_in_full_run(sqlite_connection) -> None:
    introspector = Introspector(SQLiteAdapter(sqlite_connection))

    model = introspector.run()

    assert ObjectKind.FUNCTION in introspector.skipped_kinds
    assert {obj.kind for obj in model.ordered} == {
        ObjectKind.TABLE,
        ObjectKind.INDEX,
        ObjectKind.VIEW,
        ObjectKind.TRIGGER,
    }
    assert model.namespace == "main"
    assert model.deferred == ()
