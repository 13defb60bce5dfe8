"""
Catalog builders for tests

Row builders produce the dialect-neutral rows adapters hand to the
introspector. StaticCatalogAdapter serves them without a database; with a
seed it shuffles every listing to imitate catalogs that enumerate in
arbitrary order.
"""

import random
from collections.abc import Iterable, Mapping
from typing import Any

from schemasnap.adapters.base import CatalogAdapter, Fetcher, Row
from schemasnap.models import ObjectKind

TOUCH_FUNCTION = """CREATE OR REPLACE FUNCTION public.touch_updated_at()
 RETURNS trigger
 LANGUAGE plpgsql
AS $function$
BEGIN
  RETURN NEW;
END;
$function$
"""


def column(
    name: str, data_type: str = "integer", nullable: bool = True, default: str | None = None
) -> Row:
    return {"name": name, "data_type": data_type, "nullable": nullable, "default": default}


def table_row(
    name: str,
    *columns: Row,
    primary_key: Iterable[str] = (),
    constraints: Iterable[Row] = (),
    foreign_keys: Iterable[Row] = (),
) -> Row:
    return {
        "name": name,
        "columns": list(columns),
        "primary_key": list(primary_key),
        "constraints": list(constraints),
        "foreign_keys": list(foreign_keys),
    }


def index_row(
    name: str, table: str, *columns: str, unique: bool = False, definition: str | None = None
) -> Row:
    return {
        "name": name,
        "table": table,
        "columns": list(columns),
        "unique": unique,
        "definition": definition,
    }


def fk_row(
    name: str,
    table: str,
    columns: list[str],
    referenced_table: str,
    referenced_columns: list[str],
    on_delete: str | None = None,
    on_update: str | None = None,
    referenced_namespace: str | None = None,
) -> Row:
    return {
        "name": name,
        "table": table,
        "columns": columns,
        "referenced_table": referenced_table,
        "referenced_columns": referenced_columns,
        "referenced_namespace": referenced_namespace,
        "on_delete": on_delete,
        "on_update": on_update,
    }


def view_row(name: str, body: str, materialized: bool = False) -> Row:
    return {"name": name, "body": body, "materialized": materialized}


def function_row(name: str, definition: str, arguments: str = "") -> Row:
    return {"name": name, "definition": definition, "arguments": arguments, "language": "plpgsql"}


def trigger_row(name: str, table: str, **fields: Any) -> Row:
    return {"name": name, "table": table, **fields}


def shop_catalog() -> dict[ObjectKind, list[Row]]:
    """A small PostgreSQL schema touching every object kind.

    ``node`` references itself, which makes its foreign key circular.
    """
    return {
        ObjectKind.EXTENSION: [{"name": "pgcrypto", "version": "1.3", "schema_name": "public"}],
        ObjectKind.TYPE: [{"name": "mood", "category": "enum", "values": ["happy", "sad"]}],
        ObjectKind.SEQUENCE: [{"name": "order_seq", "start": 1, "increment": 1}],
        ObjectKind.TABLE: [
            table_row(
                "users",
                column("id", nullable=False),
                column("email", "text", nullable=False),
                column("mood", "mood"),
                primary_key=["id"],
            ),
            table_row(
                "orders",
                column("id", "bigint", nullable=False, default="nextval('order_seq'::regclass)"),
                column("user_id"),
                column("total", "numeric(10,2)"),
                primary_key=["id"],
            ),
            table_row(
                "node",
                column("id", nullable=False),
                column("parent_id"),
                primary_key=["id"],
            ),
        ],
        ObjectKind.INDEX: [
            index_row("users_email_idx", "users", "email", unique=True),
            index_row("orders_user_id_idx", "orders", "user_id"),
        ],
        ObjectKind.FOREIGN_KEY: [
            fk_row(
                "orders_user_id_fkey", "orders", ["user_id"], "users", ["id"], on_delete="CASCADE"
            ),
            fk_row("node_parent_id_fkey", "node", ["parent_id"], "node", ["id"]),
        ],
        ObjectKind.VIEW: [
            view_row(
                "order_totals", "SELECT user_id, sum(total) AS total FROM orders GROUP BY user_id"
            ),
            view_row("active_users", "SELECT id, email FROM users WHERE mood = 'happy'"),
        ],
        ObjectKind.FUNCTION: [function_row("touch_updated_at", TOUCH_FUNCTION)],
        ObjectKind.TRIGGER: [
            trigger_row(
                "users_touch",
                "users",
                function="touch_updated_at",
                definition=(
                    "CREATE TRIGGER users_touch BEFORE UPDATE ON users "
                    "FOR EACH ROW EXECUTE FUNCTION touch_updated_at()"
                ),
            )
        ],
    }


class StaticCatalogAdapter(CatalogAdapter):
    """PostgreSQL-flavoured adapter serving canned rows."""

    dialect = "postgresql"
    sqlglot_dialect = "postgres"

    def __init__(
        self,
        rows: Mapping[ObjectKind, list[Row]],
        *,
        namespace: str = "public",
        kinds: Iterable[ObjectKind] | None = None,
        version: str = "16.2",
        header: Iterable[str] = (),
        seed: int | None = None,
        errors: Mapping[ObjectKind, Exception] | None = None,
    ) -> None:
        super().__init__(connection=None, namespace=namespace)
        self.rows = {kind: list(kind_rows) for kind, kind_rows in rows.items()}
        self.kinds = frozenset(ObjectKind if kinds is None else kinds)
        self.version = version
        self.header = list(header)
        self.errors = dict(errors or {})
        self.calls: list[ObjectKind] = []
        self._random = random.Random(seed) if seed is not None else None

    def default_namespace(self) -> str:
        return "public"

    def _fetchers(self) -> dict[ObjectKind, Fetcher]:
        return {kind: self._fetcher(kind) for kind in self.kinds}

    def _fetcher(self, kind: ObjectKind) -> Fetcher:
        def fetch() -> list[Row]:
            self.calls.append(kind)
            if kind in self.errors:
                raise self.errors[kind]
            rows = [dict(row) for row in self.rows.get(kind, [])]
            if self._random is not None:
                self._random.shuffle(rows)
            return rows

        return fetch

    def database_version(self) -> str:
        return self.version

    def header_statements(self) -> list[str]:
        return list(self.header)
