"""
SQLite catalog adapter.

SQLite has no extensions, custom types, sequences or stored functions, and
cannot add a foreign key to an existing table, so foreign keys are attached to
their table rows and rendered inline.
"""

import re

from schemasnap.domain.errors import IntrospectionError
from schemasnap.generators.base import quote_identifier
from schemasnap.models import ObjectKind

from .base import CatalogAdapter, Fetcher, Row, assemble_tables, parse_version

_VIEW_BODY = re.compile(
    r"^\s*CREATE\s+(?:TEMP(?:ORARY)?\s+)?VIEW\s+(?:IF\s+NOT\s+EXISTS\s+)?"
    r"(?:\"(?:[^\"]|\"\")+\"|`[^`]+`|\[[^\]]+\]|[^\s(]+)"
    r"(?:\s*\([^)]*\))?\s+AS\s+(.*)$",
    re.IGNORECASE | re.DOTALL,
)


class SQLiteAdapter(CatalogAdapter):
    """Catalog adapter for SQLite 3.16+ (table-valued pragma functions)."""

    dialect = "sqlite"
    sqlglot_dialect = "sqlite"
    driver_modules = ("sqlite3", "pysqlite2")
    inline_foreign_keys = True
    placeholder = "?"

    def default_namespace(self) -> str:
        return "main"

    def _fetchers(self) -> dict[ObjectKind, Fetcher]:
        return {
            ObjectKind.TABLE: self._tables,
            ObjectKind.INDEX: self._indexes,
            ObjectKind.VIEW: self._views,
            ObjectKind.TRIGGER: self._triggers,
        }

    def database_version(self) -> str:
        return parse_version(self._scalar("SELECT sqlite_version()"), r"(\d+\.\d+\.\d+)")

    def header_statements(self) -> list[str]:
        return ["PRAGMA foreign_keys = ON;", "PRAGMA defer_foreign_keys = ON;"]

    @property
    def _master(self) -> str:
        quoted = '"' + self.namespace.replace('"', '""') + '"'
        return f"{quoted}.sqlite_master"

    def _schema_rows(self, object_type: str) -> list[Row]:
        return self._query(
            f"SELECT name, tbl_name, sql FROM {self._master} "
            "WHERE type = %s AND name NOT LIKE 'sqlite!_%' ESCAPE '!'",
            (object_type,),
        )

    def _tables(self) -> list[Row]:
        columns: list[Row] = []
        primary_keys: list[Row] = []
        constraints: list[Row] = []
        foreign_keys: dict[str, list[Row]] = {}
        for table in self._schema_rows("table"):
            name = table["name"]
            for column in self._query(
                "SELECT cid, name, type, \"notnull\", dflt_value, pk "
                "FROM pragma_table_info(%s, %s)",
                (name, self.namespace),
            ):
                columns.append(
                    {
                        "table_name": name,
                        "column_name": column["name"],
                        # Untyped columns are legal in SQLite
                        "data_type": column["type"] or "BLOB",
                        "nullable": not column["notnull"],
                        "column_default": column["dflt_value"],
                        "position": column["cid"],
                    }
                )
                if column["pk"]:
                    primary_keys.append(
                        {
                            "table_name": name,
                            "column_name": column["name"],
                            "position": column["pk"],
                        }
                    )
            foreign_keys[name] = self._table_foreign_keys(name)
            constraints += self._unique_constraints(name)

        tables = assemble_tables(columns, constraints, primary_keys)
        for table in tables:
            table["foreign_keys"] = foreign_keys.get(table["name"], [])
        return tables

    def _table_foreign_keys(self, table: str) -> list[Row]:
        grouped: dict[int, Row] = {}
        rows = self._query(
            "SELECT id, seq, \"table\", \"from\", \"to\", on_update, on_delete "
            "FROM pragma_foreign_key_list(%s, %s)",
            (table, self.namespace),
        )
        for row in sorted(rows, key=lambda r: (r["id"], r["seq"])):
            key = grouped.setdefault(
                row["id"],
                {
                    "table": table,
                    "columns": [],
                    "referenced_table": row["table"],
                    "referenced_columns": [],
                    "on_update": row["on_update"],
                    "on_delete": row["on_delete"],
                },
            )
            key["columns"].append(row["from"])
            # "to" is NULL when the reference targets the parent's primary key
            if row["to"] is not None:
                key["referenced_columns"].append(row["to"])

        keys = []
        for key in grouped.values():
            if not key["referenced_columns"]:
                key["referenced_columns"] = self._primary_key_columns(key["referenced_table"])
            key["name"] = f"fk_{table}_{'_'.join(key['columns'])}"
            keys.append(key)
        return keys

    def _unique_constraints(self, table: str) -> list[Row]:
        """UNIQUE table constraints, recovered from their automatic indexes."""
        constraints = []
        for index in self._query(
            "SELECT name, origin FROM pragma_index_list(%s, %s)", (table, self.namespace)
        ):
            if index["origin"] != "u":
                continue
            info = self._query(
                "SELECT seqno, name FROM pragma_index_info(%s, %s)",
                (index["name"], self.namespace),
            )
            columns = ", ".join(
                quote_identifier(row["name"], self.dialect)
                for row in sorted(info, key=lambda r: r["seqno"])
            )
            constraints.append(
                {"table_name": table, "name": None, "definition": f"UNIQUE ({columns})"}
            )
        return constraints

    def _primary_key_columns(self, table: str) -> list[str]:
        rows = self._query(
            "SELECT name, pk FROM pragma_table_info(%s, %s) WHERE pk > 0",
            (table, self.namespace),
        )
        return [row["name"] for row in sorted(rows, key=lambda r: r["pk"])]

    def _indexes(self) -> list[Row]:
        definitions = {row["name"]: row["sql"] for row in self._schema_rows("index")}
        indexes = []
        for table in self._schema_rows("table"):
            for index in self._query(
                "SELECT name, \"unique\", origin FROM pragma_index_list(%s, %s)",
                (table["name"], self.namespace),
            ):
                # Indexes created implicitly by PRIMARY KEY / UNIQUE constraints
                if index["origin"] in ("pk", "u"):
                    continue
                info = self._query(
                    "SELECT seqno, name FROM pragma_index_info(%s, %s)",
                    (index["name"], self.namespace),
                )
                indexes.append(
                    {
                        "name": index["name"],
                        "table": table["name"],
                        "columns": [
                            row["name"] for row in sorted(info, key=lambda r: r["seqno"])
                            if row["name"] is not None
                        ],
                        "unique": bool(index["unique"]),
                        "definition": definitions.get(index["name"]),
                    }
                )
        return indexes

    def _views(self) -> list[Row]:
        views = []
        for row in self._schema_rows("view"):
            match = _VIEW_BODY.match(row["sql"] or "")
            if match is None:
                raise IntrospectionError(
                    message=f"Cannot parse definition of view '{row['name']}'",
                    code="malformed_catalog_row",
                )
            views.append({"name": row["name"], "body": match.group(1).strip().rstrip(";")})
        return views

    def _triggers(self) -> list[Row]:
        return [
            {"name": row["name"], "table": row["tbl_name"], "definition": row["sql"]}
            for row in self._schema_rows("trigger")
        ]
