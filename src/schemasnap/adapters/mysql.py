"""
MySQL catalog adapter.

The namespace is a database (schema); information_schema is the source for
everything except routine bodies, which come from SHOW CREATE.
"""

import re

from schemasnap.models import ObjectKind

from .base import CatalogAdapter, Fetcher, Row, assemble_tables, parse_version

COLUMNS_SQL = """
SELECT c.TABLE_NAME AS table_name, c.COLUMN_NAME AS column_name,
       c.COLUMN_TYPE AS data_type, c.IS_NULLABLE AS is_nullable,
       c.COLUMN_DEFAULT AS column_default, c.EXTRA AS extra,
       c.ORDINAL_POSITION AS position
FROM information_schema.COLUMNS c
JOIN information_schema.TABLES t
  ON t.TABLE_SCHEMA = c.TABLE_SCHEMA AND t.TABLE_NAME = c.TABLE_NAME
WHERE c.TABLE_SCHEMA = %s AND t.TABLE_TYPE = 'BASE TABLE'
"""

PRIMARY_KEYS_SQL = """
SELECT TABLE_NAME AS table_name, COLUMN_NAME AS column_name,
       ORDINAL_POSITION AS position
FROM information_schema.KEY_COLUMN_USAGE
WHERE TABLE_SCHEMA = %s AND CONSTRAINT_NAME = 'PRIMARY'
"""

INDEXES_SQL = """
SELECT INDEX_NAME AS name, TABLE_NAME AS table_name, COLUMN_NAME AS column_name,
       SEQ_IN_INDEX AS position, NON_UNIQUE AS non_unique
FROM information_schema.STATISTICS
WHERE TABLE_SCHEMA = %s AND INDEX_NAME <> 'PRIMARY'
"""

FOREIGN_KEYS_SQL = """
SELECT k.CONSTRAINT_NAME AS name, k.TABLE_NAME AS table_name,
       k.COLUMN_NAME AS column_name, k.ORDINAL_POSITION AS position,
       k.REFERENCED_TABLE_SCHEMA AS referenced_namespace,
       k.REFERENCED_TABLE_NAME AS referenced_table,
       k.REFERENCED_COLUMN_NAME AS referenced_column,
       r.UPDATE_RULE AS on_update, r.DELETE_RULE AS on_delete
FROM information_schema.KEY_COLUMN_USAGE k
JOIN information_schema.REFERENTIAL_CONSTRAINTS r
  ON r.CONSTRAINT_SCHEMA = k.CONSTRAINT_SCHEMA AND r.CONSTRAINT_NAME = k.CONSTRAINT_NAME
 AND r.TABLE_NAME = k.TABLE_NAME
WHERE k.TABLE_SCHEMA = %s AND k.REFERENCED_TABLE_NAME IS NOT NULL
"""

VIEWS_SQL = """
SELECT TABLE_NAME AS name, VIEW_DEFINITION AS body
FROM information_schema.VIEWS
WHERE TABLE_SCHEMA = %s
"""

ROUTINES_SQL = """
SELECT ROUTINE_NAME AS name, ROUTINE_TYPE AS routine_type
FROM information_schema.ROUTINES
WHERE ROUTINE_SCHEMA = %s
"""

TRIGGERS_SQL = """
SELECT TRIGGER_NAME AS name, EVENT_OBJECT_TABLE AS table_name,
       ACTION_TIMING AS timing, EVENT_MANIPULATION AS event,
       ACTION_STATEMENT AS statement
FROM information_schema.TRIGGERS
WHERE TRIGGER_SCHEMA = %s
"""

_NUMERIC_DEFAULT = re.compile(r"^-?\d+(\.\d+)?$")
_EXPRESSION_DEFAULT = re.compile(r"^(NULL|CURRENT_TIMESTAMP(\(\d*\))?|\(.*\))$", re.IGNORECASE)


def _quote(identifier: str) -> str:
    return "`" + identifier.replace("`", "``") + "`"


def _quote_default(value: str | None) -> str | None:
    """COLUMN_DEFAULT is the bare value; literals need quoting to be valid DDL."""
    if value is None:
        return None
    if _NUMERIC_DEFAULT.match(value) or _EXPRESSION_DEFAULT.match(value):
        return value
    return "'" + value.replace("'", "''") + "'"


class MySQLAdapter(CatalogAdapter):
    """Catalog adapter for MySQL 5.7+ / 8.x."""

    dialect = "mysql"
    sqlglot_dialect = "mysql"
    driver_modules = ("pymysql", "MySQLdb", "mysql.connector")

    def default_namespace(self) -> str:
        database = self._scalar("SELECT DATABASE()")
        if not database:
            return "mysql"
        return str(database)

    def _fetchers(self) -> dict[ObjectKind, Fetcher]:
        return {
            ObjectKind.TABLE: self._tables,
            ObjectKind.INDEX: self._indexes,
            ObjectKind.FOREIGN_KEY: self._foreign_keys,
            ObjectKind.VIEW: self._views,
            ObjectKind.FUNCTION: self._functions,
            ObjectKind.TRIGGER: self._triggers,
        }

    def database_version(self) -> str:
        return parse_version(self._scalar("SELECT VERSION()"), r"(\d+\.\d+(?:\.\d+)?)")

    def _tables(self) -> list[Row]:
        ns = (self.namespace,)
        columns = []
        for row in self._query(COLUMNS_SQL, ns):
            data_type = row["data_type"]
            if "auto_increment" in (row["extra"] or "").lower():
                data_type = f"{data_type} AUTO_INCREMENT"
            columns.append(
                {
                    **row,
                    "data_type": data_type,
                    "nullable": row["is_nullable"] == "YES",
                    "column_default": _quote_default(row["column_default"]),
                }
            )
        return assemble_tables(columns, primary_key_rows=self._query(PRIMARY_KEYS_SQL, ns))

    def _indexes(self) -> list[Row]:
        indexes: dict[tuple[str, str], Row] = {}
        rows = sorted(
            self._query(INDEXES_SQL, (self.namespace,)),
            key=lambda r: (r["table_name"], r["name"], r["position"]),
        )
        for row in rows:
            index = indexes.setdefault(
                (row["table_name"], row["name"]),
                {
                    "name": row["name"],
                    "table": row["table_name"],
                    "columns": [],
                    "unique": not int(row["non_unique"]),
                },
            )
            # Functional key parts have no column name
            if row["column_name"] is not None:
                index["columns"].append(row["column_name"])
        return list(indexes.values())

    def _foreign_keys(self) -> list[Row]:
        keys: dict[tuple[str, str], Row] = {}
        rows = sorted(
            self._query(FOREIGN_KEYS_SQL, (self.namespace,)),
            key=lambda r: (r["table_name"], r["name"], r["position"]),
        )
        for row in rows:
            key = keys.setdefault(
                (row["table_name"], row["name"]),
                {
                    "name": row["name"],
                    "table": row["table_name"],
                    "columns": [],
                    "referenced_table": row["referenced_table"],
                    "referenced_namespace": row["referenced_namespace"],
                    "referenced_columns": [],
                    "on_update": row["on_update"],
                    "on_delete": row["on_delete"],
                },
            )
            key["columns"].append(row["column_name"])
            key["referenced_columns"].append(row["referenced_column"])
        return list(keys.values())

    def _views(self) -> list[Row]:
        return self._query(VIEWS_SQL, (self.namespace,))

    def _functions(self) -> list[Row]:
        functions = []
        for routine in self._query(ROUTINES_SQL, (self.namespace,)):
            routine_type = str(routine["routine_type"]).upper()
            label = "Procedure" if routine_type == "PROCEDURE" else "Function"
            qualified = f"{_quote(self.namespace)}.{_quote(routine['name'])}"
            rows = self._query(f"SHOW CREATE {routine_type} {qualified}")
            definition = rows[0].get(f"Create {label}") if rows else None
            functions.append(
                {
                    "name": routine["name"],
                    "definition": definition,
                    "language": "SQL",
                    "procedure": routine_type == "PROCEDURE",
                }
            )
        return functions

    def _triggers(self) -> list[Row]:
        return [
            {
                "name": row["name"],
                "table": row["table_name"],
                "timing": row["timing"],
                "event": row["event"],
                "statement": row["statement"],
            }
            for row in self._query(TRIGGERS_SQL, (self.namespace,))
        ]
