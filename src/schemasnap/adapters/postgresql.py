"""
PostgreSQL catalog adapter.

Reads pg_catalog directly; every query is scoped to one namespace (schema).
"""

from schemasnap.models import ObjectKind

from .base import CatalogAdapter, Fetcher, Row, assemble_tables, parse_version

FK_ACTION_CODES = {
    "a": "NO ACTION",
    "r": "RESTRICT",
    "c": "CASCADE",
    "n": "SET NULL",
    "d": "SET DEFAULT",
}

EXTENSIONS_SQL = """
SELECT e.extname AS name, e.extversion AS version, n.nspname AS schema_name
FROM pg_extension e
JOIN pg_namespace n ON n.oid = e.extnamespace
WHERE e.extname <> 'plpgsql'
"""

ENUM_TYPES_SQL = """
SELECT t.typname AS name,
       ARRAY(SELECT e.enumlabel FROM pg_enum e
             WHERE e.enumtypid = t.oid ORDER BY e.enumsortorder) AS labels
FROM pg_type t
JOIN pg_namespace n ON n.oid = t.typnamespace
WHERE t.typtype = 'e' AND n.nspname = %s
"""

COMPOSITE_TYPES_SQL = """
SELECT t.typname AS type_name, a.attname AS attribute_name,
       format_type(a.atttypid, a.atttypmod) AS attribute_type, a.attnum AS position
FROM pg_type t
JOIN pg_namespace n ON n.oid = t.typnamespace
JOIN pg_class c ON c.oid = t.typrelid
JOIN pg_attribute a ON a.attrelid = c.oid
WHERE t.typtype = 'c' AND c.relkind = 'c' AND n.nspname = %s
  AND a.attnum > 0 AND NOT a.attisdropped
"""

DOMAIN_TYPES_SQL = """
SELECT t.typname AS name,
       format_type(t.typbasetype, t.typtypmod) AS base_type,
       t.typnotnull AS not_null,
       t.typdefault AS default_value,
       (SELECT string_agg(pg_get_constraintdef(c.oid), ' ' ORDER BY c.conname)
        FROM pg_constraint c WHERE c.contypid = t.oid) AS constraint_def
FROM pg_type t
JOIN pg_namespace n ON n.oid = t.typnamespace
WHERE t.typtype = 'd' AND n.nspname = %s
"""

SEQUENCES_SQL = """
SELECT s.sequencename AS name, s.start_value AS start, s.increment_by AS increment,
       s.min_value AS min_value, s.max_value AS max_value, s.cache_size AS cache,
       s.cycle AS cycle,
       (SELECT tbl.relname || '.' || a.attname
        FROM pg_depend d
        JOIN pg_class tbl ON tbl.oid = d.refobjid
        JOIN pg_attribute a ON a.attrelid = d.refobjid AND a.attnum = d.refobjsubid
        WHERE d.objid = seq.oid AND d.deptype = 'a'
        LIMIT 1) AS owned_by
FROM pg_sequences s
JOIN pg_namespace sn ON sn.nspname = s.schemaname
JOIN pg_class seq ON seq.relname = s.sequencename AND seq.relnamespace = sn.oid
WHERE s.schemaname = %s
  AND NOT EXISTS (
      SELECT 1 FROM pg_depend d WHERE d.objid = seq.oid AND d.deptype = 'i'
  )
"""

COLUMNS_SQL = """
SELECT cl.relname AS table_name, a.attname AS column_name,
       format_type(a.atttypid, a.atttypmod) AS data_type,
       NOT a.attnotnull AS nullable,
       pg_get_expr(d.adbin, d.adrelid) AS column_default,
       a.attnum AS position
FROM pg_class cl
JOIN pg_namespace n ON n.oid = cl.relnamespace
JOIN pg_attribute a ON a.attrelid = cl.oid AND a.attnum > 0 AND NOT a.attisdropped
LEFT JOIN pg_attrdef d ON d.adrelid = cl.oid AND d.adnum = a.attnum
WHERE n.nspname = %s AND cl.relkind IN ('r', 'p')
"""

TABLE_CONSTRAINTS_SQL = """
SELECT cl.relname AS table_name, con.conname AS name, con.contype AS constraint_type,
       pg_get_constraintdef(con.oid) AS definition,
       ARRAY(SELECT a.attname
             FROM unnest(con.conkey) WITH ORDINALITY AS k(attnum, ord)
             JOIN pg_attribute a ON a.attrelid = con.conrelid AND a.attnum = k.attnum
             ORDER BY k.ord) AS columns
FROM pg_constraint con
JOIN pg_class cl ON cl.oid = con.conrelid
JOIN pg_namespace n ON n.oid = cl.relnamespace
WHERE n.nspname = %s AND con.contype IN ('p', 'u', 'c', 'x')
"""

INDEXES_SQL = """
SELECT ic.relname AS name, tc.relname AS table_name,
       pg_get_indexdef(ix.indexrelid) AS definition,
       ix.indisunique AS is_unique,
       ARRAY(SELECT pg_get_indexdef(ix.indexrelid, k + 1, true)
             FROM generate_subscripts(ix.indkey, 1) AS k
             ORDER BY k) AS columns
FROM pg_index ix
JOIN pg_class ic ON ic.oid = ix.indexrelid
JOIN pg_class tc ON tc.oid = ix.indrelid
JOIN pg_namespace n ON n.oid = ic.relnamespace
WHERE n.nspname = %s
  AND tc.relkind IN ('r', 'p')
  AND NOT EXISTS (
      SELECT 1 FROM pg_constraint c
      WHERE c.conindid = ix.indexrelid AND c.contype IN ('p', 'u', 'x')
  )
"""

FOREIGN_KEYS_SQL = """
SELECT con.conname AS name, cl.relname AS table_name,
       fcl.relname AS referenced_table, fn.nspname AS referenced_namespace,
       ARRAY(SELECT a.attname
             FROM unnest(con.conkey) WITH ORDINALITY AS k(attnum, ord)
             JOIN pg_attribute a ON a.attrelid = con.conrelid AND a.attnum = k.attnum
             ORDER BY k.ord) AS columns,
       ARRAY(SELECT a.attname
             FROM unnest(con.confkey) WITH ORDINALITY AS k(attnum, ord)
             JOIN pg_attribute a ON a.attrelid = con.confrelid AND a.attnum = k.attnum
             ORDER BY k.ord) AS referenced_columns,
       con.confupdtype AS on_update, con.confdeltype AS on_delete
FROM pg_constraint con
JOIN pg_class cl ON cl.oid = con.conrelid
JOIN pg_namespace n ON n.oid = cl.relnamespace
JOIN pg_class fcl ON fcl.oid = con.confrelid
JOIN pg_namespace fn ON fn.oid = fcl.relnamespace
WHERE con.contype = 'f' AND n.nspname = %s
"""

VIEWS_SQL = """
SELECT viewname AS name, definition AS body, false AS materialized
FROM pg_views WHERE schemaname = %s
UNION ALL
SELECT matviewname AS name, definition AS body, true AS materialized
FROM pg_matviews WHERE schemaname = %s
"""

MATVIEW_INDEXES_SQL = """
SELECT tc.relname AS view_name, ic.relname AS name,
       pg_get_indexdef(ix.indexrelid) AS definition
FROM pg_index ix
JOIN pg_class ic ON ic.oid = ix.indexrelid
JOIN pg_class tc ON tc.oid = ix.indrelid
JOIN pg_namespace n ON n.oid = ic.relnamespace
WHERE n.nspname = %s AND tc.relkind = 'm'
"""

FUNCTIONS_SQL = """
SELECT p.proname AS name,
       pg_get_function_identity_arguments(p.oid) AS arguments,
       pg_get_functiondef(p.oid) AS definition,
       l.lanname AS language, p.prokind = 'p' AS procedure
FROM pg_proc p
JOIN pg_namespace n ON n.oid = p.pronamespace
JOIN pg_language l ON l.oid = p.prolang
WHERE n.nspname = %s AND p.prokind IN ('f', 'p')
  AND NOT EXISTS (
      SELECT 1 FROM pg_depend d WHERE d.objid = p.oid AND d.deptype = 'e'
  )
"""

TRIGGERS_SQL = """
SELECT t.tgname AS name, c.relname AS table_name, p.proname AS function_name,
       pg_get_triggerdef(t.oid, true) AS definition
FROM pg_trigger t
JOIN pg_class c ON c.oid = t.tgrelid
JOIN pg_namespace n ON n.oid = c.relnamespace
JOIN pg_proc p ON p.oid = t.tgfoid
WHERE n.nspname = %s AND NOT t.tgisinternal
"""


class PostgreSQLAdapter(CatalogAdapter):
    """Catalog adapter for PostgreSQL 10+ (pg_sequences is required)."""

    dialect = "postgresql"
    sqlglot_dialect = "postgres"
    driver_modules = ("psycopg", "psycopg2", "pg8000")

    def default_namespace(self) -> str:
        return "public"

    def _fetchers(self) -> dict[ObjectKind, Fetcher]:
        return {
            ObjectKind.EXTENSION: self._extensions,
            ObjectKind.TYPE: self._types,
            ObjectKind.SEQUENCE: self._sequences,
            ObjectKind.TABLE: self._tables,
            ObjectKind.INDEX: self._indexes,
            ObjectKind.FOREIGN_KEY: self._foreign_keys,
            ObjectKind.VIEW: self._views,
            ObjectKind.FUNCTION: self._functions,
            ObjectKind.TRIGGER: self._triggers,
        }

    def database_version(self) -> str:
        return parse_version(self._scalar("SELECT version()"), r"PostgreSQL (\d+(?:\.\d+)?)")

    def header_statements(self) -> list[str]:
        return [
            "SET client_encoding = 'UTF8';",
            "SET standard_conforming_strings = on;",
            f"SET search_path TO {self.namespace};",
        ]

    def _extensions(self) -> list[Row]:
        return self._query(EXTENSIONS_SQL)

    def _types(self) -> list[Row]:
        ns = (self.namespace,)
        rows: list[Row] = [
            {"name": row["name"], "category": "enum", "values": list(row["labels"] or [])}
            for row in self._query(ENUM_TYPES_SQL, ns)
        ]

        composites: dict[str, list[Row]] = {}
        for row in self._query(COMPOSITE_TYPES_SQL, ns):
            composites.setdefault(row["type_name"], []).append(row)
        for type_name, attributes in composites.items():
            attributes.sort(key=lambda r: r["position"])
            rows.append(
                {
                    "name": type_name,
                    "category": "composite",
                    "attributes": [
                        {"name": a["attribute_name"], "data_type": a["attribute_type"]}
                        for a in attributes
                    ],
                }
            )

        for row in self._query(DOMAIN_TYPES_SQL, ns):
            rows.append(
                {
                    "name": row["name"],
                    "category": "domain",
                    "base_type": row["base_type"],
                    "not_null": row["not_null"],
                    "default": row["default_value"],
                    "constraint": row["constraint_def"],
                }
            )
        return rows

    def _sequences(self) -> list[Row]:
        return self._query(SEQUENCES_SQL, (self.namespace,))

    def _tables(self) -> list[Row]:
        ns = (self.namespace,)
        primary_keys: list[Row] = []
        constraints: list[Row] = []
        for row in self._query(TABLE_CONSTRAINTS_SQL, ns):
            if row["constraint_type"] == "p":
                primary_keys.extend(
                    {"table_name": row["table_name"], "column_name": column, "position": position}
                    for position, column in enumerate(row["columns"] or [])
                )
            else:
                constraints.append(row)
        return assemble_tables(self._query(COLUMNS_SQL, ns), constraints, primary_keys)

    def _indexes(self) -> list[Row]:
        return [
            {
                "name": row["name"],
                "table": row["table_name"],
                "columns": list(row["columns"] or []),
                "unique": row["is_unique"],
                "definition": row["definition"],
            }
            for row in self._query(INDEXES_SQL, (self.namespace,))
        ]

    def _foreign_keys(self) -> list[Row]:
        return [
            {
                "name": row["name"],
                "table": row["table_name"],
                "columns": list(row["columns"] or []),
                "referenced_table": row["referenced_table"],
                "referenced_namespace": row["referenced_namespace"],
                "referenced_columns": list(row["referenced_columns"] or []),
                "on_update": FK_ACTION_CODES.get(row["on_update"], row["on_update"]),
                "on_delete": FK_ACTION_CODES.get(row["on_delete"], row["on_delete"]),
            }
            for row in self._query(FOREIGN_KEYS_SQL, (self.namespace,))
        ]

    def _views(self) -> list[Row]:
        rows = self._query(VIEWS_SQL, (self.namespace, self.namespace))
        if not any(row["materialized"] for row in rows):
            return rows

        # Materialized view indexes are emitted with their view, not under the index kind
        indexes: dict[str, list[Row]] = {}
        for row in self._query(MATVIEW_INDEXES_SQL, (self.namespace,)):
            indexes.setdefault(row["view_name"], []).append(row)
        return [
            {
                **row,
                "indexes": [
                    index["definition"]
                    for index in sorted(indexes.get(row["name"], []), key=lambda r: r["name"])
                ],
            }
            if row["materialized"]
            else row
            for row in rows
        ]

    def _functions(self) -> list[Row]:
        return self._query(FUNCTIONS_SQL, (self.namespace,))

    def _triggers(self) -> list[Row]:
        return [
            {
                "name": row["name"],
                "table": row["table_name"],
                "function": row["function_name"],
                "definition": row["definition"],
            }
            for row in self._query(TRIGGERS_SQL, (self.namespace,))
        ]
