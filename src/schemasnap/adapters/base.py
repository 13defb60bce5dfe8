"""
Base Catalog Adapter

Defines the contract every dialect adapter implements: translate "list objects
of kind K" into native catalog queries and return rows in the dialect-neutral
shape the introspector validates (see ``schemasnap.catalog``).
"""

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any, ClassVar

from schemasnap.domain.errors import DialectUnsupported, IntrospectionError, SchemaSnapError
from schemasnap.models import ObjectKind

logger = logging.getLogger(__name__)

Row = dict[str, Any]
Fetcher = Callable[[], list[Row]]


class CatalogAdapter(ABC):
    """Per-dialect catalog reader bound to a caller-owned DB-API connection."""

    dialect: ClassVar[str]
    sqlglot_dialect: ClassVar[str]
    # Driver module prefixes used to auto-detect the dialect from a connection
    driver_modules: ClassVar[tuple[str, ...]] = ()
    # Foreign keys are attached to table rows instead of being listed separately
    inline_foreign_keys: ClassVar[bool] = False
    placeholder: ClassVar[str] = "%s"

    def __init__(self, connection: Any, namespace: str | None = None) -> None:
        self._connection = connection
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        """Search namespace, falling back to the dialect default."""
        if self._namespace is None:
            self._namespace = self.default_namespace()
        return self._namespace

    @abstractmethod
    def default_namespace(self) -> str:
        """Namespace used when the run configuration names none."""

    @abstractmethod
    def _fetchers(self) -> dict[ObjectKind, Fetcher]:
        """Map each supported kind to the method that lists it."""

    @abstractmethod
    def database_version(self) -> str:
        """Source-engine version tag recorded on every snapshot."""

    def header_statements(self) -> list[str]:
        """Session preamble emitted ahead of every dump."""
        return []

    def capabilities(self) -> frozenset[ObjectKind]:
        return frozenset(self._fetchers())

    def supports(self, kind: ObjectKind) -> bool:
        return kind in self.capabilities()

    def list_objects(self, kind: ObjectKind) -> list[Row]:
        """Return raw rows for one kind.

        Raises:
            DialectUnsupported: If the kind is outside this adapter's capabilities
            IntrospectionError: If the catalog query fails
        """
        fetcher = self._fetchers().get(kind)
        if fetcher is None:
            raise DialectUnsupported(
                message=f"{self.dialect} does not support {kind.value} objects",
                code="dialect_unsupported",
                dialect=self.dialect,
                kind=kind.value,
            )
        logger.debug("Listing %s objects in %s.%s", kind.value, self.dialect, self.namespace)
        try:
            return fetcher()
        except SchemaSnapError:
            raise
        except Exception as err:
            raise IntrospectionError(
                message=f"Failed to list {kind.value} objects from {self.dialect}: {err}",
                code="catalog_query_failed",
            ) from err

    def _query(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        """Run a catalog query and return rows keyed by column label.

        Queries are written with ``%s`` markers and rewritten to the driver's
        paramstyle.
        """
        if self.placeholder != "%s":
            sql = sql.replace("%s", self.placeholder)
        cursor = self._connection.cursor()
        try:
            cursor.execute(sql, tuple(params))
            columns = [description[0] for description in cursor.description or ()]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        finally:
            cursor.close()

    def _scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        rows = self._query(sql, params)
        if not rows:
            return None
        return next(iter(rows[0].values()))


def parse_version(raw: str | None, pattern: str) -> str:
    """Extract the version number from an engine banner, or return it unchanged."""
    if not raw:
        return "unknown"
    match = re.search(pattern, raw)
    return match.group(1) if match else raw.strip()


def assemble_tables(
    column_rows: list[Row],
    constraint_rows: list[Row] | None = None,
    primary_key_rows: list[Row] | None = None,
) -> list[Row]:
    """Group per-column catalog rows into one row per table.

    ``column_rows`` carry ``table_name``, ``column_name``, ``data_type``,
    ``nullable``, ``column_default`` and ``position``. Primary key rows carry
    ``table_name``, ``column_name`` and ``position``; constraint rows carry
    ``table_name``, ``name`` and ``definition``.
    """
    tables: dict[str, Row] = {}
    for row in sorted(column_rows, key=lambda r: (r["table_name"], r["position"])):
        table = tables.setdefault(
            row["table_name"],
            {
                "name": row["table_name"],
                "columns": [],
                "primary_key": [],
                "constraints": [],
                "foreign_keys": [],
            },
        )
        table["columns"].append(
            {
                "name": row["column_name"],
                "data_type": row["data_type"],
                "nullable": bool(row["nullable"]),
                "default": row.get("column_default"),
            }
        )

    for row in sorted(primary_key_rows or [], key=lambda r: (r["table_name"], r["position"])):
        if row["table_name"] in tables:
            tables[row["table_name"]]["primary_key"].append(row["column_name"])

    for row in sorted(
        constraint_rows or [], key=lambda r: (r["table_name"], r["name"] or "", r["definition"])
    ):
        if row["table_name"] in tables:
            tables[row["table_name"]]["constraints"].append(
                {"name": row["name"], "definition": row["definition"]}
            )

    return list(tables.values())
