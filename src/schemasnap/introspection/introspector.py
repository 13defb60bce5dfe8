"""
Introspector

Drives a catalog adapter over every enabled kind, validates the raw rows into
catalog objects, resolves their dependencies and returns them in emission
order. Circular foreign keys are split off into a trailing deferred group.
"""

import logging
import re
from collections.abc import Iterable
from typing import Any, cast

import networkx as nx
from pydantic import ValidationError

from schemasnap.adapters.base import CatalogAdapter, Row
from schemasnap.catalog import (
    DEFINITION_TYPES,
    CatalogModel,
    CatalogObject,
    ForeignKeyDefinition,
    IndexDefinition,
    TableDefinition,
    TriggerDefinition,
    ViewDefinition,
)
from schemasnap.domain.errors import IntrospectionError
from schemasnap.models import ObjectKind, ObjectRef

from .dependency_graph import DependencyGraph, DependencyType
from .references import extract_table_references

logger = logging.getLogger(__name__)

_NEXTVAL = re.compile(r"nextval\('(?:\"?[\w$]+\"?\.)?\"?([\w$]+)\"?'(?:::regclass)?\)", re.I)
_TYPE_MODIFIERS = re.compile(r"\(.*\)|\[\]")


def _base_type_name(data_type: str) -> str:
    """``public."mood"[]`` -> ``mood``; ``character varying(20)`` -> ``character varying``."""
    name = _TYPE_MODIFIERS.sub("", data_type).strip()
    return name.rsplit(".", 1)[-1].strip('"')


class Introspector:
    """Builds an ordered catalog model from one adapter."""

    def __init__(
        self, adapter: CatalogAdapter, enabled_kinds: Iterable[ObjectKind] | None = None
    ) -> None:
        self.adapter = adapter
        requested = frozenset(ObjectKind if enabled_kinds is None else enabled_kinds)
        capabilities = adapter.capabilities()
        self.enabled_kinds = requested & capabilities
        self.skipped_kinds = requested - capabilities

    def run(self) -> CatalogModel:
        """
        Introspect every enabled kind.

        Raises:
            IntrospectionError: If an adapter query fails or returns malformed rows
            CircularDependencyError: If non-foreign-key objects form a cycle
        """
        namespace = self.adapter.namespace
        for kind in sorted(self.skipped_kinds, key=lambda k: k.precedence):
            logger.debug("Skipping %s: not supported by %s", kind.value, self.adapter.dialect)

        objects: list[CatalogObject] = []
        for kind in sorted(self.enabled_kinds, key=lambda k: k.precedence):
            rows = self.adapter.list_objects(kind)
            logger.debug("Found %d %s object(s)", len(rows), kind.value)
            objects.extend(self._normalize(kind, row, namespace) for row in rows)

        self._check_unique(objects)
        deferred_names = self._circular_foreign_keys(objects)
        graph = DependencyGraph()
        deferred: list[CatalogObject] = []
        for obj in self._with_dependencies(objects, namespace):
            if obj.kind == ObjectKind.FOREIGN_KEY and obj.qualified_name in deferred_names:
                deferred.append(obj)
            else:
                graph.add_object(obj)

        for obj in (node.obj for node in list(graph.nodes.values())):
            for dependency in obj.depends_on:
                if dependency in graph:
                    graph.add_edge(str(dependency), str(obj.ref), _edge_type(obj, dependency))

        ordered = graph.topological_sort()
        deferred.sort(key=lambda o: o.qualified_name)
        if deferred:
            logger.info("Deferred %d circular foreign key(s)", len(deferred))

        return CatalogModel(
            namespace=namespace,
            dialect=self.adapter.dialect,
            engine_version=self.adapter.database_version(),
            objects=tuple(ordered),
            deferred=tuple(deferred),
            header=tuple(self.adapter.header_statements()),
        )

    def introspect_kind(self, kind: ObjectKind) -> list[CatalogObject]:
        """
        Introspect a single kind, ordered by qualified name.

        Unlike ``run``, asking for a kind the adapter cannot list is an error.

        Raises:
            DialectUnsupported: If the adapter does not support ``kind``
        """
        namespace = self.adapter.namespace
        objects = [self._normalize(kind, row, namespace) for row in self.adapter.list_objects(kind)]
        return sorted(objects, key=lambda o: o.qualified_name)

    def _normalize(self, kind: ObjectKind, row: Row, namespace: str) -> CatalogObject:
        try:
            definition = DEFINITION_TYPES[kind].model_validate(row)
        except ValidationError as err:
            raise IntrospectionError(
                message=f"Malformed {kind.value} row {row.get('name')!r}: {err}",
                code="malformed_catalog_row",
            ) from err
        if isinstance(definition, ViewDefinition) and ObjectKind.INDEX not in self.enabled_kinds:
            definition = definition.model_copy(update={"indexes": ()})
        return CatalogObject(
            kind=kind,
            name=definition.name,
            namespace=namespace,
            qualified_name=qualify(kind, definition, namespace),
            definition=definition,
        )

    @staticmethod
    def _check_unique(objects: list[CatalogObject]) -> None:
        seen: set[ObjectRef] = set()
        for obj in objects:
            if obj.ref in seen:
                raise IntrospectionError(
                    message=f"Duplicate catalog object {obj.ref}", code="duplicate_object"
                )
            seen.add(obj.ref)

    @staticmethod
    def _circular_foreign_keys(objects: list[CatalogObject]) -> set[str]:
        """Foreign keys whose two tables reach each other through foreign keys."""
        table_graph: nx.DiGraph = nx.DiGraph()
        keys: list[tuple[CatalogObject, ForeignKeyDefinition]] = []
        for obj in objects:
            if obj.kind != ObjectKind.FOREIGN_KEY:
                continue
            definition = cast(ForeignKeyDefinition, obj.definition)
            if definition.referenced_namespace in (None, obj.namespace):
                table_graph.add_edge(definition.table, definition.referenced_table)
                keys.append((obj, definition))

        component_of: dict[str, frozenset[str]] = {}
        for component in nx.strongly_connected_components(table_graph):
            for table in component:
                component_of[table] = frozenset(component)

        return {
            obj.qualified_name
            for obj, definition in keys
            if definition.table == definition.referenced_table
            or (
                len(component_of[definition.table]) > 1
                and definition.referenced_table in component_of[definition.table]
            )
        }

    def _with_dependencies(
        self, objects: list[CatalogObject], namespace: str
    ) -> list[CatalogObject]:
        by_kind: dict[ObjectKind, dict[str, list[CatalogObject]]] = {}
        for obj in objects:
            by_kind.setdefault(obj.kind, {}).setdefault(obj.name, []).append(obj)

        def refs(kind: ObjectKind, name: str) -> list[ObjectRef]:
            return [o.ref for o in by_kind.get(kind, {}).get(name, [])]

        resolved = []
        for obj in objects:
            depends_on: list[ObjectRef] = []
            definition = obj.definition
            if isinstance(definition, TableDefinition):
                for column in definition.columns:
                    depends_on += refs(ObjectKind.TYPE, _base_type_name(column.data_type))
                    match = _NEXTVAL.search(column.default or "")
                    if match:
                        depends_on += refs(ObjectKind.SEQUENCE, match.group(1))
            elif isinstance(definition, IndexDefinition):
                depends_on += refs(ObjectKind.TABLE, definition.table)
                depends_on += refs(ObjectKind.VIEW, definition.table)
            elif isinstance(definition, ForeignKeyDefinition):
                depends_on += refs(ObjectKind.TABLE, definition.table)
                if definition.referenced_namespace in (None, namespace):
                    depends_on += refs(ObjectKind.TABLE, definition.referenced_table)
            elif isinstance(definition, ViewDefinition):
                for ref_namespace, ref_name in extract_table_references(
                    definition.body, self.adapter.sqlglot_dialect
                ):
                    if ref_namespace not in (None, namespace) or ref_name == obj.name:
                        continue
                    depends_on += refs(ObjectKind.TABLE, ref_name)
                    depends_on += refs(ObjectKind.VIEW, ref_name)
            elif isinstance(definition, TriggerDefinition):
                depends_on += refs(ObjectKind.TABLE, definition.table)
                if definition.function:
                    depends_on += refs(ObjectKind.FUNCTION, definition.function)

            unique = sorted(set(depends_on) - {obj.ref}, key=ObjectRef.sort_key)
            resolved.append(obj.model_copy(update={"depends_on": tuple(unique)}))
        return resolved


def qualify(kind: ObjectKind, definition: Any, namespace: str) -> str:
    """Build the qualified name that orders an object within its kind."""
    if kind == ObjectKind.EXTENSION:
        return definition.name
    if kind in (ObjectKind.INDEX, ObjectKind.FOREIGN_KEY, ObjectKind.TRIGGER):
        return f"{namespace}.{definition.table}.{definition.name}"
    if kind == ObjectKind.FUNCTION:
        # Procedures may share a name and signature with a function
        marker = "[procedure]" if definition.procedure else ""
        return f"{namespace}.{definition.name}{marker}({definition.arguments})"
    return f"{namespace}.{definition.name}"


def _edge_type(obj: CatalogObject, dependency: ObjectRef) -> DependencyType:
    if obj.kind == ObjectKind.TABLE:
        if dependency.kind == ObjectKind.SEQUENCE:
            return DependencyType.TABLE_TO_SEQUENCE
        return DependencyType.TABLE_TO_TYPE
    if obj.kind == ObjectKind.INDEX:
        return DependencyType.INDEX_TO_TABLE
    if obj.kind == ObjectKind.FOREIGN_KEY:
        return DependencyType.FOREIGN_KEY
    if obj.kind == ObjectKind.VIEW:
        if dependency.kind == ObjectKind.VIEW:
            return DependencyType.VIEW_TO_VIEW
        return DependencyType.VIEW_TO_TABLE
    if dependency.kind == ObjectKind.FUNCTION:
        return DependencyType.TRIGGER_TO_FUNCTION
    return DependencyType.TRIGGER_TO_TABLE
