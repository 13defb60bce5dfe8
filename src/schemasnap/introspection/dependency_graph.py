"""
Dependency Graph for Catalog Ordering

Directed acyclic graph of catalog objects using NetworkX. Edges point from a
dependency to its dependent, so a topological sort yields emission order.

Ties are broken by (kind precedence, qualified name), which makes the order
independent of the order in which the catalog enumerated the objects.
"""

from dataclasses import dataclass
from enum import StrEnum

import networkx as nx

from schemasnap.catalog import CatalogObject
from schemasnap.domain.errors import CircularDependencyError
from schemasnap.models import ObjectRef


class DependencyType(StrEnum):
    """Type of dependency between objects"""

    TABLE_TO_TYPE = "table_to_type"  # Column uses a custom type
    TABLE_TO_SEQUENCE = "table_to_sequence"  # Column default calls nextval()
    INDEX_TO_TABLE = "index_to_table"
    FOREIGN_KEY = "foreign_key"  # Constraint depends on both tables
    VIEW_TO_TABLE = "view_to_table"
    VIEW_TO_VIEW = "view_to_view"
    TRIGGER_TO_TABLE = "trigger_to_table"
    TRIGGER_TO_FUNCTION = "trigger_to_function"


@dataclass
class DependencyNode:
    """Node in the dependency graph"""

    id: str  # str(ObjectRef), e.g. "table:public.users"
    ref: ObjectRef
    obj: CatalogObject


class DependencyGraph:
    """Directed acyclic graph over the catalog objects of one run."""

    def __init__(self) -> None:
        self.graph: nx.DiGraph = nx.DiGraph()
        self.nodes: dict[str, DependencyNode] = {}

    def __contains__(self, ref: ObjectRef) -> bool:
        return str(ref) in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def add_object(self, obj: CatalogObject) -> str:
        """Add a catalog object as a node and return its node ID."""
        node = DependencyNode(id=str(obj.ref), ref=obj.ref, obj=obj)
        self.add_node(node)
        return node.id

    def add_node(self, node: DependencyNode) -> None:
        """Add a node to the graph"""
        if node.id in self.nodes:
            raise ValueError(f"Node {node.id} already exists in graph")

        self.nodes[node.id] = node
        self.graph.add_node(node.id, kind=node.ref.kind.value)

    def add_edge(self, from_id: str, to_id: str, dep_type: DependencyType) -> None:
        """
        Add a dependency edge from from_id to to_id.

        Edge direction: from_id must be emitted BEFORE to_id (to_id depends on from_id).
        Example: add_edge("table:public.users", "index:public.users.users_email")
        """
        if from_id not in self.nodes:
            raise ValueError(f"Source node {from_id} not in graph")
        if to_id not in self.nodes:
            raise ValueError(f"Target node {to_id} not in graph")

        self.graph.add_edge(from_id, to_id, dep_type=dep_type.value)

    def detect_cycles(self) -> list[list[str]]:
        """Return every elementary cycle as a list of node IDs."""
        return [list(cycle) for cycle in nx.simple_cycles(self.graph)]

    def _sort_key(self, node_id: str) -> tuple[int, str]:
        """Sort key for lexicographical topological sort."""
        return self.nodes[node_id].ref.sort_key()

    def topological_sort(self) -> list[CatalogObject]:
        """
        Return objects in dependency order with stable tie-breaking.

        Raises:
            CircularDependencyError: If the graph contains cycles
        """
        cycles = self.detect_cycles()
        if cycles:
            ordered_cycles = tuple(sorted(tuple(cycle) for cycle in cycles))
            cycle_str = "; ".join(" → ".join(cycle) for cycle in ordered_cycles)
            raise CircularDependencyError(
                message=f"Circular dependencies detected: {cycle_str}",
                code="circular_dependency",
                cycles=ordered_cycles,
            )

        sorted_ids = nx.lexicographical_topological_sort(self.graph, key=self._sort_key)
        return [self.nodes[node_id].obj for node_id in sorted_ids]
