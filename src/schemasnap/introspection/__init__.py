"""Catalog introspection and dependency ordering."""

from .dependency_graph import DependencyGraph, DependencyType
from .introspector import Introspector, qualify
from .references import extract_table_references

__all__ = [
    "DependencyGraph",
    "DependencyType",
    "Introspector",
    "extract_table_references",
    "qualify",
]
