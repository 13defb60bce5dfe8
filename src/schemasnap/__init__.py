"""
schemasnap

Deterministic schema snapshots: introspect a database catalog, render a
canonical SQL script and keep a bounded history of snapshots.
"""

__version__ = "0.1.0"

from .catalog import CatalogModel, CatalogObject
from .config import RunConfiguration, build_run_configuration, load_run_configuration
from .domain.errors import (
    ConfigurationError,
    DialectUnsupported,
    FormattingError,
    GenerationError,
    IntrospectionError,
    PersistenceError,
    SchemaSnapError,
    StoreLockedError,
)
from .domain.results import DumpResult
from .dumper import Dumper, DumpState, dump
from .models import Fragment, ObjectKind, OutputMode, Snapshot, SnapshotSummary
from .storage import FileSnapshotStore, SnapshotStore

__all__ = [
    "__version__",
    "CatalogModel",
    "CatalogObject",
    "ConfigurationError",
    "DialectUnsupported",
    "DumpResult",
    "DumpState",
    "Dumper",
    "FileSnapshotStore",
    "FormattingError",
    "Fragment",
    "GenerationError",
    "IntrospectionError",
    "ObjectKind",
    "OutputMode",
    "PersistenceError",
    "RunConfiguration",
    "SchemaSnapError",
    "Snapshot",
    "SnapshotStore",
    "SnapshotSummary",
    "StoreLockedError",
    "build_run_configuration",
    "dump",
    "load_run_configuration",
]
