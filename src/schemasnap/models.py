"""
Core value types shared across the snapshot pipeline.

Object kinds, rendered fragments and persisted snapshot records live here;
the kind-specific catalog payloads live in ``schemasnap.catalog``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class ObjectKind(StrEnum):
    """Closed set of catalog object kinds, declared in emission precedence."""

    EXTENSION = "extension"
    TYPE = "type"
    SEQUENCE = "sequence"
    TABLE = "table"
    INDEX = "index"
    FOREIGN_KEY = "foreign_key"
    VIEW = "view"
    FUNCTION = "function"
    TRIGGER = "trigger"

    @property
    def precedence(self) -> int:
        return KIND_PRECEDENCE[self]

    @property
    def banner(self) -> str:
        """Section title used by the formatter (``Foreign Keys``)."""
        return KIND_BANNERS[self]


KIND_PRECEDENCE: dict[ObjectKind, int] = {
    kind: position for position, kind in enumerate(ObjectKind, start=1)
}

KIND_BANNERS: dict[ObjectKind, str] = {
    ObjectKind.EXTENSION: "Extensions",
    ObjectKind.TYPE: "Types",
    ObjectKind.SEQUENCE: "Sequences",
    ObjectKind.TABLE: "Tables",
    ObjectKind.INDEX: "Indexes",
    ObjectKind.FOREIGN_KEY: "Foreign Keys",
    ObjectKind.VIEW: "Views",
    ObjectKind.FUNCTION: "Functions",
    ObjectKind.TRIGGER: "Triggers",
}

# Kinds that live "inside" a table and are grouped per table in multi-file output
TABLE_SCOPED_KINDS: frozenset[ObjectKind] = frozenset(
    {ObjectKind.TABLE, ObjectKind.INDEX, ObjectKind.FOREIGN_KEY}
)


class OutputMode(StrEnum):
    """Artifact packaging for a dump."""

    SINGLE_FILE = "single_file"
    MULTI_FILE = "multi_file"


@dataclass(frozen=True, slots=True)
class ObjectRef:
    """Reference to a catalog object by kind and qualified name."""

    kind: ObjectKind
    qualified_name: str

    def sort_key(self) -> tuple[int, str]:
        return (self.kind.precedence, self.qualified_name)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.qualified_name}"


@dataclass(frozen=True, slots=True)
class RenderOptions:
    """Inputs every renderer sees besides the object itself."""

    dialect: str
    enabled_kinds: frozenset[ObjectKind] = field(default_factory=lambda: frozenset(ObjectKind))
    indent_size: int = 2

    @property
    def indent(self) -> str:
        return " " * self.indent_size

    def is_enabled(self, kind: ObjectKind) -> bool:
        return kind in self.enabled_kinds


@dataclass(frozen=True, slots=True)
class Fragment:
    """Immutable SQL text block rendered from exactly one catalog object."""

    kind: ObjectKind
    qualified_name: str
    sql: str
    table: str | None = None  # Owning table for table/index/foreign key placement
    deferred: bool = False

    @property
    def line_count(self) -> int:
        return self.sql.count("\n") + 1


class SnapshotDraft(BaseModel):
    """Snapshot fields computed by the Dumper before the store assigns an id."""

    model_config = ConfigDict(frozen=True)

    content: str
    content_hash: str
    content_size: int
    line_count: int
    engine_version: str
    dialect: str
    format_type: str = "sql"
    output_mode: OutputMode
    file_count: int | None = None
    archive: bytes | None = Field(default=None, exclude=True, repr=False)


class SnapshotSummary(BaseModel):
    """List-view projection of a snapshot (no content, no archive)."""

    model_config = ConfigDict(frozen=True)

    id: int
    content_hash: str
    content_size: int
    line_count: int
    engine_version: str
    dialect: str
    format_type: str
    output_mode: OutputMode
    file_count: int | None = None
    created_at: datetime


class Snapshot(SnapshotDraft):
    """Persisted, immutable record of one completed dump."""

    id: int
    created_at: datetime

    @property
    def has_archive(self) -> bool:
        return self.archive is not None

    def summary(self) -> SnapshotSummary:
        return SnapshotSummary.model_validate(self.model_dump(exclude={"content", "archive"}))
