"""
Catalog object model.

Adapters return raw rows in a dialect-neutral shape; the introspector validates
each row into one of the definition models below and wraps it in a
``CatalogObject`` together with its qualified name and dependencies.
"""

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import ObjectKind, ObjectRef

FK_ACTIONS = ("NO ACTION", "RESTRICT", "CASCADE", "SET NULL", "SET DEFAULT")


class _Definition(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(min_length=1)


class ExtensionDefinition(_Definition):
    version: str | None = None
    schema_name: str | None = None


class TypeAttribute(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    data_type: str


class TypeDefinition(_Definition):
    """Custom type: enum labels, composite attributes, or a domain over a base type."""

    category: Literal["enum", "composite", "domain"]
    values: tuple[str, ...] = ()
    attributes: tuple[TypeAttribute, ...] = ()
    base_type: str | None = None
    not_null: bool = False
    default: str | None = None
    constraint: str | None = None


class SequenceDefinition(_Definition):
    start: int = 1
    increment: int = 1
    min_value: int | None = None
    max_value: int | None = None
    cache: int = 1
    cycle: bool = False
    owned_by: str | None = None  # "table.column"


class ColumnDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(min_length=1)
    data_type: str = Field(min_length=1)
    nullable: bool = True
    default: str | None = None


class ConstraintDefinition(BaseModel):
    """Named CHECK / UNIQUE table constraint rendered from its catalog definition."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str | None = None  # Unnamed (SQLite UNIQUE) constraints render without CONSTRAINT
    definition: str


class ForeignKeyDefinition(_Definition):
    table: str
    columns: tuple[str, ...] = Field(min_length=1)
    referenced_table: str
    referenced_columns: tuple[str, ...] = Field(min_length=1)
    referenced_namespace: str | None = None
    on_update: str = "NO ACTION"
    on_delete: str = "NO ACTION"

    @field_validator("on_update", "on_delete", mode="before")
    @classmethod
    def _normalize_action(cls, value: str | None) -> str:
        if value is None:
            return "NO ACTION"
        action = " ".join(str(value).upper().split())
        if action not in FK_ACTIONS:
            raise ValueError(f"unknown referential action '{value}'")
        return action


class TableDefinition(_Definition):
    columns: tuple[ColumnDefinition, ...] = ()
    primary_key: tuple[str, ...] = ()
    constraints: tuple[ConstraintDefinition, ...] = ()
    foreign_keys: tuple[ForeignKeyDefinition, ...] = ()  # Inline (SQLite) only


class IndexDefinition(_Definition):
    table: str
    columns: tuple[str, ...] = ()
    unique: bool = False
    definition: str | None = None  # Verbatim catalog DDL when the engine provides it


class ViewDefinition(_Definition):
    body: str = Field(min_length=1)
    materialized: bool = False
    indexes: tuple[str, ...] = ()  # CREATE INDEX DDL, materialized views only


class FunctionDefinition(_Definition):
    arguments: str = ""
    definition: str = Field(min_length=1)
    language: str | None = None
    procedure: bool = False


class TriggerDefinition(_Definition):
    table: str
    function: str | None = None
    timing: str | None = None
    event: str | None = None
    definition: str | None = None
    statement: str | None = None


Definition = (
    ExtensionDefinition
    | TypeDefinition
    | SequenceDefinition
    | TableDefinition
    | IndexDefinition
    | ForeignKeyDefinition
    | ViewDefinition
    | FunctionDefinition
    | TriggerDefinition
)

DEFINITION_TYPES: dict[ObjectKind, type[_Definition]] = {
    ObjectKind.EXTENSION: ExtensionDefinition,
    ObjectKind.TYPE: TypeDefinition,
    ObjectKind.SEQUENCE: SequenceDefinition,
    ObjectKind.TABLE: TableDefinition,
    ObjectKind.INDEX: IndexDefinition,
    ObjectKind.FOREIGN_KEY: ForeignKeyDefinition,
    ObjectKind.VIEW: ViewDefinition,
    ObjectKind.FUNCTION: FunctionDefinition,
    ObjectKind.TRIGGER: TriggerDefinition,
}


class CatalogObject(BaseModel):
    """One introspected database entity."""

    model_config = ConfigDict(frozen=True)

    kind: ObjectKind
    name: str
    namespace: str
    qualified_name: str
    definition: Definition
    depends_on: tuple[ObjectRef, ...] = ()

    @property
    def ref(self) -> ObjectRef:
        return ObjectRef(self.kind, self.qualified_name)

    @property
    def table(self) -> str | None:
        """Owning table name for table-attached kinds."""
        if self.kind == ObjectKind.TABLE:
            return self.name
        return getattr(self.definition, "table", None)


@dataclass(frozen=True, slots=True)
class CatalogModel:
    """Ordered result of one introspection pass."""

    namespace: str
    dialect: str
    engine_version: str
    objects: tuple[CatalogObject, ...]
    deferred: tuple[CatalogObject, ...] = ()
    header: tuple[str, ...] = ()

    @property
    def ordered(self) -> tuple[CatalogObject, ...]:
        """Every object in emission order, deferred constraints last."""
        return self.objects + self.deferred

    def of_kind(self, kind: ObjectKind) -> list[CatalogObject]:
        return [obj for obj in self.ordered if obj.kind == kind]

    def __len__(self) -> int:
        return len(self.objects) + len(self.deferred)
