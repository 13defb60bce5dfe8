"""CREATE TABLE renderer."""

from schemasnap.catalog import (
    CatalogObject,
    ColumnDefinition,
    ForeignKeyDefinition,
    TableDefinition,
)
from schemasnap.models import ObjectKind, RenderOptions

from .base import Generator
from .foreign_key import references_clause


class TableGenerator(Generator):
    kind = ObjectKind.TABLE
    definition_type = TableDefinition

    def generate(
        self, obj: CatalogObject, definition: TableDefinition, options: RenderOptions
    ) -> str:
        if not definition.columns:
            raise self.fail(obj, "table has no columns")
        column_names = {column.name for column in definition.columns}
        missing = [name for name in definition.primary_key if name not in column_names]
        if missing:
            raise self.fail(obj, f"primary key references unknown column(s) {', '.join(missing)}")

        lines = [self._column(column, options) for column in definition.columns]
        if definition.primary_key:
            lines.append(f"PRIMARY KEY ({self.quote_list(definition.primary_key, options)})")
        for constraint in definition.constraints:
            if constraint.name is None:
                lines.append(constraint.definition)
            else:
                lines.append(
                    f"CONSTRAINT {self.quote(constraint.name, options)} {constraint.definition}"
                )
        # Inline foreign keys follow the foreign key toggle like standalone ones
        if options.is_enabled(ObjectKind.FOREIGN_KEY):
            lines += [self._inline_foreign_key(key, options) for key in definition.foreign_keys]

        body = ",\n".join(f"{options.indent}{line}" for line in lines)
        return f"CREATE TABLE IF NOT EXISTS {self.quote(definition.name, options)} (\n{body}\n);"

    def _column(self, column: ColumnDefinition, options: RenderOptions) -> str:
        parts = [self.quote(column.name, options), column.data_type]
        if not column.nullable:
            parts.append("NOT NULL")
        if column.default is not None:
            parts.append(f"DEFAULT {column.default}")
        return " ".join(parts)

    def _inline_foreign_key(self, key: ForeignKeyDefinition, options: RenderOptions) -> str:
        return (
            f"FOREIGN KEY ({self.quote_list(key.columns, options)}) "
            f"{references_clause(key, None, options)}"
        )
