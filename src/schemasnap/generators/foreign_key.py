"""ALTER TABLE ... ADD CONSTRAINT ... FOREIGN KEY renderer."""

from schemasnap.catalog import CatalogObject, ForeignKeyDefinition
from schemasnap.models import ObjectKind, RenderOptions

from .base import Generator, quote_identifier


def references_clause(
    key: ForeignKeyDefinition, namespace: str | None, options: RenderOptions
) -> str:
    """``REFERENCES parent (id) ON DELETE CASCADE``; NO ACTION is the default and omitted."""
    target = quote_identifier(key.referenced_table, options.dialect)
    if key.referenced_namespace and key.referenced_namespace != namespace and namespace:
        target = f"{quote_identifier(key.referenced_namespace, options.dialect)}.{target}"
    columns = ", ".join(quote_identifier(c, options.dialect) for c in key.referenced_columns)
    clause = f"REFERENCES {target} ({columns})"
    if key.on_delete != "NO ACTION":
        clause += f" ON DELETE {key.on_delete}"
    if key.on_update != "NO ACTION":
        clause += f" ON UPDATE {key.on_update}"
    return clause


class ForeignKeyGenerator(Generator):
    kind = ObjectKind.FOREIGN_KEY
    definition_type = ForeignKeyDefinition

    def generate(
        self, obj: CatalogObject, definition: ForeignKeyDefinition, options: RenderOptions
    ) -> str:
        if len(definition.columns) != len(definition.referenced_columns):
            raise self.fail(obj, "column count does not match referenced column count")
        return (
            f"ALTER TABLE {self.quote(definition.table, options)}\n"
            f"{options.indent}ADD CONSTRAINT {self.quote(definition.name, options)} "
            f"FOREIGN KEY ({self.quote_list(definition.columns, options)})\n"
            f"{options.indent}{references_clause(definition, obj.namespace, options)};"
        )
