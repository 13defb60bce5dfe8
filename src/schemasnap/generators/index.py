"""CREATE INDEX renderer."""

from schemasnap.catalog import CatalogObject, IndexDefinition
from schemasnap.models import ObjectKind, RenderOptions

from .base import Generator, terminate


class IndexGenerator(Generator):
    kind = ObjectKind.INDEX
    definition_type = IndexDefinition

    def generate(
        self, obj: CatalogObject, definition: IndexDefinition, options: RenderOptions
    ) -> str:
        # The catalog's own DDL carries methods, expressions and predicates verbatim
        if definition.definition:
            return terminate(definition.definition)
        if not definition.columns:
            raise self.fail(obj, "index has neither a definition nor columns")
        unique = "UNIQUE " if definition.unique else ""
        return (
            f"CREATE {unique}INDEX {self.quote(definition.name, options)} "
            f"ON {self.quote(definition.table, options)} "
            f"({self.quote_list(definition.columns, options)});"
        )
