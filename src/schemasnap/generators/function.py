"""Stored function / procedure renderer."""

from schemasnap.catalog import CatalogObject, FunctionDefinition
from schemasnap.models import ObjectKind, RenderOptions

from .base import Generator, strip_definer, terminate


class FunctionGenerator(Generator):
    kind = ObjectKind.FUNCTION
    definition_type = FunctionDefinition

    def generate(
        self, obj: CatalogObject, definition: FunctionDefinition, options: RenderOptions
    ) -> str:
        sql = strip_definer(definition.definition).strip()
        if not sql.upper().startswith("CREATE"):
            raise self.fail(obj, "definition is not a CREATE statement")
        return terminate(sql)
