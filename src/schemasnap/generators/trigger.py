"""CREATE TRIGGER renderer."""

from schemasnap.catalog import CatalogObject, TriggerDefinition
from schemasnap.models import ObjectKind, RenderOptions

from .base import Generator, strip_definer, terminate


class TriggerGenerator(Generator):
    kind = ObjectKind.TRIGGER
    definition_type = TriggerDefinition

    def generate(
        self, obj: CatalogObject, definition: TriggerDefinition, options: RenderOptions
    ) -> str:
        if definition.definition:
            return terminate(strip_definer(definition.definition))
        if not definition.statement:
            raise self.fail(obj, "trigger has neither a definition nor a statement")
        if not definition.timing or not definition.event:
            raise self.fail(obj, "trigger timing and event are required")
        return (
            f"CREATE TRIGGER {self.quote(definition.name, options)}\n"
            f"{options.indent}{definition.timing.upper()} {definition.event.upper()} "
            f"ON {self.quote(definition.table, options)}\n"
            f"{options.indent}FOR EACH ROW\n"
            f"{terminate(definition.statement)}"
        )
