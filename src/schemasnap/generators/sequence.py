"""CREATE SEQUENCE renderer."""

from schemasnap.catalog import CatalogObject, SequenceDefinition
from schemasnap.models import ObjectKind, RenderOptions

from .base import Generator


class SequenceGenerator(Generator):
    kind = ObjectKind.SEQUENCE
    definition_type = SequenceDefinition

    def generate(
        self, obj: CatalogObject, definition: SequenceDefinition, options: RenderOptions
    ) -> str:
        if definition.increment == 0:
            raise self.fail(obj, "increment must not be zero")
        clauses = [
            f"START WITH {definition.start}",
            f"INCREMENT BY {definition.increment}",
        ]
        if definition.min_value is not None:
            clauses.append(f"MINVALUE {definition.min_value}")
        if definition.max_value is not None:
            clauses.append(f"MAXVALUE {definition.max_value}")
        if definition.cache > 1:
            clauses.append(f"CACHE {definition.cache}")
        if definition.cycle:
            clauses.append("CYCLE")

        lines = [f"CREATE SEQUENCE IF NOT EXISTS {self.quote(definition.name, options)}"]
        lines += [f"{options.indent}{clause}" for clause in clauses]
        sql = "\n".join(lines) + ";"
        # Ownership is set by the owning column's table, which is created later
        if definition.owned_by:
            sql += f"\n-- Owned by {definition.owned_by}"
        return sql
