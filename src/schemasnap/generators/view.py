"""CREATE VIEW renderer, including PostgreSQL materialized views."""

from schemasnap.catalog import CatalogObject, ViewDefinition
from schemasnap.models import ObjectKind, RenderOptions

from .base import Generator, terminate


class ViewGenerator(Generator):
    kind = ObjectKind.VIEW
    definition_type = ViewDefinition

    def generate(
        self, obj: CatalogObject, definition: ViewDefinition, options: RenderOptions
    ) -> str:
        body = terminate(definition.body)
        if body == ";":
            raise self.fail(obj, "view body is empty")
        name = self.quote(definition.name, options)
        if definition.materialized:
            if options.dialect != "postgresql":
                raise self.fail(obj, f"materialized views are not available in {options.dialect}")
            statements = [f"CREATE MATERIALIZED VIEW IF NOT EXISTS {name} AS\n{body}"]
            statements += [terminate(index) for index in definition.indexes]
            return "\n\n".join(statements)
        if definition.indexes:
            raise self.fail(obj, "only materialized views can carry indexes")
        if options.dialect == "sqlite":
            return f"CREATE VIEW IF NOT EXISTS {name} AS\n{body}"
        return f"CREATE OR REPLACE VIEW {name} AS\n{body}"
