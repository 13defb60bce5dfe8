"""CREATE EXTENSION renderer (PostgreSQL)."""

from schemasnap.catalog import CatalogObject, ExtensionDefinition
from schemasnap.models import ObjectKind, RenderOptions

from .base import Generator


class ExtensionGenerator(Generator):
    kind = ObjectKind.EXTENSION
    definition_type = ExtensionDefinition

    def generate(
        self, obj: CatalogObject, definition: ExtensionDefinition, options: RenderOptions
    ) -> str:
        sql = f"CREATE EXTENSION IF NOT EXISTS {self.quote(definition.name, options)}"
        if definition.schema_name and definition.schema_name != "public":
            sql += f" WITH SCHEMA {self.quote(definition.schema_name, options)}"
        return f"{sql};"
