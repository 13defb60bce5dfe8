"""Custom type renderer: enums, composite types and domains."""

from schemasnap.catalog import CatalogObject, TypeDefinition
from schemasnap.models import ObjectKind, RenderOptions

from .base import Generator, quote_string


class TypeGenerator(Generator):
    kind = ObjectKind.TYPE
    definition_type = TypeDefinition

    def generate(
        self, obj: CatalogObject, definition: TypeDefinition, options: RenderOptions
    ) -> str:
        name = self.quote(definition.name, options)
        if definition.category == "enum":
            labels = ", ".join(quote_string(value) for value in definition.values)
            return f"CREATE TYPE {name} AS ENUM ({labels});"

        if definition.category == "composite":
            if not definition.attributes:
                return f"CREATE TYPE {name} AS ();"
            attributes = ",\n".join(
                f"{options.indent}{self.quote(attribute.name, options)} {attribute.data_type}"
                for attribute in definition.attributes
            )
            return f"CREATE TYPE {name} AS (\n{attributes}\n);"

        if not definition.base_type:
            raise self.fail(obj, "domain has no base type")
        sql = f"CREATE DOMAIN {name} AS {definition.base_type}"
        if definition.default is not None:
            sql += f" DEFAULT {definition.default}"
        if definition.not_null:
            sql += " NOT NULL"
        if definition.constraint:
            sql += f" {definition.constraint}"
        return f"{sql};"
