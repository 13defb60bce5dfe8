"""
Base Generator Interface

Every object kind has exactly one generator. A generator maps one catalog
object plus the render options to one SQL fragment and must be pure: the same
inputs always produce byte-identical text.
"""

import re
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, ClassVar

from sqlglot import exp
from sqlglot.dialects.dialect import Dialect

from schemasnap.catalog import CatalogObject
from schemasnap.domain.errors import GenerationError
from schemasnap.models import Fragment, ObjectKind, RenderOptions

SQLGLOT_DIALECTS = {"postgresql": "postgres", "mysql": "mysql", "sqlite": "sqlite"}

_PLAIN_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_$]*$")
_DEFINER = re.compile(r"\s+DEFINER\s*=\s*(?:`[^`]*`|'[^']*'|\S+?)@(?:`[^`]*`|'[^']*'|\S+)", re.I)


@lru_cache(maxsize=None)
def _keywords(dialect: str) -> frozenset[str]:
    tokenizer = Dialect.get_or_raise(SQLGLOT_DIALECTS.get(dialect, dialect)).tokenizer_class
    return frozenset(keyword for keyword in tokenizer.KEYWORDS if " " not in keyword)


@lru_cache(maxsize=4096)
def quote_identifier(name: str, dialect: str) -> str:
    """Quote an identifier only when it is not a plain lower-case name or is a keyword."""
    if _PLAIN_IDENTIFIER.match(name) and name.upper() not in _keywords(dialect):
        return name
    return exp.to_identifier(name, quoted=True).sql(dialect=SQLGLOT_DIALECTS.get(dialect, dialect))


def quote_string(value: str) -> str:
    """Render a SQL string literal."""
    return "'" + value.replace("'", "''") + "'"


def strip_definer(sql: str) -> str:
    """Drop MySQL ``DEFINER=user@host`` clauses so output is portable across accounts."""
    return _DEFINER.sub("", sql)


def terminate(sql: str) -> str:
    """Strip surrounding whitespace and ensure exactly one trailing semicolon."""
    statement = sql.strip()
    while statement.endswith(";"):
        statement = statement[:-1].rstrip()
    return f"{statement};"


class Generator(ABC):
    """Base renderer for one object kind."""

    kind: ClassVar[ObjectKind]
    definition_type: ClassVar[type]

    def render(self, obj: CatalogObject, options: RenderOptions) -> Fragment:
        """
        Render one catalog object.

        Raises:
            GenerationError: If the object is of the wrong kind or malformed
        """
        if obj.kind != self.kind or not isinstance(obj.definition, self.definition_type):
            raise GenerationError(
                message=(
                    f"{type(self).__name__} cannot render {obj.kind.value} "
                    f"'{obj.qualified_name}' ({type(obj.definition).__name__})"
                ),
                code="unexpected_object",
            )
        sql = self.generate(obj, obj.definition, options)
        return Fragment(
            kind=obj.kind,
            qualified_name=obj.qualified_name,
            sql=sql,
            table=obj.table,
        )

    @abstractmethod
    def generate(self, obj: CatalogObject, definition: Any, options: RenderOptions) -> str:
        """Return the SQL text for a validated definition."""

    def fail(self, obj: CatalogObject, reason: str) -> GenerationError:
        return GenerationError(
            message=f"Cannot render {obj.kind.value} '{obj.qualified_name}': {reason}",
            code="malformed_object",
        )

    @staticmethod
    def quote(name: str, options: RenderOptions) -> str:
        return quote_identifier(name, options.dialect)

    def quote_list(self, names: tuple[str, ...], options: RenderOptions) -> str:
        return ", ".join(self.quote(name, options) for name in names)
