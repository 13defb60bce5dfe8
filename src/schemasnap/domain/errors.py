"""Unified error taxonomy for snapshot runs."""

from dataclasses import dataclass


@dataclass(slots=True)
class SchemaSnapError(Exception):
    """Base class for every failure surfaced by the engine.

    ``stage`` names the dump stage that failed (``introspecting``,
    ``generating``, ...) once the Dumper has seen the error.
    """

    message: str
    code: str = "error"
    stage: str | None = None

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class ConfigurationError(SchemaSnapError):
    """Raised for invalid run configuration, caught before introspection starts."""


class IntrospectionError(SchemaSnapError):
    """Raised when the catalog cannot be read or returns malformed rows."""


@dataclass(slots=True)
class DialectUnsupported(IntrospectionError):
    """Raised when an adapter is asked for a kind outside its capabilities."""

    dialect: str = ""
    kind: str = ""


@dataclass(slots=True)
class CircularDependencyError(IntrospectionError):
    """Raised when objects other than foreign keys form a dependency cycle."""

    cycles: tuple[tuple[str, ...], ...] = ()


class GenerationError(SchemaSnapError):
    """Raised when a renderer receives a malformed catalog object."""


class FormattingError(SchemaSnapError):
    """Raised when fragments cannot be packaged into documents or an archive."""


class PersistenceError(SchemaSnapError):
    """Raised when the snapshot store or the artifact output cannot be written."""


class StoreLockedError(PersistenceError):
    """Raised when another run holds the snapshot store lock."""
