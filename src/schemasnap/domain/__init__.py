"""Domain-level errors and result types."""

from .errors import (
    CircularDependencyError,
    ConfigurationError,
    DialectUnsupported,
    FormattingError,
    GenerationError,
    IntrospectionError,
    PersistenceError,
    SchemaSnapError,
    StoreLockedError,
)

__all__ = [
    "SchemaSnapError",
    "ConfigurationError",
    "IntrospectionError",
    "DialectUnsupported",
    "CircularDependencyError",
    "GenerationError",
    "FormattingError",
    "PersistenceError",
    "StoreLockedError",
]
