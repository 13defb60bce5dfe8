"""
Generators

Closed dispatch from object kind to renderer. Adding a kind to ObjectKind
without registering a generator here fails at import time.
"""

from dataclasses import replace

from schemasnap.catalog import CatalogModel, CatalogObject
from schemasnap.models import Fragment, ObjectKind, RenderOptions

from .base import Generator, quote_identifier, quote_string, strip_definer, terminate
from .custom_type import TypeGenerator
from .extension import ExtensionGenerator
from .foreign_key import ForeignKeyGenerator
from .function import FunctionGenerator
from .index import IndexGenerator
from .sequence import SequenceGenerator
from .table import TableGenerator
from .trigger import TriggerGenerator
from .view import ViewGenerator

RENDERERS: dict[ObjectKind, Generator] = {
    generator.kind: generator
    for generator in (
        ExtensionGenerator(),
        TypeGenerator(),
        SequenceGenerator(),
        TableGenerator(),
        IndexGenerator(),
        ForeignKeyGenerator(),
        ViewGenerator(),
        FunctionGenerator(),
        TriggerGenerator(),
    )
}

_missing = set(ObjectKind) - set(RENDERERS)
if _missing:
    raise RuntimeError(f"No generator registered for: {', '.join(sorted(_missing))}")


def render_object(obj: CatalogObject, options: RenderOptions) -> Fragment:
    """Render one object with the generator registered for its kind."""
    return RENDERERS[obj.kind].render(obj, options)


def render_model(model: CatalogModel, options: RenderOptions) -> list[Fragment]:
    """Render every object of a catalog model in order, deferred constraints last."""
    fragments = [render_object(obj, options) for obj in model.objects]
    fragments += [replace(render_object(obj, options), deferred=True) for obj in model.deferred]
    return fragments


__all__ = [
    "RENDERERS",
    "Generator",
    "quote_identifier",
    "quote_string",
    "render_model",
    "render_object",
    "strip_definer",
    "terminate",
]
