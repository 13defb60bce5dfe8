from .catalog_builders import (
    TOUCH_FUNCTION,
    StaticCatalogAdapter,
    column,
    fk_row,
    function_row,
    index_row,
    shop_catalog,
    table_row,
    trigger_row,
    view_row,
)
from .cli_helpers import invoke_cli
from .fake_dbapi import FakeConnection, connection_from

__all__ = [
    "TOUCH_FUNCTION",
    "FakeConnection",
    "StaticCatalogAdapter",
    "column",
    "connection_from",
    "fk_row",
    "function_row",
    "index_row",
    "invoke_cli",
    "shop_catalog",
    "table_row",
    "trigger_row",
    "view_row",
]
