"""Unit tests for per-kind SQL generators and identifier quoting."""

import pytest

from schemasnap.catalog import CatalogModel
from schemasnap.domain.errors import GenerationError
from schemasnap.generators import (
    RENDERERS,
    quote_identifier,
    render_model,
    render_object,
    terminate,
)
from schemasnap.generators.base import strip_definer
from schemasnap.introspection import Introspector
from schemasnap.models import ObjectKind, RenderOptions
from tests.utils import (
    StaticCatalogAdapter,
    column,
    fk_row,
    index_row,
    shop_catalog,
    table_row,
    trigger_row,
    view_row,
)

PG = RenderOptions(dialect="postgresql")


def _objects(rows, **adapter_options):
    """Introspect canned rows and index the objects by name."""
    model = Introspector(StaticCatalogAdapter(rows, **adapter_options)).run()
    return {obj.name: obj for obj in model.ordered}


def _sql(rows, name, options=PG):
    return render_object(_objects(rows)[name], options).sql


class TestQuoting:
    def test_plain_names_stay_bare(self):
        assert quote_identifier("users", "postgresql") == "users"
        assert quote_identifier("order_items", "mysql") == "order_items"

    def test_mixed_case_is_quoted(self):
        assert quote_identifier("Users", "postgresql") == '"Users"'

    def test_keywords_are_quoted_per_dialect(self):
        assert quote_identifier("select", "postgresql") == '"select"'
        assert quote_identifier("select", "mysql") == "`select`"

    def test_embedded_quotes_are_escaped(self):
        assert quote_identifier('we"ird', "postgresql") == '"we""ird"'


class TestHelpers:
    def test_terminate_adds_exactly_one_semicolon(self):
        assert terminate("SELECT 1") == "SELECT 1;"
        assert terminate("  SELECT 1;;  \n") == "SELECT 1;"

    def test_strip_definer(self):
        sql = "CREATE DEFINER=`root`@`%` FUNCTION f() RETURNS int RETURN 1"

        assert strip_definer(sql) == "CREATE FUNCTION f() RETURNS int RETURN 1"

    def test_every_kind_has_a_renderer(self):
        assert set(RENDERERS) == set(ObjectKind)


class TestTableGenerator:
    def test_columns_primary_key_and_constraints(self):
        rows = {
            ObjectKind.TABLE: [
                table_row(
                    "users",
                    column("id", nullable=False),
                    column("email", "text", nullable=False, default="''::text"),
                    primary_key=["id"],
                    constraints=[
                        {"name": "users_email_check", "definition": "CHECK (email <> '')"}
                    ],
                )
            ]
        }

        assert _sql(rows, "users") == (
            "CREATE TABLE IF NOT EXISTS users (\n"
            "  id integer NOT NULL,\n"
            "  email text NOT NULL DEFAULT ''::text,\n"
            "  PRIMARY KEY (id),\n"
            "  CONSTRAINT users_email_check CHECK (email <> '')\n"
            ");"
        )

    def test_unnamed_constraint_has_no_constraint_keyword(self):
        rows = {
            ObjectKind.TABLE: [
                table_row(
                    "users",
                    column("email", "text"),
                    constraints=[{"name": None, "definition": "UNIQUE (email)"}],
                )
            ]
        }

        assert "  UNIQUE (email)\n" in _sql(rows, "users")

    def test_indent_size_is_honoured(self):
        rows = {ObjectKind.TABLE: [table_row("t", column("id"))]}

        sql = _sql(rows, "t", RenderOptions(dialect="postgresql", indent_size=4))

        assert sql == "CREATE TABLE IF NOT EXISTS t (\n    id integer\n);"

    def test_inline_foreign_keys_follow_toggle(self):
        key = fk_row("fk", "orders", ["user_id"], "users", ["id"], on_delete="cascade")
        rows = {ObjectKind.TABLE: [table_row("orders", column("user_id"), foreign_keys=[key])]}
        obj = _objects(rows)["orders"]

        with_keys = render_object(obj, RenderOptions(dialect="sqlite")).sql
        without_keys = render_object(
            obj, RenderOptions(dialect="sqlite", enabled_kinds=frozenset({ObjectKind.TABLE}))
        ).sql

        assert "  FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE\n" in with_keys
        assert "FOREIGN KEY" not in without_keys

    def test_table_without_columns_fails(self):
        rows = {ObjectKind.TABLE: [table_row("empty")]}

        with pytest.raises(GenerationError, match="no columns") as exc_info:
            _sql(rows, "empty")

        assert exc_info.value.code == "malformed_object"

    def test_primary_key_on_unknown_column_fails(self):
        rows = {ObjectKind.TABLE: [table_row("t", column("id"), primary_key=["missing"])]}

        with pytest.raises(GenerationError, match="missing"):
            _sql(rows, "t")


class TestForeignKeyGenerator:
    def test_alter_table_statement(self):
        sql = _sql(shop_catalog(), "orders_user_id_fkey")

        assert sql == (
            "ALTER TABLE orders\n"
            "  ADD CONSTRAINT orders_user_id_fkey FOREIGN KEY (user_id)\n"
            "  REFERENCES users (id) ON DELETE CASCADE;"
        )

    def test_other_namespace_is_qualified(self):
        rows = {
            ObjectKind.TABLE: [table_row("a", column("id"))],
            ObjectKind.FOREIGN_KEY: [
                fk_row("a_fk", "a", ["id"], "audit_log", ["id"], referenced_namespace="audit")
            ],
        }

        assert "REFERENCES audit.audit_log (id);" in _sql(rows, "a_fk")

    def test_column_count_mismatch_fails(self):
        rows = {
            ObjectKind.TABLE: [table_row("a", column("id"), column("x"))],
            ObjectKind.FOREIGN_KEY: [fk_row("a_fk", "a", ["id", "x"], "a", ["id"])],
        }

        with pytest.raises(GenerationError, match="column count"):
            _sql(rows, "a_fk")


class TestOtherGenerators:
    def test_extension(self):
        rows = {ObjectKind.EXTENSION: [{"name": "postgis", "schema_name": "gis"}]}

        assert _sql(rows, "postgis") == "CREATE EXTENSION IF NOT EXISTS postgis WITH SCHEMA gis;"
        assert _sql(shop_catalog(), "pgcrypto") == "CREATE EXTENSION IF NOT EXISTS pgcrypto;"

    def test_enum_type(self):
        rows = {ObjectKind.TYPE: [{"name": "mood", "category": "enum", "values": ["ok", "it's"]}]}

        assert _sql(rows, "mood") == "CREATE TYPE mood AS ENUM ('ok', 'it''s');"

    def test_composite_type(self):
        rows = {
            ObjectKind.TYPE: [
                {
                    "name": "address",
                    "category": "composite",
                    "attributes": [
                        {"name": "street", "data_type": "text"},
                        {"name": "zip", "data_type": "character varying(10)"},
                    ],
                }
            ]
        }

        assert _sql(rows, "address") == (
            "CREATE TYPE address AS (\n  street text,\n  zip character varying(10)\n);"
        )

    def test_domain_type(self):
        rows = {
            ObjectKind.TYPE: [
                {
                    "name": "positive",
                    "category": "domain",
                    "base_type": "integer",
                    "not_null": True,
                    "constraint": "CHECK (VALUE > 0)",
                }
            ]
        }

        assert _sql(rows, "positive") == (
            "CREATE DOMAIN positive AS integer NOT NULL CHECK (VALUE > 0);"
        )

    def test_domain_without_base_type_fails(self):
        rows = {ObjectKind.TYPE: [{"name": "broken", "category": "domain"}]}

        with pytest.raises(GenerationError, match="base type"):
            _sql(rows, "broken")

    def test_sequence(self):
        rows = {
            ObjectKind.SEQUENCE: [
                {
                    "name": "ticket_seq",
                    "start": 100,
                    "increment": 5,
                    "max_value": 1000,
                    "cache": 10,
                    "cycle": True,
                    "owned_by": "tickets.id",
                }
            ]
        }

        assert _sql(rows, "ticket_seq") == (
            "CREATE SEQUENCE IF NOT EXISTS ticket_seq\n"
            "  START WITH 100\n"
            "  INCREMENT BY 5\n"
            "  MAXVALUE 1000\n"
            "  CACHE 10\n"
            "  CYCLE;\n"
            "-- Owned by tickets.id"
        )

    def test_sequence_with_zero_increment_fails(self):
        rows = {ObjectKind.SEQUENCE: [{"name": "s", "increment": 0}]}

        with pytest.raises(GenerationError, match="increment"):
            _sql(rows, "s")

    def test_index_from_columns_and_from_definition(self):
        rows = {
            ObjectKind.TABLE: [table_row("users", column("email", "text"))],
            ObjectKind.INDEX: [
                index_row("users_email_idx", "users", "email", unique=True),
                index_row(
                    "users_lower_email_idx",
                    "users",
                    definition="CREATE INDEX users_lower_email_idx ON public.users (lower(email))",
                ),
            ],
        }

        assert _sql(rows, "users_email_idx") == (
            "CREATE UNIQUE INDEX users_email_idx ON users (email);"
        )
        assert _sql(rows, "users_lower_email_idx") == (
            "CREATE INDEX users_lower_email_idx ON public.users (lower(email));"
        )

    def test_index_without_columns_or_definition_fails(self):
        rows = {
            ObjectKind.TABLE: [table_row("users", column("id"))],
            ObjectKind.INDEX: [index_row("bad_idx", "users")],
        }

        with pytest.raises(GenerationError, match="neither"):
            _sql(rows, "bad_idx")

    def test_views_per_dialect(self):
        rows = {ObjectKind.VIEW: [view_row("v", "SELECT 1;")]}
        obj = _objects(rows)["v"]

        assert render_object(obj, PG).sql == "CREATE OR REPLACE VIEW v AS\nSELECT 1;"
        assert render_object(obj, RenderOptions(dialect="sqlite")).sql == (
            "CREATE VIEW IF NOT EXISTS v AS\nSELECT 1;"
        )

    def test_materialized_view(self):
        rows = {ObjectKind.VIEW: [view_row("mv", "SELECT 1", materialized=True)]}
        obj = _objects(rows)["mv"]

        assert render_object(obj, PG).sql == (
            "CREATE MATERIALIZED VIEW IF NOT EXISTS mv AS\nSELECT 1;"
        )
        with pytest.raises(GenerationError, match="materialized"):
            render_object(obj, RenderOptions(dialect="mysql"))

    def test_function_definition_is_terminated(self):
        sql = _sql(shop_catalog(), "touch_updated_at")

        assert sql.startswith("CREATE OR REPLACE FUNCTION public.touch_updated_at()")
        assert sql.endswith("$function$;")

    def test_function_must_be_create_statement(self):
        rows = {ObjectKind.FUNCTION: [{"name": "f", "definition": "SELECT 1"}]}

        with pytest.raises(GenerationError, match="CREATE"):
            _sql(rows, "f")

    def test_trigger_from_definition(self):
        assert _sql(shop_catalog(), "users_touch") == (
            "CREATE TRIGGER users_touch BEFORE UPDATE ON users "
            "FOR EACH ROW EXECUTE FUNCTION touch_updated_at();"
        )

    def test_trigger_from_parts(self):
        rows = {
            ObjectKind.TABLE: [table_row("orders", column("id"))],
            ObjectKind.TRIGGER: [
                trigger_row(
                    "orders_bi",
                    "orders",
                    timing="before",
                    event="insert",
                    statement="SET NEW.id = NEW.id + 1",
                )
            ],
        }

        assert _sql(rows, "orders_bi", RenderOptions(dialect="mysql")) == (
            "CREATE TRIGGER orders_bi\n"
            "  BEFORE INSERT ON orders\n"
            "  FOR EACH ROW\n"
            "SET NEW.id = NEW.id + 1;"
        )


class TestRenderModel:
    def test_fragments_follow_model_order(self, shop_adapter):
        model = Introspector(shop_adapter).run()

        fragments = render_model(model, PG)

        assert [f.qualified_name for f in fragments] == [o.qualified_name for o in model.ordered]
        assert [f.deferred for f in fragments].count(True) == 1
        assert fragments[-1].deferred
        assert fragments[-1].table == "node"

    def test_rendering_is_pure(self, shop_adapter):
        model = Introspector(shop_adapter).run()

        assert render_model(model, PG) == render_model(model, PG)

    def test_wrong_definition_type_is_rejected(self, shop_adapter):
        model = Introspector(shop_adapter).run()
        table = model.of_kind(ObjectKind.TABLE)[0]
        mislabeled = table.model_copy(update={"kind": ObjectKind.VIEW})

        with pytest.raises(GenerationError) as exc_info:
            render_object(mislabeled, PG)

        assert exc_info.value.code == "unexpected_object"

    def test_empty_model_renders_nothing(self):
        model = CatalogModel(
            namespace="public", dialect="postgresql", engine_version="16", objects=()
        )

        assert render_model(model, PG) == []
