"""Unit tests for single-file and multi-file formatting."""

import json

import pytest

from schemasnap.archive import read_archive
from schemasnap.domain.errors import FormattingError
from schemasnap.formatter import (
    HEADER_FILE,
    MANIFEST_FILE,
    Formatter,
    normalize,
    safe_filename,
)
from schemasnap.generators import render_model
from schemasnap.introspection import Introspector
from schemasnap.models import Fragment, ObjectKind, OutputMode, RenderOptions


def _fragment(kind, name, sql=None, table=None, deferred=False):
    return Fragment(
        kind=kind,
        qualified_name=f"public.{name}",
        sql=sql or f"-- {name}",
        table=table,
        deferred=deferred,
    )


def _shop_fragments(adapter):
    model = Introspector(adapter).run()
    return render_model(model, RenderOptions(dialect="postgresql")), model.header


class TestNormalize:
    def test_line_endings_and_trailing_whitespace(self):
        assert normalize("a  \r\nb\t\rc") == "a\nb\nc\n"

    def test_blank_runs_collapse(self):
        assert normalize("\n\na\n\n\n\nb\n\n\n") == "a\n\nb\n"

    def test_empty_document(self):
        assert normalize("") == "\n"


class TestSingleFile:
    def test_small_document(self):
        fragments = [
            _fragment(ObjectKind.TABLE, "users", "CREATE TABLE users (\n  id integer\n);", "users"),
            _fragment(ObjectKind.INDEX, "users.users_idx", "CREATE INDEX users_idx ON users (id);"),
        ]

        text = Formatter(OutputMode.SINGLE_FILE).format_single(fragments, ["SET x = 1;"])

        assert text == (
            "SET x = 1;\n"
            "\n"
            "-- Tables\n"
            "\n"
            "CREATE TABLE users (\n"
            "  id integer\n"
            ");\n"
            "\n"
            "-- Indexes\n"
            "\n"
            "CREATE INDEX users_idx ON users (id);\n"
        )

    def test_banner_once_per_kind_group(self, shop_adapter):
        fragments, header = _shop_fragments(shop_adapter)

        text = Formatter(OutputMode.SINGLE_FILE).format_single(fragments, header)

        for banner in ("Extensions", "Types", "Sequences", "Tables", "Indexes", "Foreign Keys"):
            assert text.count(f"-- {banner}\n") == 1
        assert text.count("-- Deferred Constraints\n") == 1
        assert text.index("-- Triggers") < text.index("-- Deferred Constraints")
        assert text.rstrip().endswith("REFERENCES node (id);")

    def test_single_trailing_newline_and_no_trailing_spaces(self):
        fragments = [_fragment(ObjectKind.VIEW, "v", "CREATE VIEW v AS   \nSELECT 1;\n\n\n")]

        text = Formatter(OutputMode.SINGLE_FILE).format(fragments).content

        assert text.endswith(";\n")
        assert not text.endswith("\n\n")
        assert all(line == line.rstrip() for line in text.split("\n"))

    def test_single_file_output_has_no_files(self):
        output = Formatter(OutputMode.SINGLE_FILE).format([_fragment(ObjectKind.VIEW, "v")])

        assert output.files == {}
        assert output.archive is None
        assert output.file_count is None
        assert output.line_count == output.content.count("\n")


class TestMultiFile:
    def test_directory_layout(self, shop_adapter):
        fragments, header = _shop_fragments(shop_adapter)

        output = Formatter(OutputMode.MULTI_FILE, dialect="postgresql").format(fragments, header)

        assert list(output.files) == [
            HEADER_FILE,
            "01_extensions/000001.sql",
            "02_types/000001.sql",
            "03_sequences/000001.sql",
            "04_tables/node.sql",
            "04_tables/orders.sql",
            "04_tables/users.sql",
            "05_indexes/orders.sql",
            "05_indexes/users.sql",
            "06_foreign_keys/orders.sql",
            "07_views/000001.sql",
            "08_functions/000001.sql",
            "09_triggers/000001.sql",
            "10_deferred_constraints/000001.sql",
        ]
        assert output.file_count == len(output.files)

    def test_each_file_starts_with_banner_and_ends_with_newline(self, shop_adapter):
        fragments, header = _shop_fragments(shop_adapter)

        output = Formatter(OutputMode.MULTI_FILE).format(fragments, header)

        assert output.files["04_tables/users.sql"].startswith("-- Tables\n\nCREATE TABLE")
        assert output.files["10_deferred_constraints/000001.sql"].startswith(
            "-- Deferred Constraints\n"
        )
        for text in output.files.values():
            assert text.endswith("\n") and not text.endswith("\n\n")

    def test_content_concatenates_files_in_load_order(self, shop_adapter):
        fragments, header = _shop_fragments(shop_adapter)

        output = Formatter(OutputMode.MULTI_FILE).format(fragments, header)

        assert output.content == "\n".join(output.files.values())

    def test_case_insensitive_table_names_get_distinct_files(self):
        fragments = [
            _fragment(ObjectKind.TABLE, "Users", table="Users"),
            _fragment(ObjectKind.TABLE, "users", table="users"),
        ]

        output = Formatter(OutputMode.MULTI_FILE).format(fragments)

        assert list(output.files) == ["04_tables/Users.sql", "04_tables/users_2.sql"]

    def test_table_scoped_fragment_without_table_fails(self):
        with pytest.raises(FormattingError) as exc_info:
            Formatter(OutputMode.MULTI_FILE).format([_fragment(ObjectKind.INDEX, "idx")])

        assert exc_info.value.code == "unplaceable_fragment"

    def test_chunking_respects_line_limit(self):
        fragments = [_fragment(ObjectKind.FUNCTION, f"f{i}") for i in range(5)]

        output = Formatter(OutputMode.MULTI_FILE, max_lines_per_file=4).format(fragments)

        assert list(output.files) == [
            "08_functions/000001.sql",
            "08_functions/000002.sql",
            "08_functions/000003.sql",
        ]
        assert "-- f0\n\n-- f1\n" in output.files["08_functions/000001.sql"]
        assert output.files["08_functions/000003.sql"] == "-- Functions\n\n-- f4\n"

    def test_oversized_fragment_gets_its_own_file(self):
        big = "\n".join(f"-- line {i}" for i in range(10))
        fragments = [
            _fragment(ObjectKind.VIEW, "a"),
            _fragment(ObjectKind.VIEW, "big", big),
            _fragment(ObjectKind.VIEW, "c"),
        ]

        output = Formatter(OutputMode.MULTI_FILE, max_lines_per_file=5).format(fragments)

        assert len(output.files) == 3
        assert "-- line 9" in output.files["07_views/000002.sql"]

    def test_manifest(self, shop_adapter):
        fragments, header = _shop_fragments(shop_adapter)

        output = Formatter(OutputMode.MULTI_FILE, dialect="postgresql").format(fragments, header)
        manifest = output.manifest

        assert manifest["version"] == "1.0"
        assert manifest["dialect"] == "postgresql"
        assert manifest["total_files"] == len(output.files)
        assert manifest["total_lines"] == sum(entry["lines"] for entry in manifest["files"])
        assert manifest["directories"]["."] == {
            "files": 1,
            "lines": output.files[HEADER_FILE].count("\n"),
        }
        assert manifest["directories"]["04_tables"]["files"] == 3
        assert MANIFEST_FILE not in output.files
        assert MANIFEST_FILE in output.artifact_files()

    def test_manifest_is_optional(self):
        output = Formatter(OutputMode.MULTI_FILE, generate_manifest=False).format(
            [_fragment(ObjectKind.VIEW, "v")]
        )

        assert output.manifest is None
        assert MANIFEST_FILE not in read_archive(output.archive)

    def test_archive_holds_files_and_manifest(self, shop_adapter):
        fragments, header = _shop_fragments(shop_adapter)

        output = Formatter(OutputMode.MULTI_FILE).format(fragments, header)
        archived = read_archive(output.archive)

        manifest_text = archived.pop(MANIFEST_FILE)
        assert archived == output.files
        assert json.loads(manifest_text) == output.manifest

    def test_archive_bytes_are_deterministic(self, shop_adapter):
        fragments, header = _shop_fragments(shop_adapter)

        first = Formatter(OutputMode.MULTI_FILE).format(fragments, header)
        second = Formatter(OutputMode.MULTI_FILE).format(fragments, header)

        assert first.archive == second.archive
        assert first.content == second.content


def test_safe_filename():
    assert safe_filename("order items") == "order_items"
    assert safe_filename("../etc") == "etc"
    assert safe_filename("...") == "unnamed"
