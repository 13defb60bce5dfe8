"""
Formatter

Merges rendered fragments, in the order the introspector produced them, into
either one SQL document or a directory of SQL files plus a manifest and a zip
archive. Output is a pure function of the fragments and the options.
"""

import json
import re
import zipfile
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .archive import build_archive
from .domain.errors import FormattingError
from .models import TABLE_SCOPED_KINDS, Fragment, ObjectKind, OutputMode

HEADER_FILE = "_header.sql"
MANIFEST_FILE = "_manifest.json"
MANIFEST_VERSION = "1.0"
DEFERRED_BANNER = "Deferred Constraints"
DEFERRED_DIRECTORY = "10_deferred_constraints"

KIND_DIRECTORIES: dict[ObjectKind, str] = {
    ObjectKind.EXTENSION: "01_extensions",
    ObjectKind.TYPE: "02_types",
    ObjectKind.SEQUENCE: "03_sequences",
    ObjectKind.TABLE: "04_tables",
    ObjectKind.INDEX: "05_indexes",
    ObjectKind.FOREIGN_KEY: "06_foreign_keys",
    ObjectKind.VIEW: "07_views",
    ObjectKind.FUNCTION: "08_functions",
    ObjectKind.TRIGGER: "09_triggers",
}

_BLANK_RUNS = re.compile(r"\n{3,}")
_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9_.-]+")


def normalize(text: str) -> str:
    """Apply the uniform textual conventions to one document.

    LF line endings, no trailing whitespace, at most one blank line in a row,
    no leading blank lines and exactly one trailing newline.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = "\n".join(line.rstrip() for line in text.split("\n"))
    text = _BLANK_RUNS.sub("\n\n", text).strip("\n")
    return f"{text}\n"


def safe_filename(name: str) -> str:
    """Filesystem-safe stem for a table name."""
    return _UNSAFE_FILENAME.sub("_", name).strip("._") or "unnamed"


def _banner(fragment: Fragment) -> str:
    return f"-- {DEFERRED_BANNER if fragment.deferred else fragment.kind.banner}"


@dataclass(frozen=True)
class FormattedOutput:
    """Formatter result; ``content`` is what the snapshot hash covers."""

    mode: OutputMode
    content: str
    files: dict[str, str] = field(default_factory=dict)  # relative path -> text, load order
    manifest: dict[str, Any] | None = None
    archive: bytes | None = None

    @property
    def line_count(self) -> int:
        return self.content.count("\n")

    @property
    def file_count(self) -> int | None:
        if self.mode == OutputMode.SINGLE_FILE:
            return None
        return len(self.files)

    def artifact_files(self) -> dict[str, str]:
        """Files to write into the output directory, manifest included."""
        files = dict(self.files)
        if self.manifest is not None:
            files[MANIFEST_FILE] = manifest_text(self.manifest)
        return files


def manifest_text(manifest: dict[str, Any]) -> str:
    return json.dumps(manifest, indent=2, sort_keys=True) + "\n"


class Formatter:
    """Packages fragments for one output mode."""

    def __init__(
        self,
        mode: OutputMode,
        *,
        dialect: str = "",
        max_lines_per_file: int = 500,
        overflow_threshold: float = 1.1,
        generate_manifest: bool = True,
    ) -> None:
        self.mode = mode
        self.dialect = dialect
        self.max_lines_per_file = max_lines_per_file
        self.overflow_threshold = overflow_threshold
        self.generate_manifest = generate_manifest

    def format(self, fragments: Sequence[Fragment], header: Sequence[str] = ()) -> FormattedOutput:
        """
        Format fragments for the configured mode.

        Raises:
            FormattingError: If fragments cannot be placed or the archive cannot be built
        """
        if self.mode == OutputMode.SINGLE_FILE:
            return FormattedOutput(mode=self.mode, content=self.format_single(fragments, header))
        return self.format_multi(fragments, header)

    def format_single(self, fragments: Sequence[Fragment], header: Sequence[str] = ()) -> str:
        """One document: header, then fragments with a banner at each kind change."""
        blocks: list[str] = []
        if header:
            blocks.append("\n".join(header))
        current_banner = None
        for fragment in fragments:
            banner = _banner(fragment)
            if banner != current_banner:
                blocks.append(banner)
                current_banner = banner
            blocks.append(fragment.sql)
        return normalize("\n\n".join(blocks))

    def format_multi(
        self, fragments: Sequence[Fragment], header: Sequence[str] = ()
    ) -> FormattedOutput:
        """Numbered directories of SQL files, a manifest and an archive."""
        files: dict[str, str] = {}
        if header:
            files[HEADER_FILE] = normalize("\n".join(header))

        for directory, group in self._directories(fragments):
            for filename, members in self._partition(directory, group):
                blocks = [_banner(members[0])] + [fragment.sql for fragment in members]
                files[f"{directory}/{filename}"] = normalize("\n\n".join(blocks))

        content = "\n".join(files.values())
        manifest = self._manifest(files) if self.generate_manifest else None
        archived = dict(files)
        if manifest is not None:
            archived[MANIFEST_FILE] = manifest_text(manifest)
        try:
            archive = build_archive(archived)
        except (OSError, ValueError, zipfile.LargeZipFile) as err:
            raise FormattingError(
                message=f"Failed to build archive: {err}", code="archive_failed"
            ) from err

        return FormattedOutput(
            mode=self.mode, content=content, files=files, manifest=manifest, archive=archive
        )

    def _directories(self, fragments: Sequence[Fragment]) -> list[tuple[str, list[Fragment]]]:
        grouped: dict[str, list[Fragment]] = {}
        for fragment in fragments:
            directory = DEFERRED_DIRECTORY if fragment.deferred else KIND_DIRECTORIES[fragment.kind]
            grouped.setdefault(directory, []).append(fragment)
        return sorted(grouped.items())

    def _partition(
        self, directory: str, fragments: list[Fragment]
    ) -> list[tuple[str, list[Fragment]]]:
        if directory != DEFERRED_DIRECTORY and fragments[0].kind in TABLE_SCOPED_KINDS:
            return self._per_table(fragments)
        return [
            (f"{number:06d}.sql", chunk)
            for number, chunk in enumerate(self._chunks(fragments), start=1)
        ]

    def _per_table(self, fragments: list[Fragment]) -> list[tuple[str, list[Fragment]]]:
        by_table: dict[str, list[Fragment]] = {}
        for fragment in fragments:
            if not fragment.table:
                raise FormattingError(
                    message=f"{fragment.kind.value} '{fragment.qualified_name}' has no table",
                    code="unplaceable_fragment",
                )
            by_table.setdefault(fragment.table, []).append(fragment)

        used: set[str] = set()
        placed = []
        for table, members in by_table.items():
            stem = safe_filename(table)
            candidate, suffix = stem, 2
            while candidate.lower() in used:
                candidate = f"{stem}_{suffix}"
                suffix += 1
            used.add(candidate.lower())
            placed.append((f"{candidate}.sql", members))
        return placed

    def _chunks(self, fragments: list[Fragment]) -> list[list[Fragment]]:
        """Split fragments into files of about ``max_lines_per_file`` lines.

        A file may overflow up to ``overflow_threshold`` times the limit to avoid
        a tiny trailing file; a fragment longer than the limit gets a file of its own.
        """
        soft_limit = self.max_lines_per_file * self.overflow_threshold
        chunks: list[list[Fragment]] = []
        current: list[Fragment] = []
        current_lines = 0
        for fragment in fragments:
            lines = fragment.line_count
            if lines > self.max_lines_per_file:
                if current:
                    chunks.append(current)
                chunks.append([fragment])
                current, current_lines = [], 0
                continue
            if current and current_lines + lines > soft_limit:
                chunks.append(current)
                current, current_lines = [], 0
            current.append(fragment)
            current_lines += lines + 1
            if current_lines >= self.max_lines_per_file:
                chunks.append(current)
                current, current_lines = [], 0
        if current:
            chunks.append(current)
        return chunks

    def _manifest(self, files: dict[str, str]) -> dict[str, Any]:
        directories: dict[str, dict[str, int]] = {}
        entries = []
        for path, text in files.items():
            lines = text.count("\n")
            entries.append({"path": path, "lines": lines})
            directory = path.split("/", 1)[0] if "/" in path else "."
            stats = directories.setdefault(directory, {"files": 0, "lines": 0})
            stats["files"] += 1
            stats["lines"] += lines
        return {
            "version": MANIFEST_VERSION,
            "dialect": self.dialect,
            "max_lines_per_file": self.max_lines_per_file,
            "total_files": len(files),
            "total_lines": sum(entry["lines"] for entry in entries),
            "files": entries,
            "directories": directories,
        }
