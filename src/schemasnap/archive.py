"""
Deterministic zip packaging for multi-file dumps.

Entries carry a fixed timestamp and fixed permissions so that identical file
maps always produce identical archive bytes. Extraction refuses absolute
paths, parent-directory traversal and archives beyond fixed size limits.
"""

import io
import zipfile
from collections.abc import Mapping
from pathlib import Path, PurePosixPath

from .domain.errors import FormattingError

FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)
FILE_MODE = 0o644
MAX_ENTRIES = 300_000
MAX_UNCOMPRESSED_BYTES = 800 * 1024 * 1024


def build_archive(files: Mapping[str, str]) -> bytes:
    """Zip ``{relative_path: text}`` in mapping order."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for path, text in files.items():
            info = zipfile.ZipInfo(path, date_time=FIXED_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.create_system = 3
            info.external_attr = FILE_MODE << 16
            archive.writestr(info, text.encode("utf-8"))
    return buffer.getvalue()


def _checked_entries(archive: zipfile.ZipFile) -> list[zipfile.ZipInfo]:
    entries = [info for info in archive.infolist() if not info.is_dir()]
    if len(entries) > MAX_ENTRIES:
        raise FormattingError(
            message=f"Archive has {len(entries)} entries (limit {MAX_ENTRIES})",
            code="unsafe_archive",
        )
    total = sum(info.file_size for info in entries)
    if total > MAX_UNCOMPRESSED_BYTES:
        raise FormattingError(
            message=f"Archive expands to {total} bytes (limit {MAX_UNCOMPRESSED_BYTES})",
            code="unsafe_archive",
        )
    for info in entries:
        path = PurePosixPath(info.filename)
        if path.is_absolute() or ".." in path.parts or "\\" in info.filename:
            raise FormattingError(
                message=f"Unsafe path in archive: {info.filename}", code="unsafe_archive"
            )
    return entries


def read_archive(data: bytes) -> dict[str, str]:
    """Return ``{relative_path: text}`` for every file in the archive, in archive order."""
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            return {
                info.filename: archive.read(info).decode("utf-8")
                for info in _checked_entries(archive)
            }
    except (zipfile.BadZipFile, UnicodeDecodeError) as err:
        raise FormattingError(message=f"Corrupt archive: {err}", code="corrupt_archive") from err


def extract_archive(data: bytes, directory: Path) -> list[Path]:
    """Write every archive entry below ``directory`` and return the written paths."""
    written = []
    for relative, text in read_archive(data).items():
        target = directory.joinpath(*PurePosixPath(relative).parts)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")
        written.append(target)
    return written
