"""Typed result envelopes used by CLI and SDK entrypoints."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from schemasnap.models import Snapshot


@dataclass(slots=True)
class CommandResult:
    """Common command/service response payload."""

    success: bool
    code: str = "ok"
    message: str = ""
    data: dict[str, Any] = field(default_factory=dict)

    def as_json_dict(self) -> dict[str, Any]:
        """Return a stable machine-readable structure."""
        return {
            "success": self.success,
            "code": self.code,
            "message": self.message,
            "data": self.data,
        }


@dataclass(slots=True, frozen=True)
class DumpResult:
    """Outcome of one successful dump run."""

    snapshot: Snapshot
    changed: bool
    previous_hash: str | None
    artifacts: tuple[Path, ...]
    evicted_ids: tuple[int, ...] = ()

    @property
    def content_hash(self) -> str:
        return self.snapshot.content_hash

    def as_dict(self) -> dict[str, Any]:
        return {
            "snapshot_id": self.snapshot.id,
            "content_hash": self.snapshot.content_hash,
            "previous_hash": self.previous_hash,
            "changed": self.changed,
            "content_size": self.snapshot.content_size,
            "line_count": self.snapshot.line_count,
            "file_count": self.snapshot.file_count,
            "output_mode": self.snapshot.output_mode.value,
            "artifacts": [str(path) for path in self.artifacts],
            "evicted_ids": list(self.evicted_ids),
        }
