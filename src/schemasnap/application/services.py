"""Application service layer.

Stable orchestration surface for CLI and SDK callers: dump runs plus the
read-only snapshot query API.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from schemasnap.adapters.registry import open_connection
from schemasnap.archive import extract_archive
from schemasnap.config import RunConfiguration
from schemasnap.domain.results import CommandResult
from schemasnap.dumper import Dumper
from schemasnap.formatter import FormattedOutput
from schemasnap.models import OutputMode, Snapshot, SnapshotSummary
from schemasnap.storage import FileSnapshotStore, SnapshotStore
from schemasnap.writer import write_artifacts

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SnapshotQueryService:
    """Read-only access to stored snapshots."""

    store: SnapshotStore

    @classmethod
    def at(cls, store_path: Path) -> SnapshotQueryService:
        return cls(store=FileSnapshotStore(store_path))

    def list_snapshots(self, limit: int | None = None) -> list[SnapshotSummary]:
        """Summaries ordered newest first."""
        return self.store.list(limit)

    def get_snapshot(self, snapshot_id: int) -> Snapshot | None:
        return self.store.get(snapshot_id)

    def extract_snapshot(self, snapshot: Snapshot, directory: Path) -> list[Path]:
        """Write a snapshot's files below ``directory``.

        Multi-file snapshots are unpacked from their archive; single-file
        snapshots are written as ``<id>.sql``.
        """
        if snapshot.output_mode == OutputMode.MULTI_FILE and snapshot.archive is not None:
            return extract_archive(snapshot.archive, directory)
        output = FormattedOutput(mode=OutputMode.SINGLE_FILE, content=snapshot.content)
        return list(write_artifacts(output, directory / f"{snapshot.id:08d}.sql"))


@dataclass(slots=True)
class DumpService:
    """Run one dump against an open connection or a database URL."""

    def run(
        self,
        *,
        config: RunConfiguration,
        connection: Any = None,
        database_url: str | None = None,
        store: SnapshotStore | None = None,
    ) -> CommandResult:
        opened = None
        if connection is None and database_url is not None:
            opened, _ = open_connection(database_url)
            connection = opened
        try:
            result = Dumper(config, connection, store).run()
        finally:
            if opened is not None:
                opened.close()

        message = (
            f"Snapshot {result.snapshot.id} stored"
            if result.changed
            else f"Snapshot {result.snapshot.id} stored (no changes since last snapshot)"
        )
        return CommandResult(
            success=True,
            code="dumped" if result.changed else "unchanged",
            message=message,
            data=result.as_dict(),
        )


@dataclass(slots=True)
class ListSnapshotsService:
    """List snapshot summaries newest first."""

    def run(self, *, store_path: Path, limit: int | None = None) -> CommandResult:
        summaries = SnapshotQueryService.at(store_path).list_snapshots(limit)
        return CommandResult(
            success=True,
            code="listed",
            message=f"{len(summaries)} snapshot(s)",
            data={"snapshots": [summary.model_dump(mode="json") for summary in summaries]},
        )


@dataclass(slots=True)
class ShowSnapshotService:
    """Fetch one snapshot's full content."""

    def run(self, *, store_path: Path, snapshot_id: int) -> CommandResult:
        snapshot = SnapshotQueryService.at(store_path).get_snapshot(snapshot_id)
        if snapshot is None:
            return CommandResult(
                success=False,
                code="snapshot_not_found",
                message=f"Snapshot {snapshot_id} not found",
            )
        return CommandResult(
            success=True,
            code="found",
            message=f"Snapshot {snapshot_id}",
            data={
                "snapshot": snapshot.summary().model_dump(mode="json"),
                "content": snapshot.content,
            },
        )


@dataclass(slots=True)
class ExtractSnapshotService:
    """Unpack one snapshot's files into a directory."""

    def run(self, *, store_path: Path, snapshot_id: int, directory: Path) -> CommandResult:
        query = SnapshotQueryService.at(store_path)
        snapshot = query.get_snapshot(snapshot_id)
        if snapshot is None:
            return CommandResult(
                success=False,
                code="snapshot_not_found",
                message=f"Snapshot {snapshot_id} not found",
            )
        written = query.extract_snapshot(snapshot, directory)
        logger.debug("Extracted %d file(s) from snapshot %d", len(written), snapshot_id)
        return CommandResult(
            success=True,
            code="extracted",
            message=f"Extracted {len(written)} file(s) to {directory}",
            data={"files": [str(path) for path in written]},
        )
