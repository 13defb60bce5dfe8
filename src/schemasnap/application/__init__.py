"""Application services for CLI and SDK callers."""

from .services import (
    DumpService,
    ExtractSnapshotService,
    ListSnapshotsService,
    ShowSnapshotService,
    SnapshotQueryService,
)

__all__ = [
    "DumpService",
    "ExtractSnapshotService",
    "ListSnapshotsService",
    "ShowSnapshotService",
    "SnapshotQueryService",
]
