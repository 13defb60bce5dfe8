"""
Snapshot Store

Repository interface for snapshot records plus the embedded file-backed
implementation used by default:

    <root>/
      index.json            id sequence
      .store.lock           held while a run diffs, persists and writes output
      snapshots/
        00000001.json       snapshot record (content, hash, stats)
        00000001.zip        archive payload (multi-file snapshots only)
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from pydantic import ValidationError

from .domain.errors import PersistenceError, StoreLockedError
from .models import Snapshot, SnapshotDraft, SnapshotSummary

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.json"
SNAPSHOTS_DIR = "snapshots"
LOCK_FILENAME = ".store.lock"


def content_hash(content: str) -> str:
    """Stable digest of canonical content (SHA-256 over UTF-8 bytes)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class SnapshotStore(Protocol):
    """Persistence boundary for snapshot records."""

    def create(self, draft: SnapshotDraft) -> Snapshot: ...

    def list(self, limit: int | None = None) -> list[SnapshotSummary]: ...

    def get(self, snapshot_id: int) -> Snapshot | None: ...

    def latest(self) -> Snapshot | None: ...

    def count(self) -> int: ...

    def delete(self, snapshot_id: int) -> None: ...

    def delete_oldest(self, keep: int) -> list[int]: ...

    def lock(self) -> "StoreLock": ...


def _write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    """Atomically write JSON payload to file with deterministic formatting."""
    path.parent.mkdir(parents=True, exist_ok=True)
    file_descriptor, temp_path = tempfile.mkstemp(
        prefix=f"{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(file_descriptor, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, sort_keys=True)
            handle.write("\n")
        os.replace(temp_path, path)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def _write_bytes_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    file_descriptor, temp_path = tempfile.mkstemp(
        prefix=f"{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(file_descriptor, "wb") as handle:
            handle.write(data)
        os.replace(temp_path, path)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


class StoreLock:
    """Single-holder lock file guarding store mutation across processes."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self._lock_path = root / LOCK_FILENAME
        self._locked = False

    @property
    def locked(self) -> bool:
        return self._locked

    def acquire(self) -> None:
        """Acquire lock or raise StoreLockedError if already held."""
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            lock_fd = os.open(self._lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError as exc:
            raise StoreLockedError(
                message=f"Snapshot store is locked: {self._lock_path}",
                code="store_locked",
            ) from exc
        except OSError as exc:
            raise PersistenceError(
                message=f"Cannot create lock {self._lock_path}: {exc}", code="store_unavailable"
            ) from exc
        with os.fdopen(lock_fd, "w", encoding="utf-8") as lock_file:
            lock_file.write(f"{os.getpid()}\n")
        self._locked = True

    def release(self) -> None:
        """Release lock if held."""
        if not self._locked:
            return
        try:
            os.unlink(self._lock_path)
        except FileNotFoundError:
            pass
        self._locked = False

    def __enter__(self) -> "StoreLock":
        self.acquire()
        return self

    def __exit__(self, exc_type: Any, exc: Any, traceback_obj: Any) -> None:
        del exc_type, exc, traceback_obj
        self.release()


class FileSnapshotStore:
    """Embedded file-backed snapshot store ordered by monotonic id."""

    def __init__(self, root: Path) -> None:
        self.root = root

    @property
    def snapshots_dir(self) -> Path:
        return self.root / SNAPSHOTS_DIR

    def _record_path(self, snapshot_id: int) -> Path:
        return self.snapshots_dir / f"{snapshot_id:08d}.json"

    def _archive_path(self, snapshot_id: int) -> Path:
        return self.snapshots_dir / f"{snapshot_id:08d}.zip"

    def lock(self) -> StoreLock:
        return StoreLock(self.root)

    def _ids(self) -> list[int]:
        """Stored snapshot ids, oldest first."""
        if not self.snapshots_dir.exists():
            return []
        ids = []
        for path in self.snapshots_dir.glob("*.json"):
            if path.stem.isdigit():
                ids.append(int(path.stem))
        return sorted(ids)

    def _next_id(self) -> int:
        index_path = self.root / INDEX_FILENAME
        next_id = 1
        if index_path.exists():
            with open(index_path, encoding="utf-8") as f:
                next_id = int(json.load(f).get("next_id", 1))
        ids = self._ids()
        # Ids are never reused, even after the newest snapshots were deleted
        return max([next_id, *(snapshot_id + 1 for snapshot_id in ids)])

    def create(self, draft: SnapshotDraft) -> Snapshot:
        """Persist a new snapshot and return it with its assigned id."""
        try:
            snapshot_id = self._next_id()
        except (OSError, ValueError) as err:
            raise PersistenceError(
                message=f"Cannot read snapshot index: {err}", code="store_unavailable"
            ) from err
        try:
            snapshot = Snapshot(
                **draft.model_dump(),
                archive=draft.archive,
                id=snapshot_id,
                created_at=datetime.now(UTC),
            )
            if snapshot.archive is not None:
                _write_bytes_atomic(self._archive_path(snapshot_id), snapshot.archive)
            _write_json_atomic(
                self._record_path(snapshot_id),
                {**snapshot.model_dump(mode="json"), "has_archive": snapshot.archive is not None},
            )
            _write_json_atomic(self.root / INDEX_FILENAME, {"next_id": snapshot_id + 1})
        except (OSError, ValueError) as err:
            self._archive_path(snapshot_id).unlink(missing_ok=True)
            self._record_path(snapshot_id).unlink(missing_ok=True)
            raise PersistenceError(
                message=f"Failed to store snapshot: {err}", code="snapshot_write_failed"
            ) from err
        logger.debug("Stored snapshot %d (%s)", snapshot.id, snapshot.content_hash[:12])
        return snapshot

    def _read_record(self, snapshot_id: int) -> dict[str, Any] | None:
        path = self._record_path(snapshot_id)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                record: dict[str, Any] = json.load(f)
        except (OSError, json.JSONDecodeError) as err:
            raise PersistenceError(
                message=f"Cannot read snapshot {snapshot_id}: {err}", code="snapshot_read_failed"
            ) from err
        return record

    def list(self, limit: int | None = None) -> list[SnapshotSummary]:
        """Summaries newest first."""
        ids = list(reversed(self._ids()))
        if limit is not None:
            ids = ids[:limit]
        summaries = []
        for snapshot_id in ids:
            record = self._read_record(snapshot_id)
            if record is not None:
                summaries.append(self._validate(SnapshotSummary, record, snapshot_id))
        return summaries

    def get(self, snapshot_id: int) -> Snapshot | None:
        record = self._read_record(snapshot_id)
        if record is None:
            return None
        archive = None
        if record.pop("has_archive", False):
            try:
                archive = self._archive_path(snapshot_id).read_bytes()
            except OSError as err:
                raise PersistenceError(
                    message=f"Archive for snapshot {snapshot_id} is missing: {err}",
                    code="snapshot_read_failed",
                ) from err
        return self._validate(Snapshot, {**record, "archive": archive}, snapshot_id)

    def latest(self) -> Snapshot | None:
        ids = self._ids()
        return self.get(ids[-1]) if ids else None

    def count(self) -> int:
        return len(self._ids())

    def delete(self, snapshot_id: int) -> None:
        try:
            self._record_path(snapshot_id).unlink(missing_ok=True)
            self._archive_path(snapshot_id).unlink(missing_ok=True)
        except OSError as err:
            raise PersistenceError(
                message=f"Failed to delete snapshot {snapshot_id}: {err}",
                code="snapshot_delete_failed",
            ) from err

    def delete_oldest(self, keep: int) -> list[int]:
        """Evict the oldest snapshots so that at most ``keep`` remain."""
        if keep < 0:
            raise ValueError("keep must not be negative")
        ids = self._ids()
        evicted = ids[: max(0, len(ids) - keep)]
        for snapshot_id in evicted:
            self.delete(snapshot_id)
        if evicted:
            logger.info("Evicted %d snapshot(s): %s", len(evicted), evicted)
        return evicted

    @staticmethod
    def _validate(model: Any, record: dict[str, Any], snapshot_id: int) -> Any:
        try:
            return model.model_validate(record)
        except ValidationError as err:
            raise PersistenceError(
                message=f"Snapshot {snapshot_id} record is corrupt: {err}",
                code="snapshot_read_failed",
            ) from err
