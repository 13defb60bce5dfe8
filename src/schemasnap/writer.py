"""
Artifact writer.

Output is first staged next to its final location and only moved into place on
commit, so a failed run never leaves a partially written artifact behind.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any
from uuid import uuid4

from .domain.errors import PersistenceError
from .formatter import FormattedOutput
from .models import OutputMode

logger = logging.getLogger(__name__)


class StagedArtifacts:
    """Artifact set written to a temporary path, pending commit or discard."""

    def __init__(self, output: FormattedOutput, target: Path) -> None:
        self._output = output
        self._target = target
        self._staged: Path | None = None
        self._committed = False

    @property
    def target(self) -> Path:
        return self._target

    @property
    def paths(self) -> tuple[Path, ...]:
        """Final artifact paths once committed."""
        if self._output.mode == OutputMode.SINGLE_FILE:
            return (self._target,)
        return tuple(self._target / relative for relative in self._output.artifact_files())

    def stage(self) -> None:
        """Write the artifacts to a temporary sibling of the target."""
        try:
            self._target.parent.mkdir(parents=True, exist_ok=True)
            if self._output.mode == OutputMode.SINGLE_FILE:
                file_descriptor, temp_path = tempfile.mkstemp(
                    prefix=f".{self._target.name}.", suffix=".tmp", dir=self._target.parent
                )
                self._staged = Path(temp_path)
                with os.fdopen(file_descriptor, "w", encoding="utf-8", newline="\n") as handle:
                    handle.write(self._output.content)
            else:
                self._staged = Path(
                    tempfile.mkdtemp(
                        prefix=f".{self._target.name}.", suffix=".tmp", dir=self._target.parent
                    )
                )
                for relative, text in self._output.artifact_files().items():
                    path = self._staged / relative
                    path.parent.mkdir(parents=True, exist_ok=True)
                    path.write_text(text, encoding="utf-8", newline="\n")
        except OSError as err:
            self.discard()
            raise PersistenceError(
                message=f"Failed to stage output for {self._target}: {err}",
                code="artifact_stage_failed",
            ) from err

    def commit(self) -> tuple[Path, ...]:
        """Move the staged artifacts into place, replacing any previous output."""
        if self._staged is None:
            raise PersistenceError(message="Nothing staged to commit", code="artifact_not_staged")
        try:
            if self._output.mode == OutputMode.SINGLE_FILE:
                os.replace(self._staged, self._target)
            else:
                self._replace_directory(self._staged)
        except OSError as err:
            raise PersistenceError(
                message=f"Failed to write output to {self._target}: {err}",
                code="artifact_write_failed",
            ) from err
        self._staged = None
        self._committed = True
        logger.debug("Wrote %d artifact file(s) to %s", len(self.paths), self._target)
        return self.paths

    def _replace_directory(self, staged: Path) -> None:
        if self._target.exists() and not self._target.is_dir():
            raise NotADirectoryError(f"{self._target} exists and is not a directory")
        backup = None
        if self._target.exists():
            backup = self._target.with_name(f".{self._target.name}.{uuid4().hex}.old")
            os.replace(self._target, backup)
        try:
            os.replace(staged, self._target)
        except OSError:
            if backup is not None:
                os.replace(backup, self._target)
            raise
        if backup is not None:
            shutil.rmtree(backup)

    def discard(self) -> None:
        """Remove staged files; a no-op after commit."""
        staged, self._staged = self._staged, None
        if staged is None:
            return
        if staged.is_dir():
            shutil.rmtree(staged, ignore_errors=True)
        else:
            staged.unlink(missing_ok=True)

    def __enter__(self) -> "StagedArtifacts":
        self.stage()
        return self

    def __exit__(self, exc_type: Any, exc: Any, traceback_obj: Any) -> None:
        del exc_type, exc, traceback_obj
        if not self._committed:
            self.discard()


def write_artifacts(output: FormattedOutput, target: Path) -> tuple[Path, ...]:
    """Stage and immediately commit (used when no snapshot store is involved)."""
    with StagedArtifacts(output, target) as staged:
        return staged.commit()
