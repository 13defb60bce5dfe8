"""JSON envelopes printed by CLI commands run with ``--json``."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from .errors import SchemaSnapError
from .results import CommandResult


@dataclass(slots=True, frozen=True)
class EnvelopeError:
    """Machine-readable error entry."""

    code: str
    message: str
    stage: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.stage is not None:
            payload["stage"] = self.stage
        return payload

    @classmethod
    def from_exception(cls, err: SchemaSnapError) -> EnvelopeError:
        return cls(code=err.code, message=err.message, stage=err.stage)


@dataclass(slots=True, frozen=True)
class EnvelopeMeta:
    """Execution metadata shared by all envelopes."""

    duration_ms: int
    command: str

    def to_dict(self) -> dict[str, Any]:
        return {"durationMs": self.duration_ms, "command": self.command}

    @classmethod
    def since(cls, started: float, command: str) -> EnvelopeMeta:
        """Metadata for a command started at ``time.monotonic()`` value ``started``."""
        return cls(duration_ms=int((time.monotonic() - started) * 1000), command=command)


def build_success_envelope(*, result: CommandResult, meta: EnvelopeMeta) -> dict[str, Any]:
    return {
        "schemaVersion": "1",
        "status": "success" if result.success else "error",
        "code": result.code,
        "message": result.message,
        "data": result.data,
        "errors": [] if result.success else [{"code": result.code, "message": result.message}],
        "meta": meta.to_dict(),
    }


def build_error_envelope(*, error: EnvelopeError, meta: EnvelopeMeta) -> dict[str, Any]:
    return {
        "schemaVersion": "1",
        "status": "error",
        "code": error.code,
        "message": error.message,
        "data": None,
        "errors": [error.to_dict()],
        "meta": meta.to_dict(),
    }
