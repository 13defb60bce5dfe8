"""
Dumper

Orchestrates one snapshot run as a state machine:

    idle → introspecting → generating → formatting → diffing → persisting → done

with ``failed`` reachable from every non-terminal state. Diffing, persisting
and the artifact write happen under the snapshot store lock. Artifacts are
staged first and moved into place last, after the snapshot record exists and
retention has been enforced; if that final move fails the new record is
removed again.
"""

import logging
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from .adapters.base import CatalogAdapter
from .adapters.registry import AdapterRegistry
from .catalog import CatalogModel
from .config import RunConfiguration, build_run_configuration
from .domain.errors import ConfigurationError, PersistenceError, SchemaSnapError
from .domain.results import DumpResult
from .formatter import FormattedOutput, Formatter
from .generators import render_model
from .introspection import Introspector
from .models import Fragment, RenderOptions, SnapshotDraft
from .storage import FileSnapshotStore, SnapshotStore, content_hash
from .writer import StagedArtifacts

logger = logging.getLogger(__name__)

FORMAT_TYPE = "sql"


class DumpState(StrEnum):
    """Lifecycle of a single dump run."""

    IDLE = "idle"
    INTROSPECTING = "introspecting"
    GENERATING = "generating"
    FORMATTING = "formatting"
    DIFFING = "diffing"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


TRANSITIONS: dict[DumpState, frozenset[DumpState]] = {
    DumpState.IDLE: frozenset({DumpState.INTROSPECTING}),
    DumpState.INTROSPECTING: frozenset({DumpState.GENERATING}),
    DumpState.GENERATING: frozenset({DumpState.FORMATTING}),
    DumpState.FORMATTING: frozenset({DumpState.DIFFING}),
    DumpState.DIFFING: frozenset({DumpState.PERSISTING}),
    DumpState.PERSISTING: frozenset({DumpState.DONE}),
    DumpState.DONE: frozenset(),
    DumpState.FAILED: frozenset(),
}


class Dumper:
    """Runs introspection → generation → formatting → diff → persistence once."""

    def __init__(
        self,
        config: RunConfiguration | Mapping[str, Any],
        connection: Any = None,
        store: SnapshotStore | None = None,
        adapter: CatalogAdapter | None = None,
    ) -> None:
        self._raw_config = config
        self._connection = connection
        self._store = store
        self._adapter = adapter
        self.config: RunConfiguration | None = None
        self.state = DumpState.IDLE
        self.history: list[DumpState] = [DumpState.IDLE]
        self.error: SchemaSnapError | None = None

    @property
    def store(self) -> SnapshotStore:
        if self._store is None:
            if self.config is None:
                raise ConfigurationError(
                    message="Configuration has not been validated", code="invalid_configuration"
                )
            self._store = FileSnapshotStore(self.config.store_path)
        return self._store

    def run(self) -> DumpResult:
        """
        Execute the dump.

        Raises:
            ConfigurationError: Before introspection, for invalid configuration
            SchemaSnapError: Subclass matching the failing stage, with ``stage`` set
                and the underlying exception chained
        """
        if self.state != DumpState.IDLE:
            raise SchemaSnapError(
                message=f"Dumper already ran (state: {self.state.value})", code="dumper_spent"
            )
        try:
            config, adapter = self._prepare()
        except SchemaSnapError as err:
            self._fail(err, "configuration")
            raise

        try:
            self._transition(DumpState.INTROSPECTING)
            model = Introspector(adapter, config.enabled_kinds()).run()

            self._transition(DumpState.GENERATING)
            fragments = render_model(model, self._render_options(config, adapter))

            self._transition(DumpState.FORMATTING)
            output = self._formatter(config, adapter).format(fragments, model.header)

            result = self._persist(config, model, fragments, output)
            self._transition(DumpState.DONE)
        except SchemaSnapError as err:
            self._fail(err, self.state.value)
            raise
        except Exception as err:
            stage = self.state.value
            wrapped = SchemaSnapError(
                message=f"Unexpected {type(err).__name__}: {err}", code="unexpected_error"
            )
            self._fail(wrapped, stage)
            raise wrapped from err

        logger.info(
            "Snapshot %d stored (%s, %s)",
            result.snapshot.id,
            result.content_hash[:12],
            "changed" if result.changed else "unchanged",
        )
        return result

    def _prepare(self) -> tuple[RunConfiguration, CatalogAdapter]:
        if isinstance(self._raw_config, RunConfiguration):
            config = self._raw_config
        else:
            config = build_run_configuration(**dict(self._raw_config))
        self.config = config

        adapter = self._adapter
        if adapter is None:
            if self._connection is None:
                raise ConfigurationError(
                    message="A database connection or catalog adapter is required",
                    code="missing_connection",
                )
            adapter = AdapterRegistry.adapter_for(
                self._connection, config.dialect, config.namespace
            )
        elif config.dialect not in ("auto", adapter.dialect):
            raise ConfigurationError(
                message=f"Dialect '{config.dialect}' does not match the {adapter.dialect} adapter",
                code="dialect_mismatch",
            )
        return config, adapter

    @staticmethod
    def _render_options(config: RunConfiguration, adapter: CatalogAdapter) -> RenderOptions:
        return RenderOptions(
            dialect=adapter.dialect,
            enabled_kinds=config.enabled_kinds(),
            indent_size=config.indent_size,
        )

    @staticmethod
    def _formatter(config: RunConfiguration, adapter: CatalogAdapter) -> Formatter:
        return Formatter(
            config.output_mode,
            dialect=adapter.dialect,
            max_lines_per_file=config.max_lines_per_file,
            overflow_threshold=config.overflow_threshold,
            generate_manifest=config.generate_manifest,
        )

    def _persist(
        self,
        config: RunConfiguration,
        model: CatalogModel,
        fragments: list[Fragment],
        output: FormattedOutput,
    ) -> DumpResult:
        digest = content_hash(output.content)
        store = self.store
        self._transition(DumpState.DIFFING)
        with store.lock():
            latest = store.latest()
            previous_hash = latest.content_hash if latest is not None else None
            changed = previous_hash != digest
            logger.debug(
                "Rendered %d fragment(s); hash %s vs previous %s",
                len(fragments),
                digest[:12],
                previous_hash[:12] if previous_hash else "none",
            )

            self._transition(DumpState.PERSISTING)
            with StagedArtifacts(output, config.output_path) as staged:
                snapshot = store.create(
                    SnapshotDraft(
                        content=output.content,
                        content_hash=digest,
                        content_size=len(output.content.encode("utf-8")),
                        line_count=output.line_count,
                        engine_version=model.engine_version,
                        dialect=model.dialect,
                        format_type=FORMAT_TYPE,
                        output_mode=output.mode,
                        file_count=output.file_count,
                        archive=output.archive,
                    )
                )
                try:
                    evicted = store.delete_oldest(config.retention_limit)
                    artifacts = staged.commit()
                except PersistenceError:
                    store.delete(snapshot.id)
                    raise

        return DumpResult(
            snapshot=snapshot,
            changed=changed,
            previous_hash=previous_hash,
            artifacts=artifacts,
            evicted_ids=tuple(evicted),
        )

    def _transition(self, target: DumpState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise SchemaSnapError(
                message=f"Invalid transition {self.state.value} → {target.value}",
                code="invalid_transition",
            )
        logger.debug("Dump state: %s → %s", self.state.value, target.value)
        self.state = target
        self.history.append(target)

    def _fail(self, err: SchemaSnapError, stage: str) -> None:
        if err.stage is None:
            err.stage = stage
        self.error = err
        self.state = DumpState.FAILED
        self.history.append(DumpState.FAILED)
        logger.debug("Dump failed during %s: %s", stage, err.message)


def dump(
    config: RunConfiguration | Mapping[str, Any],
    connection: Any = None,
    store: SnapshotStore | None = None,
) -> DumpResult:
    """Run one dump with a fresh Dumper."""
    return Dumper(config, connection, store).run()
