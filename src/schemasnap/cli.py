"""
Click-based CLI for schemasnap.
"""

import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, NoReturn

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table

from . import __version__
from .application.services import (
    DumpService,
    ExtractSnapshotService,
    ListSnapshotsService,
    ShowSnapshotService,
)
from .config import DIALECTS, KIND_TOGGLES, load_run_configuration
from .domain.envelopes import (
    EnvelopeError,
    EnvelopeMeta,
    build_error_envelope,
    build_success_envelope,
)
from .domain.errors import SchemaSnapError
from .domain.results import CommandResult
from .models import ObjectKind, OutputMode

console = Console()
err_console = Console(stderr=True)

DEFAULT_STORE = Path(".schemasnap")

store_option = click.option(
    "--store",
    "store_path",
    type=click.Path(path_type=Path),
    default=DEFAULT_STORE,
    show_default=True,
    help="Snapshot store directory",
)


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich on stderr."""
    logger = logging.getLogger("schemasnap")
    logger.handlers[:] = [
        RichHandler(console=err_console, show_time=False, show_path=False, markup=False)
    ]
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


def _exit_with_error(
    err: SchemaSnapError, *, command: str, started: float, json_output: bool
) -> NoReturn:
    if json_output:
        envelope = build_error_envelope(
            error=EnvelopeError.from_exception(err), meta=EnvelopeMeta.since(started, command)
        )
        click.echo(json.dumps(envelope, indent=2))
    else:
        err_console.print(f"[red]✗ Error:[/red] {err}", markup=True, highlight=False)
    sys.exit(1)


def _emit_json(result: CommandResult, *, command: str, started: float) -> None:
    envelope = build_success_envelope(result=result, meta=EnvelopeMeta.since(started, command))
    click.echo(json.dumps(envelope, indent=2))


@click.group()
@click.version_option(version=__version__, prog_name="schemasnap")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def cli(verbose: bool) -> None:
    """schemasnap: deterministic database schema snapshots"""
    configure_logging(verbose)


@cli.command()
@click.option(
    "--database",
    "-d",
    "database_url",
    required=True,
    help="Database URL (sqlite:///path.db, postgresql://..., mysql://...)",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    help="JSON run configuration (default: .schemasnap/config.json if present)",
)
@click.option(
    "--output",
    "-o",
    "output_path",
    type=click.Path(path_type=Path),
    help="Output file or directory",
)
@click.option(
    "--mode",
    "output_mode",
    type=click.Choice([mode.value for mode in OutputMode]),
    help="Output packaging",
)
@click.option("--dialect", type=click.Choice(["auto", *DIALECTS]), help="Dialect override")
@click.option("--namespace", "-n", help="Schema / namespace to dump")
@click.option(
    "--skip",
    "skip_kinds",
    multiple=True,
    type=click.Choice([kind.value for kind in ObjectKind]),
    help="Object kind to leave out (repeatable)",
)
@click.option("--retention", "retention_limit", type=int, help="Number of snapshots to keep")
@click.option(
    "--store", "store_path", type=click.Path(path_type=Path), help="Snapshot store directory"
)
@click.option("--json", "json_output", is_flag=True, help="Print a JSON envelope")
def dump(
    database_url: str,
    config_path: Path | None,
    output_path: Path | None,
    output_mode: str | None,
    dialect: str | None,
    namespace: str | None,
    skip_kinds: tuple[str, ...],
    retention_limit: int | None,
    store_path: Path | None,
    json_output: bool,
) -> None:
    """Introspect a database and store a schema snapshot"""
    started = time.monotonic()
    overrides: dict[str, Any] = {
        "output_path": output_path,
        "output_mode": output_mode,
        "dialect": dialect,
        "namespace": namespace,
        "retention_limit": retention_limit,
        "store_path": store_path,
    }
    for kind in skip_kinds:
        overrides[KIND_TOGGLES[ObjectKind(kind)]] = False

    try:
        config = load_run_configuration(config_path, **overrides)
        result = DumpService().run(config=config, database_url=database_url)
    except SchemaSnapError as err:
        _exit_with_error(err, command="dump", started=started, json_output=json_output)

    if json_output:
        _emit_json(result, command="dump", started=started)
        return

    data = result.data
    marker = "[green]✓[/green]" if data["changed"] else "[yellow]=[/yellow]"
    console.print(f"{marker} {result.message}")
    console.print(f"  Hash:  {data['content_hash']}")
    console.print(f"  Size:  {data['content_size']} bytes, {data['line_count']} lines")
    if data["file_count"] is not None:
        console.print(f"  Files: {data['file_count']}")
    console.print(f"  Output: {config.output_path}")
    if data["evicted_ids"]:
        console.print(f"  Evicted: {', '.join(str(i) for i in data['evicted_ids'])}")


@cli.group()
def versions() -> None:
    """Inspect stored snapshots"""


@versions.command("list")
@click.option("--limit", type=int, help="Show at most this many snapshots")
@store_option
@click.option("--json", "json_output", is_flag=True, help="Print a JSON envelope")
def list_versions(limit: int | None, store_path: Path, json_output: bool) -> None:
    """List snapshots, newest first"""
    started = time.monotonic()
    try:
        result = ListSnapshotsService().run(store_path=store_path, limit=limit)
    except SchemaSnapError as err:
        _exit_with_error(err, command="versions list", started=started, json_output=json_output)

    if json_output:
        _emit_json(result, command="versions list", started=started)
        return

    snapshots = result.data["snapshots"]
    if not snapshots:
        console.print("[yellow]No snapshots stored[/yellow]")
        return

    table = Table(title="Snapshots")
    table.add_column("ID", justify="right")
    table.add_column("Created")
    table.add_column("Hash")
    table.add_column("Size", justify="right")
    table.add_column("Lines", justify="right")
    table.add_column("Mode")
    table.add_column("Files", justify="right")
    for snapshot in snapshots:
        table.add_row(
            str(snapshot["id"]),
            snapshot["created_at"],
            snapshot["content_hash"][:12],
            str(snapshot["content_size"]),
            str(snapshot["line_count"]),
            snapshot["output_mode"],
            "" if snapshot["file_count"] is None else str(snapshot["file_count"]),
        )
    console.print(table)


@versions.command("show")
@click.argument("snapshot_id", type=int)
@store_option
@click.option("--json", "json_output", is_flag=True, help="Print a JSON envelope")
def show_version(snapshot_id: int, store_path: Path, json_output: bool) -> None:
    """Print one snapshot's SQL"""
    started = time.monotonic()
    try:
        result = ShowSnapshotService().run(store_path=store_path, snapshot_id=snapshot_id)
    except SchemaSnapError as err:
        _exit_with_error(err, command="versions show", started=started, json_output=json_output)

    if json_output:
        _emit_json(result, command="versions show", started=started)
    elif not result.success:
        err_console.print(f"[red]✗ Error:[/red] {result.message}")
    else:
        console.print(Syntax(result.data["content"], "sql", theme="monokai", line_numbers=False))
    if not result.success:
        sys.exit(1)


@versions.command("extract")
@click.argument("snapshot_id", type=int)
@click.argument("directory", type=click.Path(path_type=Path))
@store_option
def extract_version(snapshot_id: int, directory: Path, store_path: Path) -> None:
    """Write a snapshot's files into DIRECTORY"""
    started = time.monotonic()
    try:
        result = ExtractSnapshotService().run(
            store_path=store_path, snapshot_id=snapshot_id, directory=directory
        )
    except SchemaSnapError as err:
        _exit_with_error(err, command="versions extract", started=started, json_output=False)

    if not result.success:
        err_console.print(f"[red]✗ Error:[/red] {result.message}")
        sys.exit(1)
    console.print(f"[green]✓[/green] {result.message}")


def main() -> None:
    """Main entry point"""
    cli()


if __name__ == "__main__":
    main()
