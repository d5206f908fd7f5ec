"""CLI entrypoint for response-dumper."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer

if __package__ in {None, ""}:
    sys.path.append(str(Path(__file__).resolve().parents[1]))
    __package__ = "response_dumper"

from .console_reporter import ConsoleReporter
from .errors import ConfigurationError, DumperLoadError
from .isolation import TransactionalIsolation, isolation_for
from .loader import load_dumpers
from .logging_utils import configure_logging
from .models import DEFAULT_DUMPER_GLOB, DEFAULT_DUMPS_DIR, DumpOptions
from .output_config import get_log_format, get_output_format
from .registry import REGISTRY
from .runner import DumpRunner

app = typer.Typer(help="Execute dumpers and write their HTTP exchanges as JSON fixtures.")


@app.command()
def dump(
    filenames: Optional[list[str]] = typer.Argument(
        None,
        help="Glob patterns of dumper files to run; only their previous dumps are cleared.",
    ),
    dumps_dir: Path = typer.Option(
        DEFAULT_DUMPS_DIR,
        "--dumps-dir",
        help="Output root for fixture files.",
    ),
    root: Path = typer.Option(
        Path("."),
        help="Project root that dumper globs are resolved against.",
    ),
    order: Optional[str] = typer.Option(
        None,
        help="Run order: omit for declared order, 'random' for a fresh seed, or an integer seed.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print each dumper name as it runs."),
    fail_fast: bool = typer.Option(False, "--fail-fast", help="Stop on the first failing dumper."),
    exclude_response_headers: bool = typer.Option(
        False,
        "--exclude-response-headers",
        help="Omit response headers from fixture files.",
    ),
    database: Optional[Path] = typer.Option(
        None,
        help="SQLite database rolled back after every dump block.",
    ),
    output_format: Optional[str] = typer.Option(
        None,
        "--output-format",
        help="Console output: auto, rich or plain (overrides CONSOLE_OUTPUT_FORMAT).",
    ),
    log_level: str = typer.Option("WARNING", help="Log level for structured logs on stderr."),
) -> None:
    """Run dumpers and write one fixture per recorded exchange."""

    configure_logging(log_level, get_log_format(output_format))

    options = DumpOptions(
        dumps_dir=dumps_dir,
        filenames=list(filenames or []),
        order=order,
        verbose=verbose,
        fail_fast=fail_fast,
        exclude_response_headers=exclude_response_headers,
        root=root,
    )
    try:
        options.resolve_seed()
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc), param_hint="--order") from exc

    REGISTRY.clear()
    try:
        definitions = load_dumpers(options.filenames or [DEFAULT_DUMPER_GLOB], options.root)
    except DumperLoadError as exc:
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from exc

    reporter = ConsoleReporter(get_output_format(output_format), verbose=options.verbose)
    isolation = isolation_for(database)
    try:
        result = DumpRunner(options, isolation=isolation, reporter=reporter).run(definitions)
    finally:
        if isinstance(isolation, TransactionalIsolation):
            isolation.close()

    raise typer.Exit(code=reporter.finish(result))


def run() -> None:
    """Console_scripts hook."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
