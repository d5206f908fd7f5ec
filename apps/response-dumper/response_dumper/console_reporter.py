"""Console reporter for dump runs: per-item markers and the failure digest."""

from __future__ import annotations

import os
import sys
import traceback
from typing import IO, Optional

from rich.console import Console
from rich.text import Text

from .models import RunError, RunResult, WorkItem
from .output_config import OutputFormat


def print_color(console: Console, text: str, color: str) -> None:
    """Write ``text`` to ``console`` in ``color`` without a trailing newline."""

    console.print(Text(text, style=color), end="", soft_wrap=True, highlight=False)


def _use_color(output_format: OutputFormat, stream: IO[str]) -> bool:
    if output_format == OutputFormat.RICH:
        return True
    if output_format == OutputFormat.PLAIN:
        return False
    is_terminal = hasattr(stream, "isatty") and stream.isatty()
    is_ci = any(name in os.environ for name in ("CI", "JENKINS_HOME", "GITLAB_CI", "TRAVIS"))
    return is_terminal and not is_ci


class ConsoleReporter:
    """Prints run progress and the end-of-run failure digest."""

    def __init__(
        self,
        output_format: OutputFormat = OutputFormat.AUTO,
        *,
        verbose: bool = False,
        stream: Optional[IO[str]] = None,
    ) -> None:
        self.verbose = verbose
        stream = stream or sys.stdout
        color = _use_color(output_format, stream)
        self.console = Console(
            file=stream,
            force_terminal=color,
            no_color=not color,
            highlight=False,
            markup=False,
            emoji=False,
            width=200,
        )

    def report_seed(self, seed: int) -> None:
        self.console.print(f"Randomized with seed {seed}")

    def report_item_start(self, item: WorkItem) -> None:
        if self.verbose:
            self.console.print(f"{item.name} ", end="", soft_wrap=True)

    def report_item_result(self, item: WorkItem, passed: bool) -> None:
        if passed:
            print_color(self.console, ".", "green")
        else:
            print_color(self.console, "F", "red")
        if self.verbose:
            self.console.print()

    def finish(self, result: RunResult) -> int:
        """Print the failure digest and return the process exit code."""

        self.console.print()
        if result.succeeded:
            return result.exit_code

        self.console.print()
        for error in result.errors:
            self.report_error(error)
        return result.exit_code

    def report_error(self, error: RunError) -> None:
        exc = error.exception
        summary = "".join(traceback.format_exception_only(type(exc), exc)).strip()
        print_color(self.console, f"{error.location} {error.name} received {summary}\n", "red")
        for line in traceback.format_exception(type(exc), exc, exc.__traceback__):
            for part in line.splitlines(keepends=True):
                print_color(self.console, part, "cyan")
        self.console.print()
