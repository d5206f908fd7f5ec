"""Dump execution engine."""

from __future__ import annotations

import random
import shutil
from fnmatch import fnmatch
from typing import Any, Callable, Iterable, Optional, Sequence

import structlog

from .console_reporter import ConsoleReporter
from .dumper import Dumper
from .errors import (
    BodyFailure,
    DumpError,
    HookFailure,
    ResponseCountMismatch,
    SetupFailure,
    StatusMismatch,
    TeardownFailure,
)
from .isolation import Isolation, NullIsolation
from .loader import expand_globs
from .models import DumpOptions, ExchangeRecord, RunError, RunResult, WorkItem
from .registry import DumpBlock, DumperDefinition
from .writer import FixtureWriter, definition_dir

LOGGER = structlog.get_logger("response_dumper")


class DumpRunner:
    """Runs dump blocks one at a time and persists their exchanges as fixtures."""

    def __init__(
        self,
        options: DumpOptions,
        *,
        isolation: Optional[Isolation] = None,
        reporter: Optional[ConsoleReporter] = None,
    ) -> None:
        self.options = options
        self.isolation = isolation or NullIsolation()
        self.reporter = reporter or ConsoleReporter(verbose=options.verbose)
        self.writer = FixtureWriter(
            options.dumps_dir,
            include_headers=not options.exclude_response_headers,
        )

    def run(self, definitions: Iterable[DumperDefinition]) -> RunResult:
        seed = self.options.resolve_seed()
        selected = self.select_definitions(definitions)
        self.prepare_output(selected)

        items = build_work_items(selected)
        if seed is not None:
            self.reporter.report_seed(seed)
            shuffle_work_items(items, seed)

        LOGGER.info("dump_run_started", items=len(items), seed=seed, fail_fast=self.options.fail_fast)
        result = RunResult(seed=seed)
        for item in items:
            result.attempted += 1
            result.executed.append(item.name)
            self.reporter.report_item_start(item)
            LOGGER.debug("work_item_started", item=item.name)
            try:
                exchanges = self.execute(item)
                validate_exchanges(item.block, exchanges)
                self.writer.write(item, exchanges)
            except Exception as exc:
                result.errors.append(RunError(name=item.name, location=item.location, exception=exc))
                self.reporter.report_item_result(item, passed=False)
                LOGGER.info("work_item_failed", item=item.name, error=str(exc))
                if self.options.fail_fast:
                    break
                continue
            self.reporter.report_item_result(item, passed=True)
            LOGGER.debug("work_item_succeeded", item=item.name, responses=len(exchanges))

        LOGGER.info("dump_run_finished", attempted=result.attempted, errors=len(result.errors))
        return result

    def select_definitions(self, definitions: Iterable[DumperDefinition]) -> list[DumperDefinition]:
        definitions = list(definitions)
        patterns = self.options.filenames
        if not patterns:
            return definitions
        sources = set(expand_globs(patterns, self.options.root))
        return [
            definition
            for definition in definitions
            if definition.source in sources
            or any(fnmatch(definition.name, pattern) for pattern in patterns)
        ]

    def prepare_output(self, selected: Sequence[DumperDefinition]) -> None:
        dumps_dir = self.options.dumps_dir
        if self.options.filenames:
            # Only the rerun definitions lose their previous dumps.
            for definition in selected:
                target = definition_dir(dumps_dir, definition.name)
                if target.exists():
                    shutil.rmtree(target)
                    LOGGER.info("dump_output_cleared", path=str(target))
        elif dumps_dir.exists():
            shutil.rmtree(dumps_dir)
            LOGGER.info("dump_output_cleared", path=str(dumps_dir))
        dumps_dir.mkdir(parents=True, exist_ok=True)

    def execute(self, item: WorkItem) -> list[ExchangeRecord]:
        """Run one item's hooks and body, returning the exchanges it recorded."""

        definition = item.definition
        try:
            definition.reset_models()
            dumper = definition.klass()
            dumper.mock_setup()
        except Exception as exc:
            raise SetupFailure(f"setup raised {type(exc).__name__}: {exc}") from exc

        _run_with_cleanup(
            lambda: self._run_isolated(dumper, item),
            lambda: _invoke(TeardownFailure, "mock teardown", dumper.mock_teardown),
            item=item,
            stage="mock_teardown",
        )
        return list(dumper.responses)

    def _run_isolated(self, dumper: Dumper, item: WorkItem) -> None:
        definition, block = item.definition, item.block
        with self.isolation.isolated() as connection:
            dumper.connection = connection
            if definition.before is not None:
                _invoke(HookFailure, "before hook", definition.before, dumper)
            after = definition.after
            if after is None:
                _invoke(BodyFailure, "dump block", block.func, dumper)
                return
            _run_with_cleanup(
                lambda: _invoke(BodyFailure, "dump block", block.func, dumper),
                lambda: _invoke(HookFailure, "after hook", after, dumper),
                item=item,
                stage="after_hook",
            )


def build_work_items(definitions: Iterable[DumperDefinition]) -> list[WorkItem]:
    return [WorkItem(definition, block) for definition in definitions for block in definition.blocks]


def shuffle_work_items(items: list[WorkItem], seed: int) -> None:
    random.Random(seed).shuffle(items)


def validate_exchanges(block: DumpBlock, exchanges: Sequence[ExchangeRecord]) -> None:
    expected = block.expected_status_codes
    if len(exchanges) != len(expected):
        raise ResponseCountMismatch(len(exchanges), len(expected))
    for index, (exchange, code) in enumerate(zip(exchanges, expected)):
        if exchange.status != code:
            raise StatusMismatch(index, exchange.status, exchange.status_text, code)


def _invoke(kind: type[DumpError], label: str, func: Callable[..., Any], *args: Any) -> Any:
    try:
        return func(*args)
    except DumpError:
        raise
    except Exception as exc:
        raise kind(f"{label} raised {type(exc).__name__}: {exc}") from exc


def _run_with_cleanup(
    action: Callable[[], Any],
    cleanup: Callable[[], Any],
    *,
    item: WorkItem,
    stage: str,
) -> None:
    """Run ``action`` then ``cleanup``; an earlier error wins over a cleanup error."""

    try:
        action()
    except BaseException:
        try:
            cleanup()
        except Exception:
            LOGGER.warning("cleanup_failed", item=item.name, stage=stage, exc_info=True)
        raise
    cleanup()
