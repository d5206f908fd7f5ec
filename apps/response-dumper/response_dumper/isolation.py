"""Isolation wrappers that undo backing-state mutations after each block."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Protocol

import structlog

LOGGER = structlog.get_logger("response_dumper")


class Isolation(Protocol):
    def isolated(self) -> Any:
        """Return a context manager scoping one unit of work."""


class NullIsolation:
    """Passthrough used when no transactional backend is configured."""

    @contextmanager
    def isolated(self) -> Iterator[None]:
        yield


class TransactionalIsolation:
    """Runs each unit of work inside a transaction that is always rolled back.

    Works with any DB-API connection; dumpers reach it through ``connection``.
    """

    def __init__(self, connection: Any) -> None:
        self.connection = connection

    @contextmanager
    def isolated(self) -> Iterator[Any]:
        try:
            yield self.connection
        finally:
            self.connection.rollback()
            LOGGER.debug("transaction_rolled_back")

    def close(self) -> None:
        self.connection.close()


def isolation_for(database: Optional[Path] = None) -> NullIsolation | TransactionalIsolation:
    """Pick the transactional wrapper when a database is configured."""

    if database is None:
        return NullIsolation()
    connection = sqlite3.connect(str(database))
    return TransactionalIsolation(connection)
