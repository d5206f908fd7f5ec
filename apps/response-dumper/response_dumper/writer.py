"""Fixture persistence for validated exchanges."""

from __future__ import annotations

import json
import re
import shutil
from pathlib import Path
from typing import Any, Sequence

from .models import ExchangeRecord, Fixture, WorkItem

_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_WORD_BOUNDARY = re.compile(r"([a-z\d])([A-Z])")
_SEPARATORS = re.compile(r"[\s\-]+")


def slugify(name: str) -> str:
    """Underscore a definition name: ``AdminUsers`` -> ``admin_users``.

    ``::`` and ``.`` namespace separators become directory separators.
    """

    parts = re.split(r"::|\.", name)
    slugs = []
    for part in parts:
        value = _ACRONYM_BOUNDARY.sub(r"\1_\2", part)
        value = _WORD_BOUNDARY.sub(r"\1_\2", value)
        value = _SEPARATORS.sub("_", value)
        slugs.append(value.lower())
    return "/".join(slug for slug in slugs if slug)


def definition_dir(dumps_dir: Path, definition_name: str) -> Path:
    return dumps_dir / slugify(definition_name)


class FixtureWriter:
    """Writes one JSON fixture per exchange under the item's block directory."""

    def __init__(self, dumps_dir: Path, *, include_headers: bool = True) -> None:
        self.dumps_dir = dumps_dir
        self.include_headers = include_headers

    def block_dir(self, item: WorkItem) -> Path:
        return definition_dir(self.dumps_dir, item.definition.name) / item.block.name

    def write(self, item: WorkItem, exchanges: Sequence[ExchangeRecord]) -> list[Path]:
        target = self.block_dir(item)
        target.mkdir(parents=True, exist_ok=True)
        written = []
        try:
            for index, exchange in enumerate(exchanges):
                payload = Fixture.from_exchange(exchange).as_serializable(
                    include_headers=self.include_headers
                )
                destination = target / f"{index}.json"
                self._write_fixture(destination, payload)
                written.append(destination)
        except Exception:
            # A failed block leaves no partial fixtures behind.
            shutil.rmtree(target, ignore_errors=True)
            raise
        return written

    def _write_fixture(self, destination: Path, payload: dict[str, Any]) -> None:
        destination.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
