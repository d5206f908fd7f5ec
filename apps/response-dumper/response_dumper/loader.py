"""Dumper source discovery and loading."""

from __future__ import annotations

import hashlib
import importlib.util
import sys
from pathlib import Path
from typing import Iterable

from .errors import DumperLoadError
from .registry import REGISTRY, DumperDefinition, DumperRegistry


def expand_globs(patterns: Iterable[str], root: Path) -> list[Path]:
    """Resolve glob patterns relative to ``root`` into a sorted list of files."""

    files: set[Path] = set()
    for pattern in patterns:
        candidate = Path(pattern)
        if candidate.is_absolute():
            base, relative = Path(candidate.anchor), str(candidate.relative_to(candidate.anchor))
        else:
            base, relative = root, pattern
        files.update(path.resolve() for path in base.glob(relative) if path.is_file())
    return sorted(files)


def load_dumpers(
    patterns: Iterable[str],
    root: Path,
    registry: DumperRegistry = REGISTRY,
) -> list[DumperDefinition]:
    """Import every dumper source matching ``patterns`` into ``registry``."""

    for path in expand_globs(patterns, root):
        _load_file(path, registry)
    return registry.definitions


def _load_file(path: Path, registry: DumperRegistry) -> None:
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
    module_name = f"response_dumper_dumpers_{path.stem}_{digest}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise DumperLoadError(f"Cannot load dumper file {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        with registry.loading(path):
            spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(module_name, None)
        raise DumperLoadError(f"Failed to load dumper file {path}: {exc}") from exc
