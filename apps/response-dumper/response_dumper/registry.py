"""Declaration registry for dumper classes and their dump blocks."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Optional, Sequence, Union

from .dumper import Dumper
from .errors import DeclarationError

_BLOCK_ATTR = "__response_dumper_block__"

ModelReset = Callable[[], Any]


@dataclass(frozen=True)
class DumpBlock:
    """A named dump body with the status codes it is expected to produce."""

    name: str
    func: Callable[[Dumper], Any]
    expected_status_codes: tuple[int, ...]
    location: str


@dataclass
class DumperDefinition:
    """A dumper class grouping blocks under shared hooks and model reset."""

    name: str
    klass: type[Dumper]
    blocks: list[DumpBlock] = field(default_factory=list)
    before: Optional[Callable[[Dumper], Any]] = None
    after: Optional[Callable[[Dumper], Any]] = None
    model_resets: list[ModelReset] = field(default_factory=list)
    source: Optional[Path] = None

    def reset_models(self) -> None:
        for reset in self.model_resets:
            reset()


def dump(
    block_name: Union[str, Callable[..., Any], None] = None,
    *,
    status_codes: Sequence[int] = (200,),
) -> Any:
    """Mark a dumper method as a dump block.

    ``status_codes`` lists the expected status of every exchange the block
    produces, in order. Used bare (``@dump``) the block takes the method name
    and expects a single 200.
    """

    if callable(block_name):
        return dump()(block_name)

    codes = tuple(int(code) for code in status_codes)
    if not codes:
        raise DeclarationError("A dump block must expect at least one response")

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        setattr(func, _BLOCK_ATTR, (block_name or func.__name__, codes))
        return func

    return decorator


def _location(func: Callable[..., Any]) -> str:
    code = getattr(func, "__code__", None)
    if code is None:
        return "<unknown>"
    return f"{code.co_filename}:{code.co_firstlineno}"


def _collect_blocks(klass: type[Dumper]) -> list[DumpBlock]:
    found: dict[str, DumpBlock] = {}
    for base in reversed(klass.__mro__):
        declared: set[str] = set()
        for attr in vars(base).values():
            marker = getattr(attr, _BLOCK_ATTR, None)
            if marker is None:
                continue
            block_name, codes = marker
            if block_name in declared:
                raise DeclarationError(
                    f"Dump block {block_name!r} is declared twice in {base.__qualname__}"
                )
            declared.add(block_name)
            found[block_name] = DumpBlock(
                name=block_name,
                func=attr,
                expected_status_codes=codes,
                location=_location(attr),
            )
    return list(found.values())


def _hook(klass: type[Dumper], name: str) -> Optional[Callable[[Dumper], Any]]:
    hook = getattr(klass, name, None)
    return hook if callable(hook) else None


class DumperRegistry:
    """Ordered collection of dumper definitions."""

    def __init__(self) -> None:
        self._definitions: dict[str, DumperDefinition] = {}
        self._source: Optional[Path] = None

    def define(
        self,
        name: Optional[str] = None,
        *,
        reset_models: Union[ModelReset, Iterable[ModelReset], None] = None,
    ) -> Callable[[type[Dumper]], type[Dumper]]:
        """Class decorator registering a Dumper subclass under ``name``."""

        if reset_models is None:
            resets: list[ModelReset] = []
        elif callable(reset_models):
            resets = [reset_models]
        else:
            resets = list(reset_models)

        def decorator(klass: type[Dumper]) -> type[Dumper]:
            if not (isinstance(klass, type) and issubclass(klass, Dumper)):
                raise DeclarationError(f"{klass!r} must subclass Dumper")
            definition_name = name or klass.__name__
            if definition_name in self._definitions:
                raise DeclarationError(f"Dumper {definition_name!r} is already defined")
            blocks = _collect_blocks(klass)
            if not blocks:
                raise DeclarationError(f"Dumper {definition_name!r} declares no dump blocks")
            self._definitions[definition_name] = DumperDefinition(
                name=definition_name,
                klass=klass,
                blocks=blocks,
                before=_hook(klass, "before"),
                after=_hook(klass, "after"),
                model_resets=resets,
                source=self._source,
            )
            return klass

        return decorator

    @contextmanager
    def loading(self, source: Path) -> Iterator[None]:
        """Tag definitions registered inside the block with their source file."""

        previous = self._source
        self._source = source
        _LOADING.append(self)
        try:
            yield
        finally:
            _LOADING.pop()
            self._source = previous

    @property
    def definitions(self) -> list[DumperDefinition]:
        return list(self._definitions.values())

    def clear(self) -> None:
        self._definitions.clear()

    def __len__(self) -> int:
        return len(self._definitions)


REGISTRY = DumperRegistry()
_LOADING: list[DumperRegistry] = []


def define(
    name: Optional[str] = None,
    *,
    reset_models: Union[ModelReset, Iterable[ModelReset], None] = None,
) -> Callable[[type[Dumper]], type[Dumper]]:
    """Register a dumper with the registry currently loading sources, or the default one."""

    target = _LOADING[-1] if _LOADING else REGISTRY
    return target.define(name, reset_models=reset_models)
