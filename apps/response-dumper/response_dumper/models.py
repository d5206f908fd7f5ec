"""Runtime and fixture models for response dumps."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigurationError

if TYPE_CHECKING:
    from .registry import DumpBlock, DumperDefinition

DEFAULT_DUMPS_DIR = Path("dumps")
DEFAULT_DUMPER_GLOB = "dumpers/**/*.py"
RANDOM_ORDER = "random"


@dataclass
class ExchangeRecord:
    """One observed request/response pair."""

    method: str
    url: str
    request_body: bytes
    status: int
    status_text: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


@dataclass
class WorkItem:
    """A (definition, block) pair, the unit of execution and ordering."""

    definition: DumperDefinition
    block: DumpBlock

    @property
    def name(self) -> str:
        return f"{self.definition.name}.{self.block.name}"

    @property
    def location(self) -> str:
        return self.block.location


@dataclass
class RunError:
    name: str
    location: str
    exception: BaseException


@dataclass
class RunResult:
    """Aggregate outcome of a dump run."""

    attempted: int = 0
    errors: list[RunError] = field(default_factory=list)
    executed: list[str] = field(default_factory=list)
    seed: Optional[int] = None

    @property
    def exit_code(self) -> int:
        return 1 if self.errors else 0

    @property
    def succeeded(self) -> bool:
        return not self.errors


class DumpOptions(BaseModel):
    """Recognized run configuration."""

    dumps_dir: Path = DEFAULT_DUMPS_DIR
    filenames: list[str] = Field(default_factory=list)
    order: Optional[str] = None
    verbose: bool = False
    fail_fast: bool = False
    exclude_response_headers: bool = False
    root: Path = Path(".")

    def resolve_seed(self) -> int | None:
        """Return the shuffle seed, or None when the declared order is kept."""

        if self.order is None or not self.order.strip():
            return None
        value = self.order.strip()
        if value.lower() == RANDOM_ORDER:
            return secrets.randbits(64)
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigurationError(
                f"order must be '{RANDOM_ORDER}' or an integer seed, got {self.order!r}"
            ) from exc


class FixtureRequest(BaseModel):
    method: str
    url: str
    body: str


class FixtureResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: int
    status_text: str = Field(alias="statusText")
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None


class Fixture(BaseModel):
    """Persisted JSON document for one exchange."""

    request: FixtureRequest
    response: FixtureResponse

    @classmethod
    def from_exchange(cls, exchange: ExchangeRecord) -> "Fixture":
        return cls(
            request=FixtureRequest(
                method=exchange.method,
                url=exchange.url,
                body=_decode(exchange.request_body),
            ),
            response=FixtureResponse(
                status=exchange.status,
                status_text=exchange.status_text,
                headers=dict(exchange.headers),
                body=_decode(exchange.body),
            ),
        )

    def as_serializable(self, *, include_headers: bool = True) -> dict[str, Any]:
        exclude = None if include_headers else {"response": {"headers"}}
        return self.model_dump(mode="json", by_alias=True, exclude=exclude)


def _decode(payload: bytes | str | None) -> str:
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    return payload.decode("utf-8", errors="replace")
