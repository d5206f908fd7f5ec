"""Error taxonomy for dump runs."""

from __future__ import annotations


class DumpError(Exception):
    """Base class for failures raised while dumping."""


class ResponseCountMismatch(DumpError):
    """A block produced a different number of exchanges than it declared."""

    def __init__(self, produced: int, expected: int) -> None:
        super().__init__(f"{produced} responses (expected {expected})")
        self.produced = produced
        self.expected = expected


class StatusMismatch(DumpError):
    """An exchange's status code differs from the declared one at the same position."""

    def __init__(self, index: int, status: int, status_text: str, expected: int) -> None:
        super().__init__(
            f"unexpected status code {status} {status_text} (expected {expected}) at response {index}"
        )
        self.index = index
        self.status = status
        self.status_text = status_text
        self.expected = expected


class HookFailure(DumpError):
    """A before or after hook raised."""


class BodyFailure(DumpError):
    """The dump block body raised."""


class SetupFailure(DumpError):
    """Model reset or mock setup raised."""


class TeardownFailure(DumpError):
    """Mock teardown raised after an otherwise successful block."""


class ConfigurationError(ValueError):
    """Invalid run configuration, fatal before any block runs."""


class DeclarationError(ValueError):
    """Invalid dumper declaration."""


class DumperLoadError(RuntimeError):
    """A dumper source file could not be loaded."""
