"""Console and log output format selection."""

import os
from enum import Enum
from typing import Literal


class OutputFormat(str, Enum):
    """Console output format for run markers and the failure digest."""
    AUTO = "auto"
    RICH = "rich"
    PLAIN = "plain"


LogFormat = Literal["json", "console", "plain"]

ENV_VAR_NAME = "CONSOLE_OUTPUT_FORMAT"


def get_output_format(cli_override: str | None = None) -> OutputFormat:
    """
    Get the output format with priority: CLI parameter > Environment variable > Default (auto).

    Args:
        cli_override: Optional CLI parameter value that takes precedence

    Returns:
        OutputFormat enum value
    """
    for candidate in (cli_override, os.environ.get(ENV_VAR_NAME)):
        if not candidate:
            continue
        try:
            return OutputFormat(candidate.lower())
        except ValueError:
            continue

    return OutputFormat.AUTO


def get_log_format(cli_override: str | None = None) -> LogFormat:
    """
    Map the console output format onto a log format.

    - auto/rich -> console (with colors)
    - plain -> plain (no colors)
    - json (environment only) -> json
    """
    env_value = (os.environ.get(ENV_VAR_NAME) or "").lower()
    if not cli_override and env_value == "json":
        return "json"
    if get_output_format(cli_override) == OutputFormat.PLAIN:
        return "plain"
    return "console"
