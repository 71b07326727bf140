# pyright: reportExplicitAny=false
"""Exit codes, serializers and console plumbing for the reqctl commands.

Every command renders one dictionary per invocation. JSON and YAML output is
produced here so that enum members, tag sets and timestamps look the same in
both formats; table output is assembled in ``_output`` on top of
:func:`format_table`.
"""

from collections.abc import Sequence
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Never

import orjson
import yaml
from pytablewriter import MarkdownTableWriter
from rich.console import Console

# Command payloads are plain dictionaries built by the ``*_to_dict`` helpers
FormattableData = dict[str, Any]

__all__ = [
    "ExitCode",
    "FormattableData",
    "exit_with_error",
    "exit_with_success",
    "format_json",
    "format_table",
    "format_yaml",
    "get_error_console",
]


class ExitCode(IntEnum):
    """Process exit status of a reqctl command.

    Each family of engine errors has its own code so scripts can tell an
    illegal workflow move apart from a stale write or a missing record.
    """

    SUCCESS = 0
    LOAD_ERROR = 1
    VALIDATION_ERROR = 2
    NOT_FOUND = 3
    IO_ERROR = 4
    INTERNAL_ERROR = 5
    CONFLICT = 6
    INVALID_TRANSITION = 7


def _json_default(value: object) -> object:
    if isinstance(value, (set, frozenset)):
        return sorted(value)  # pyright: ignore[reportUnknownArgumentType]
    msg = f"Cannot serialize {type(value).__name__} as JSON"
    raise TypeError(msg)


def format_json(data: FormattableData, *, indent: bool = True) -> str:
    """Serialize a command payload as JSON.

    orjson handles datetimes and string enums natively; sets are emitted as
    sorted lists so tag output is stable between runs.

    Args:
        data: Payload to serialize.
        indent: Pretty-print with two-space indentation.

    Returns:
        The JSON document.
    """
    option = orjson.OPT_INDENT_2 if indent else 0
    return orjson.dumps(data, default=_json_default, option=option).decode("utf-8")


class _PayloadDumper(yaml.SafeDumper):
    """Safe dumper that also knows the value types found in payloads."""


def _represent_enum(dumper: yaml.SafeDumper, value: Enum) -> yaml.Node:
    return dumper.represent_data(value.value)


def _represent_set(dumper: yaml.SafeDumper, value: frozenset[Any]) -> yaml.Node:
    return dumper.represent_list(sorted(value))


def _represent_datetime(dumper: yaml.SafeDumper, value: datetime) -> yaml.Node:
    return dumper.represent_str(value.isoformat())


_PayloadDumper.add_multi_representer(Enum, _represent_enum)
_PayloadDumper.add_representer(set, _represent_set)
_PayloadDumper.add_representer(frozenset, _represent_set)
_PayloadDumper.add_representer(datetime, _represent_datetime)


def format_yaml(data: FormattableData) -> str:
    """Serialize a command payload as YAML, keeping the payload's key order."""
    return yaml.dump(
        data,
        Dumper=_PayloadDumper,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
    )


def format_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    """Render rows as a Markdown table with one space of cell padding."""
    writer = MarkdownTableWriter(
        headers=list(headers),
        value_matrix=[list(row) for row in rows],
        margin=1,
    )
    return writer.dumps()


def get_error_console() -> Console:
    """Return a console bound to stderr for status and error messages."""
    return Console(stderr=True)


def exit_with_error(
    message: str,
    code: ExitCode = ExitCode.INTERNAL_ERROR,
    *,
    console: Console | None = None,
) -> Never:
    """Report a failed command on stderr and terminate.

    Args:
        message: Human readable reason, usually the engine error text.
        code: Exit status for the failure family.
        console: Console to print on; stderr when omitted.

    Raises:
        SystemExit: Always, carrying ``code``.
    """
    out = console if console is not None else get_error_console()
    out.print(f"[red]Error:[/red] {message}", highlight=False)
    raise SystemExit(code)


def exit_with_success(
    message: str | None = None,
    *,
    console: Console | None = None,
) -> Never:
    """Print an optional status line on stderr and terminate with success."""
    if message is not None:
        out = console if console is not None else get_error_console()
        out.print(message)
    raise SystemExit(ExitCode.SUCCESS)
