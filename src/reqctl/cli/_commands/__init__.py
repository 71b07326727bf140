"""reqctl CLI commands."""
# pyright: reportUnusedCallResult=false

from cyclopts import App

from ._baseline import app as baseline_app
from ._context import CLIContext, OutputFormat
from ._req import app as req_app
from ._rfc import app as rfc_app
from ._shared import (
    ExitCode,
    FormattableData,
    exit_with_error,
    exit_with_success,
    format_json,
    format_table,
    format_yaml,
    get_error_console,
)
from ._trace import app as trace_app

__all__ = [
    "CLIContext",
    "ExitCode",
    "FormattableData",
    "OutputFormat",
    "baseline_app",
    "exit_with_error",
    "exit_with_success",
    "format_json",
    "format_table",
    "format_yaml",
    "get_error_console",
    "register_commands",
    "req_app",
    "rfc_app",
    "trace_app",
]


def register_commands(app: App) -> None:
    app.command(req_app)
    app.command(baseline_app)
    app.command(rfc_app)
    app.command(trace_app)
