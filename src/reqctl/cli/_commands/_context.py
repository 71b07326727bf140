# pyright: reportUnusedCallResult=false
# ruff: noqa: TC002, TC003  # Path and the logger type are needed at runtime
"""Per-invocation state shared by the reqctl commands.

The meta launcher resolves ``--project``, ``--actor`` and ``--data-dir`` once,
stores the result in a context variable and every command reads it back with
:meth:`CLIContext.get_current`.
"""

import contextvars
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from structlog.typing import FilteringBoundLogger

from reqctl.config import Config

DEFAULT_PROJECT = "default"
DEFAULT_ACTOR = "cli"


class OutputFormat(StrEnum):
    """Rendering of command results on stdout."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


_active: "contextvars.ContextVar[CLIContext | None]" = (  # noqa: UP037
    contextvars.ContextVar("reqctl_cli_context", default=None)
)


@dataclass(frozen=True, slots=True)
class CLIContext:
    """Options that apply to every command of one invocation.

    Attributes:
        config: Merged configuration (defaults, files, environment).
        project_id: Project whose records the command reads and writes.
        actor: Name stamped on history entries, links and baselines.
        data_dir: Replaces ``storage.root`` from the configuration when set.
        logger: File logger bound to the command and project.
    """

    config: Config = field(repr=False)
    project_id: str = DEFAULT_PROJECT
    actor: str = DEFAULT_ACTOR
    data_dir: Path | None = None
    logger: FilteringBoundLogger | None = field(default=None, repr=False)

    @classmethod
    def get_current(cls) -> "CLIContext":  # noqa: UP037
        """Return the active context.

        Commands invoked without the meta launcher (for example from tests
        that call a sub-app directly) get the built-in defaults.
        """
        ctx = _active.get()
        return ctx if ctx is not None else cls(config=Config.from_dict({}))

    @classmethod
    def set_current(cls, ctx: "CLIContext") -> None:  # noqa: UP037
        """Make ``ctx`` the context seen by subsequent commands."""
        _active.set(ctx)

    @classmethod
    def reset(cls) -> None:
        """Forget the active context."""
        _active.set(None)
