"""File loggers for the engine and the CLI.

Loggers are built with ``structlog.wrap_logger`` around a private stdlib logger
that owns a rotating file handler, so creating one never touches the global
structlog or logging configuration.
"""

import logging
from logging.handlers import RotatingFileHandler
from os import getenv
from pathlib import Path
from typing import TYPE_CHECKING, Literal, cast

import structlog

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from reqctl.config import LoggingConfig

__all__ = ["DEFAULT_LOG_FILE", "LogFormatType", "create_cli_logger", "create_logger"]

LogFormatType = Literal["json", "text"]

DEFAULT_LOG_FILE = Path(".reqctl") / "logs" / "reqctl.log"

_DEFAULT_MAX_BYTES = 5 * 1024 * 1024
_DEFAULT_BACKUP_COUNT = 3


def _log_level_from_string(level: str, *, respect_env: bool = True) -> int:
    """Convert a log level string to a logging level integer.

    REQCTL_DEBUG forces DEBUG. Otherwise REQCTL_LOG_LEVEL, when set, wins
    over `level`.

    Args:
        level: Log level string (debug, info, warning, error).
        respect_env: Whether the environment may override `level`.

    Returns:
        The logging level as an integer.
    """
    if respect_env and getenv("REQCTL_DEBUG", None):
        return logging.DEBUG

    if respect_env:
        level = getenv("REQCTL_LOG_LEVEL", level)

    log_levels = logging.getLevelNamesMapping()
    return log_levels.get(level.upper(), logging.INFO)


def create_logger(
    log_file_path: str | Path,
    *,
    log_level: int = logging.INFO,
    log_format: LogFormatType = "json",
    max_bytes: int = _DEFAULT_MAX_BYTES,
    backup_count: int = _DEFAULT_BACKUP_COUNT,
) -> "FilteringBoundLogger":  # noqa: UP037
    """Build a filtering structlog logger that appends to a rotating file.

    Args:
        log_file_path: Path to the log file (rotated at `max_bytes`).
        log_level: Minimum level that is written.
        log_format: Output format, either "json" or "text".
        max_bytes: Maximum size in bytes before rotation.
        backup_count: Number of rotated log files to keep.

    Returns:
        A configured FilteringBoundLogger instance.
    """
    log_path = Path(log_file_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    stdlib_logger = logging.getLogger(f"reqctl.{log_path.stem}.{id(log_path)}")
    stdlib_logger.handlers.clear()
    stdlib_logger.propagate = False
    stdlib_logger.setLevel(log_level)

    handler = RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count
    )
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    stdlib_logger.addHandler(handler)

    processors: list[structlog.typing.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if log_format == "json":
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    return cast(
        "FilteringBoundLogger",
        structlog.wrap_logger(
            stdlib_logger,
            processors=processors,
            wrapper_class=structlog.make_filtering_bound_logger(log_level),
            context_class=dict,
        ),
    )


def create_cli_logger(
    config: "LoggingConfig",  # noqa: UP037
    *,
    command: str = "",
    project_id: str = "",
) -> "FilteringBoundLogger":  # noqa: UP037
    """Create a logger for CLI commands.

    Writes to `config.file`, or to `.reqctl/logs/reqctl.log` when it is
    empty, and binds the command name and project to every entry.

    Args:
        config: Logging configuration section.
        command: Name of the CLI command for context.
        project_id: Project the command operates on.

    Returns:
        A FilteringBoundLogger instance configured for CLI logging.
    """
    logger = create_logger(
        config.file or DEFAULT_LOG_FILE,
        log_level=_log_level_from_string(config.level),
        log_format="json" if config.format == "json" else "text",
    )

    context: dict[str, str] = {}
    if command:
        context["command"] = command
    if project_id:
        context["project_id"] = project_id
    return logger.bind(**context) if context else logger
