"""Shared utilities."""

from reqctl.utils._logging import (
    DEFAULT_LOG_FILE,
    LogFormatType,
    create_cli_logger,
    create_logger,
)

__all__ = ["DEFAULT_LOG_FILE", "LogFormatType", "create_cli_logger", "create_logger"]
