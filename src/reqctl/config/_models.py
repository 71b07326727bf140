"""Configuration models.

All sections are frozen pydantic models; unknown keys are ignored so that a
config file written for a newer release still loads.
"""

from enum import StrEnum
from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from reqctl.exceptions import ConfigValidationError

__all__ = [
    "ConcurrencyConfiguration",
    "Config",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "NumberingConfiguration",
    "StorageConfiguration",
]


class LogLevel(StrEnum):
    """Log level threshold."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogFormat(StrEnum):
    """Log output format."""

    JSON = "json"
    TEXT = "text"


class LoggingConfig(BaseModel):
    """Logging configuration section.

    Attributes:
        level: Log level threshold.
        format: Log output format.
        file: Path to log file (empty uses the default log file).
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    file: str = ""


class NumberingConfiguration(BaseModel):
    """Display identifier numbering configuration."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    requirement_prefix: str = Field(
        default="REQ",
        pattern=r"^[A-Z][A-Z0-9]*$",
        description="Prefix of requirement display identifiers.",
    )
    change_request_prefix: str = Field(
        default="RFC",
        pattern=r"^[A-Z][A-Z0-9]*$",
        description="Prefix of change request display identifiers.",
    )
    digits: int = Field(
        default=4,
        ge=1,
        le=8,
        description="Number of digits for identifiers (zero-padded).",
    )


class ConcurrencyConfiguration(BaseModel):
    """Optimistic concurrency settings."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    max_retries: int = Field(
        default=3,
        ge=0,
        le=20,
        description="Automatic retries after a concurrency conflict.",
    )


class StorageConfiguration(BaseModel):
    """Project storage settings."""

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    path: str = Field(
        default=".reqctl/projects",
        min_length=1,
        description="Directory holding one JSON document per project.",
    )


class Config(BaseModel):
    """Top-level configuration.

    Attributes:
        logging: Logging section.
        numbering: Display identifier section.
        concurrency: Optimistic concurrency section.
        storage: Storage section.
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True, extra="ignore")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    numbering: NumberingConfiguration = Field(default_factory=NumberingConfiguration)
    concurrency: ConcurrencyConfiguration = Field(
        default_factory=ConcurrencyConfiguration
    )
    storage: StorageConfiguration = Field(default_factory=StorageConfiguration)

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],  # pyright: ignore[reportExplicitAny]
        *,
        source: str | None = None,
    ) -> Self:
        """Create configuration from a dictionary.

        Args:
            data: Dictionary of configuration values.
            source: Where the values came from, for error messages.

        Returns:
            Validated configuration.

        Raises:
            ConfigValidationError: If any value is invalid. Only the first
                problem is reported.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            error = e.errors()[0]
            key = ".".join(str(part) for part in error["loc"])
            msg = f"Invalid configuration value for '{key}': {error['msg']}"
            raise ConfigValidationError(
                msg,
                key=key,
                value=error.get("input"),
                expected=error["msg"],
                source=source,
            ) from e
