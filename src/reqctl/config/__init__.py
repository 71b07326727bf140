"""Configuration loading for reqctl."""

from reqctl.config._loader import (
    CONFIG_FILE_NAME,
    ENV_PREFIX,
    deep_merge,
    load_config,
    parse_env_vars,
    read_toml_file,
)
from reqctl.config._models import (
    ConcurrencyConfiguration,
    Config,
    LogFormat,
    LoggingConfig,
    LogLevel,
    NumberingConfiguration,
    StorageConfiguration,
)

__all__ = [
    "CONFIG_FILE_NAME",
    "ENV_PREFIX",
    "ConcurrencyConfiguration",
    "Config",
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "NumberingConfiguration",
    "StorageConfiguration",
    "deep_merge",
    "load_config",
    "parse_env_vars",
    "read_toml_file",
]
