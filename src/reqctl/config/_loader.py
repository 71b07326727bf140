# pyright: reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""TOML configuration file loading and merging."""

import json
import os
import tomllib
from pathlib import Path
from typing import Any

from reqctl.config._defaults import DEFAULT_CONFIG
from reqctl.config._models import Config
from reqctl.exceptions import ConfigLoadError

__all__ = [
    "CONFIG_FILE_NAME",
    "ENV_PREFIX",
    "deep_merge",
    "load_config",
    "parse_env_vars",
    "read_toml_file",
]

CONFIG_FILE_NAME = "reqctl.toml"
ENV_PREFIX = "REQCTL_"

# Environment variables read by the logging layer, not config keys.
_RESERVED_ENV_VARS = frozenset({"REQCTL_DEBUG", "REQCTL_LOG_LEVEL"})


def read_toml_file(path: Path) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Read and parse a TOML file.

    Args:
        path: Path to the TOML file.

    Returns:
        Parsed TOML content as dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigLoadError: If the file cannot be parsed.
    """
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Failed to parse TOML file: {e}"
        raise ConfigLoadError(
            msg,
            path=path,
            line=getattr(e, "lineno", None),
            column=getattr(e, "colno", None),
        ) from e


def deep_merge(
    base: dict[str, Any],  # pyright: ignore[reportExplicitAny]
    override: dict[str, Any],  # pyright: ignore[reportExplicitAny]
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Deep merge two configuration dictionaries.

    Merges `override` into `base`, returning a new dictionary. Neither input
    is modified. Nested dictionaries are merged recursively; every other value
    in `override` replaces the one in `base`.

    Args:
        base: Base configuration (lower precedence).
        override: Override configuration (higher precedence).

    Returns:
        Merged configuration dictionary.
    """
    result: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]

    for key in base.keys() | override.keys():
        if key not in override:
            result[key] = _copy_value(base[key])
        elif key not in base:
            result[key] = _copy_value(override[key])
        elif isinstance(base[key], dict) and isinstance(override[key], dict):
            result[key] = deep_merge(base[key], override[key])
        else:
            result[key] = _copy_value(override[key])

    return result


def _copy_value(value: Any) -> Any:  # pyright: ignore[reportExplicitAny]
    if isinstance(value, dict):
        return {k: _copy_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_copy_value(item) for item in value]
    return value


def parse_env_vars(
    prefix: str = ENV_PREFIX,
    environ: dict[str, str] | None = None,
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Parse environment variables into a config dictionary.

    `REQCTL_CONCURRENCY__MAX_RETRIES=5` becomes
    `{"concurrency": {"max_retries": 5}}`.

    Args:
        prefix: Environment variable prefix.
        environ: Environment to read; defaults to `os.environ`.

    Returns:
        Dictionary of parsed config values with nested structure.
    """
    result: dict[str, Any] = {}  # pyright: ignore[reportExplicitAny]
    source = os.environ if environ is None else environ

    for key, value in source.items():
        if not key.startswith(prefix) or key in _RESERVED_ENV_VARS:
            continue

        config_key = key[len(prefix) :]
        if not config_key:
            continue

        config_path = config_key.replace("__", ".").lower()
        _set_nested_key(result, config_path, _parse_value(value))

    return result


def _parse_value(value: str) -> Any:  # pyright: ignore[reportExplicitAny]
    lower_value = value.lower()
    if lower_value in ("true", "false"):
        return lower_value == "true"

    try:
        return int(value)
    except ValueError:
        pass

    if "." in value:
        try:
            return float(value)
        except ValueError:
            pass

    if value.startswith(("[", "{")):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            pass

    return value


def _set_nested_key(
    d: dict[str, Any],  # pyright: ignore[reportExplicitAny]
    key_path: str,
    value: Any,  # pyright: ignore[reportExplicitAny]
) -> None:
    parts = key_path.split(".")
    current = d
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    current[parts[-1]] = value


def load_config(
    path: Path | None = None,
    *,
    include_env: bool = True,
    environ: dict[str, str] | None = None,
) -> Config:
    """Load configuration from defaults, a TOML file and the environment.

    Precedence, lowest first: built-in defaults, the TOML file, then
    `REQCTL_`-prefixed environment variables.

    Args:
        path: Config file. When None, `reqctl.toml` in the working directory is
            used if it exists.
        include_env: Whether environment variables are applied.
        environ: Environment to read instead of `os.environ`.

    Returns:
        Validated configuration.

    Raises:
        FileNotFoundError: If an explicit `path` does not exist.
        ConfigLoadError: If the file cannot be parsed.
        ConfigValidationError: If a value is invalid.
    """
    merged = deep_merge(DEFAULT_CONFIG, {})
    source: str | None = None

    if path is not None:
        merged = deep_merge(merged, read_toml_file(path))
        source = str(path)
    else:
        candidate = Path.cwd() / CONFIG_FILE_NAME
        if candidate.is_file():
            merged = deep_merge(merged, read_toml_file(candidate))
            source = str(candidate)

    if include_env:
        env_values = parse_env_vars(environ=environ)
        if env_values:
            merged = deep_merge(merged, env_values)
            source = f"{source} + environment" if source else "environment"

    return Config.from_dict(merged, source=source)
