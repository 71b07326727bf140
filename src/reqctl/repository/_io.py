# pyright: reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""File I/O helpers for JSON project documents.

Writes go to a temporary file in the target directory which is then renamed
over the destination, so a reader sees either the old or the new document.
"""

import tempfile
from pathlib import Path
from typing import Any

import orjson

from reqctl.exceptions import RepositoryIOError, RepositoryParseError

__all__ = ["read_json", "write_json_atomic"]


def _atomic_write(path: Path, content: bytes) -> None:
    """Write content to a file atomically.

    Args:
        path: Destination file path.
        content: Bytes to write.

    Raises:
        RepositoryIOError: If the write operation fails.
    """
    _ = path.parent.mkdir(parents=True, exist_ok=True)

    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            _ = f.write(content)
            temp_path = Path(f.name)

        # Path.replace() is atomic on both POSIX and Windows
        _ = temp_path.replace(path)

    except OSError as e:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        msg = f"Failed to write file: {e}"
        raise RepositoryIOError(msg, path=path, operation="write", cause=e) from e


def read_json(
    path: Path,
) -> dict[str, Any]:  # pyright: ignore[reportExplicitAny]
    """Read and parse a JSON file.

    Args:
        path: Path to the JSON file.

    Returns:
        The parsed JSON data as a dictionary.

    Raises:
        RepositoryIOError: If the file cannot be read.
        RepositoryParseError: If the content is not a JSON object.
    """
    try:
        content = path.read_bytes()
    except OSError as e:
        msg = f"Failed to read file: {e}"
        raise RepositoryIOError(msg, path=path, operation="read", cause=e) from e

    try:
        data = orjson.loads(content)
    except orjson.JSONDecodeError as e:
        msg = f"Invalid JSON: {e}"
        raise RepositoryParseError(msg, path=path, line=e.lineno, cause=e) from e

    if not isinstance(data, dict):
        msg = f"Expected JSON object, got {type(data).__name__}"
        raise RepositoryParseError(msg, path=path)

    return data


def write_json_atomic(
    path: Path,
    data: dict[str, Any],  # pyright: ignore[reportExplicitAny]
) -> None:
    """Write a dictionary as indented JSON atomically.

    Args:
        path: Destination file path.
        data: Dictionary to serialize as JSON.

    Raises:
        RepositoryIOError: If serialization or the write fails.
    """
    try:
        content = orjson.dumps(
            data,
            option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS,
        )
    except TypeError as e:
        msg = f"Failed to serialize JSON: {e}"
        raise RepositoryIOError(msg, path=path, operation="write", cause=e) from e

    _atomic_write(path, content)
