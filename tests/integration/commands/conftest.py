from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import orjson
import pytest
from rich.console import Console

from reqctl.cli import create_app
from reqctl.cli._commands._context import CLIContext
from reqctl.config import Config
from reqctl.lifecycle import RequirementsEngine
from reqctl.repository import JsonFileRepository

CLI_ACTOR = "cli-user"


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture(autouse=True)
def cli_context(
    tmp_path: Path,
    data_dir: Path,
    project_id: str,
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[None]:
    """Point every command at a temporary data directory and log file."""
    monkeypatch.chdir(tmp_path)
    config = Config.from_dict({"logging": {"file": str(tmp_path / "reqctl.log")}})
    ctx = CLIContext(
        config=config, project_id=project_id, actor=CLI_ACTOR, data_dir=data_dir
    )
    CLIContext.set_current(ctx)
    yield
    CLIContext.reset()


@pytest.fixture
def engine(data_dir: Path) -> Generator[RequirementsEngine]:
    """Create an engine over the same files the commands use."""
    with RequirementsEngine(JsonFileRepository(data_dir)) as eng:
        yield eng


@pytest.fixture
def reqctl_cli(console: Console) -> Callable[..., None]:
    """Create CLI app for testing.

    Returns a callable that runs the CLI and suppresses SystemExit.
    Use reqctl_cli_with_exit_code when you need to check the exit code.
    """
    app = create_app(console=console, error_console=console)

    def _run(*args: str) -> None:
        try:
            app(args)
        except SystemExit:
            pass

    return _run


@pytest.fixture
def reqctl_cli_with_exit_code(console: Console) -> Callable[..., int]:
    """Create CLI app for testing that returns the exit code."""
    app = create_app(console=console, error_console=console)

    def _run(*args: str) -> int:
        try:
            app(args)
        except SystemExit as e:
            return e.code if isinstance(e.code, int) else 1
        else:
            return 0

    return _run


@pytest.fixture
def reqctl_json(
    reqctl_cli_with_exit_code: Callable[..., int],
    capsys: pytest.CaptureFixture[str],
) -> Callable[..., dict[str, Any]]:
    """Run a command with ``--format json`` and return the parsed output."""

    def _run(*args: str) -> dict[str, Any]:
        _ = capsys.readouterr()
        exit_code = reqctl_cli_with_exit_code(*args, "--format", "json")
        captured = capsys.readouterr()
        assert exit_code == 0, captured.err
        return orjson.loads(captured.out)

    return _run
