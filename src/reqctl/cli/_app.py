"""The command-line interface for reqctl."""
# ruff: noqa: TC003  # Path needed at runtime for cyclopts parameter parsing

from pathlib import Path
from typing import Annotated

from cyclopts import App, Parameter
from rich.console import Console

from reqctl.config import load_config
from reqctl.exceptions import ConfigError
from reqctl.utils import create_cli_logger

from ._commands import register_commands
from ._commands._context import DEFAULT_ACTOR, DEFAULT_PROJECT, CLIContext
from ._commands._errors import exit_code_for_exception
from ._commands._shared import exit_with_error

_HELP = "Requirements lifecycle and change control."


def create_app(
    console: Console | None = None,
    error_console: Console | None = None,
    *,
    exit_on_error: bool = True,
) -> App:
    if console is None:
        console = Console()
    if error_console is None:
        error_console = Console(stderr=True)
    app = App(
        name="reqctl",
        help=_HELP,
        help_on_error=True,
        console=console,
        error_console=error_console,
        exit_on_error=exit_on_error,
    )

    @app.meta.default
    def _default(  # pyright: ignore[reportUnusedFunction]
        *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
        project: Annotated[
            str, Parameter(name="--project", help="Project to operate on")
        ] = DEFAULT_PROJECT,
        actor: Annotated[
            str, Parameter(name="--actor", help="Actor recorded in the history")
        ] = DEFAULT_ACTOR,
        config: Annotated[
            Path | None, Parameter(name="--config", help="Path to config file")
        ] = None,
        data_dir: Annotated[
            Path | None,
            Parameter(name="--data-dir", help="Directory holding project files"),
        ] = None,
    ) -> None:
        """Launch reqctl with global options.

        Args:
            tokens: Command tokens to pass to subcommands.
            project: Project every command operates on.
            actor: Actor recorded in the history of mutations.
            config: Explicit path to config file.
            data_dir: Overrides the configured storage directory.
        """
        try:
            loaded_config = load_config(config)
        except (ConfigError, FileNotFoundError) as e:
            exit_with_error(
                str(e), exit_code_for_exception(e), console=error_console
            )

        cli_logger = create_cli_logger(
            loaded_config.logging,
            command=" ".join(t for t in tokens[:2] if not t.startswith("-")),
            project_id=project,
        )

        ctx = CLIContext(
            config=loaded_config,
            project_id=project,
            actor=actor,
            data_dir=data_dir,
            logger=cli_logger,
        )
        CLIContext.set_current(ctx)

        try:
            app(tokens)
        finally:
            CLIContext.reset()

    register_commands(app)
    return app


def main() -> None:
    """Default entrypoint for the `reqctl` CLI."""
    app = create_app()
    app.meta()
