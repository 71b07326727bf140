# pyright: reportUnusedCallResult=false, reportUnusedFunction=false
# ruff: noqa: D415
"""Baseline commands.

Commands: create, history, diff.
"""

from typing import Annotated

from cyclopts import Parameter

from reqctl.cli._commands._context import CLIContext, OutputFormat
from reqctl.cli._commands._errors import exit_code_for_exception
from reqctl.cli._commands._helpers import (
    baseline_to_dict,
    diff_to_dict,
    get_engine,
    get_error_console,
    output_result,
)
from reqctl.cli._commands._output import format_baseline_table, format_diff_table
from reqctl.cli._commands._shared import ExitCode, exit_with_error, exit_with_success
from reqctl.exceptions import LifecycleError, RepositoryError

from ._app import app

__all__ = ["app"]


@app.command(name="create")
def create(
    requirement_ref: str,
    /,
    *,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Capture a new baseline of a requirement

    Every call creates a new version, even when nothing changed.

    Args:
        requirement_ref: Display ID of the requirement.
        format_: Output format.
    """
    console = get_error_console()
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            requirement = engine.requirements.resolve(ctx.project_id, requirement_ref)
            baseline = engine.baselines.create_baseline(
                ctx.project_id, requirement.id, actor=ctx.actor
            )

        if format_ == OutputFormat.TABLE:
            console.print(
                f"[green]Baselined {requirement.display_id}[/green] "
                f"as version {baseline.version}"
            )
            exit_with_success()

        print(output_result(baseline_to_dict(baseline), format_))
        exit_with_success()

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="history")
def history(
    requirement_ref: str,
    /,
    *,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """List the baselines of a requirement

    Args:
        requirement_ref: Display ID of the requirement.
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            requirement = engine.requirements.resolve(
                ctx.project_id, requirement_ref, include_deleted=True
            )
            baselines = engine.baselines.get_baseline_history(
                ctx.project_id, requirement.id
            ).to_list()

        baseline_dicts = [baseline_to_dict(b) for b in baselines]
        print(
            output_result(
                {"requirement": requirement.display_id, "baselines": baseline_dicts},
                format_,
                table=format_baseline_table(baseline_dicts),
            )
        )
        exit_with_success()

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="diff")
def diff(
    requirement_ref: str,
    /,
    from_version: int | None = None,
    to_version: int | None = None,
    *,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Compare baselines of a requirement

    With two versions, compares those baselines. With none, compares the
    latest baseline with the current requirement.

    Args:
        requirement_ref: Display ID of the requirement.
        from_version: Left-hand baseline version.
        to_version: Right-hand baseline version.
        format_: Output format.
    """
    if (from_version is None) != (to_version is None):
        exit_with_error(
            "Give both versions, or none to compare against the current state",
            ExitCode.VALIDATION_ERROR,
        )

    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            requirement = engine.requirements.resolve(
                ctx.project_id,
                requirement_ref,
                include_deleted=from_version is not None,
            )
            if from_version is not None and to_version is not None:
                result = engine.baselines.diff_baselines(
                    ctx.project_id, requirement.id, from_version, to_version
                )
            else:
                result = engine.baselines.diff_against_current(
                    ctx.project_id, requirement.id
                )

        data = diff_to_dict(result)
        print(output_result(data, format_, table=format_diff_table(data)))
        exit_with_success()

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))
