# pyright: reportUnusedCallResult=false, reportUnusedFunction=false
# ruff: noqa: D415
"""Traceability commands.

Commands: link, unlink, links, matrix, coverage.
"""

from typing import Annotated

from cyclopts import Parameter

from reqctl.cli._commands._context import CLIContext, OutputFormat
from reqctl.cli._commands._errors import exit_code_for_exception
from reqctl.cli._commands._helpers import (
    coverage_to_dict,
    get_engine,
    get_error_console,
    link_to_dict,
    matrix_to_dict,
    output_result,
)
from reqctl.cli._commands._output import format_coverage, format_matrix_table
from reqctl.cli._commands._shared import (
    exit_with_error,
    exit_with_success,
    format_table,
)
from reqctl.exceptions import LifecycleError, RepositoryError
from reqctl.lifecycle import ArtifactType, RequirementKind, RequirementStatus

from ._app import app

__all__ = ["app"]


@app.command(name="link")
def link(
    requirement_ref: str,
    artifact_type: ArtifactType,
    artifact_id: str,
    /,
) -> None:
    """Link a requirement to an artifact

    Linking the same artifact twice is a no-op.

    Args:
        requirement_ref: Display ID of the requirement.
        artifact_type: Kind of the artifact.
        artifact_id: Identifier of the artifact.
    """
    console = get_error_console()
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            requirement = engine.requirements.resolve(ctx.project_id, requirement_ref)
            _ = engine.traceability.link(
                ctx.project_id,
                requirement.id,
                artifact_type,
                artifact_id,
                actor=ctx.actor,
            )

        console.print(
            f"[green]Linked {requirement.display_id}[/green] "
            f"to {artifact_type} {artifact_id}"
        )
        exit_with_success()

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="unlink")
def unlink(
    requirement_ref: str,
    artifact_type: ArtifactType,
    artifact_id: str,
    /,
) -> None:
    """Remove a link between a requirement and an artifact

    Removing a link that does not exist is a no-op.

    Args:
        requirement_ref: Display ID of the requirement.
        artifact_type: Kind of the artifact.
        artifact_id: Identifier of the artifact.
    """
    console = get_error_console()
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            requirement = engine.requirements.resolve(
                ctx.project_id, requirement_ref, include_deleted=True
            )
            removed = engine.traceability.unlink(
                ctx.project_id,
                requirement.id,
                artifact_type,
                artifact_id,
                actor=ctx.actor,
            )

        if removed:
            console.print(
                f"[green]Unlinked {requirement.display_id}[/green] "
                f"from {artifact_type} {artifact_id}"
            )
        else:
            console.print(f"No {artifact_type} {artifact_id} link to remove")
        exit_with_success()

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="links")
def links(
    requirement_ref: str,
    /,
    *,
    artifact_type: Annotated[
        ArtifactType | None,
        Parameter(name=["--type", "-t"], help="Filter by artifact type"),
    ] = None,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """List the links of a requirement

    Args:
        requirement_ref: Display ID of the requirement.
        artifact_type: Only show links to this artifact type.
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            requirement = engine.requirements.resolve(
                ctx.project_id, requirement_ref, include_deleted=True
            )
            found = engine.traceability.links_for(
                ctx.project_id, requirement.id, artifact_type=artifact_type
            )

        link_dicts = [link_to_dict(lk) for lk in found]
        table = (
            format_table(
                ["Type", "Artifact", "Linked by"],
                [
                    [d["artifact_type"], d["artifact_id"], str(d["created_by"] or "")]
                    for d in link_dicts
                ],
            )
            if link_dicts
            else "No links found."
        )
        print(
            output_result(
                {"requirement": requirement.display_id, "links": link_dicts},
                format_,
                table=table,
            )
        )
        exit_with_success()

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="matrix")
def matrix(
    *,
    kind: Annotated[
        RequirementKind | None,
        Parameter(name=["--kind", "-k"], help="Filter by requirement kind"),
    ] = None,
    status: Annotated[
        RequirementStatus | None,
        Parameter(name=["--status", "-s"], help="Filter by requirement status"),
    ] = None,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Show the traceability matrix

    Args:
        kind: Only include requirements of this kind.
        status: Only include requirements in this status.
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            result = engine.traceability.build_matrix(
                ctx.project_id, filter_kind=kind, filter_status=status
            )

        data = matrix_to_dict(result)
        print(output_result(data, format_, table=format_matrix_table(data)))
        exit_with_success()

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="coverage")
def coverage(
    *,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Report traceability coverage

    Args:
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            report = engine.traceability.coverage_report(ctx.project_id)

        data = coverage_to_dict(report)
        print(output_result(data, format_, table=format_coverage(data)))
        exit_with_success()

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))
