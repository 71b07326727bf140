# pyright: reportUnusedCallResult=false, reportUnusedFunction=false
# ruff: noqa: D415, PLR0913, FBT002
"""Requirement commands.

Commands: add, update, move, delete, show, list, tree, comment, history.
"""

from typing import Annotated

from cyclopts import Parameter

from reqctl.cli._commands._context import CLIContext, OutputFormat
from reqctl.cli._commands._errors import exit_code_for_exception
from reqctl.cli._commands._helpers import (
    confirm_destructive,
    get_engine,
    get_error_console,
    history_entry_to_dict,
    output_result,
    parse_time_filter,
    requirement_to_dict,
)
from reqctl.cli._commands._output import (
    format_history_table,
    format_requirement_info,
    format_requirement_table,
    format_tree,
)
from reqctl.cli._commands._shared import ExitCode, exit_with_error, exit_with_success
from reqctl.exceptions import LifecycleError, RepositoryError
from reqctl.lifecycle import (
    EntityType,
    HistoryAction,
    Priority,
    RequirementKind,
    RequirementStatus,
)

from ._app import app

__all__ = ["app"]


def _print_requirement(data: dict[str, object], format_: OutputFormat) -> None:
    """Print a requirement and exit with success.

    Raises:
        SystemExit: Always exits with ExitCode.SUCCESS (0).
    """
    print(output_result(data, format_, table=format_requirement_info(data)))
    exit_with_success()


@app.command(name="add")
def add(
    title: str,
    /,
    *,
    kind: Annotated[
        RequirementKind,
        Parameter(name=["--kind", "-k"], help="Requirement kind"),
    ] = RequirementKind.FUNCTIONAL,
    priority: Annotated[
        Priority,
        Parameter(name=["--priority", "-p"], help="Requirement priority"),
    ] = Priority.MEDIUM,
    owner: Annotated[
        str | None,
        Parameter(name=["--owner"], help="Owner (defaults to the actor)"),
    ] = None,
    description: Annotated[
        str | None,
        Parameter(name=["--description", "-d"], help="Full requirement description"),
    ] = None,
    parent: Annotated[
        str | None,
        Parameter(name=["--parent"], help="Parent requirement ID"),
    ] = None,
    criteria: Annotated[
        list[str] | None,
        Parameter(
            name=["--criteria", "-a"], help="Acceptance criteria (can be repeated)"
        ),
    ] = None,
    tags: Annotated[
        list[str] | None,
        Parameter(name=["--tags"], help="Freeform tags for filtering"),
    ] = None,
    source: Annotated[
        str | None,
        Parameter(name=["--source"], help="Where the requirement came from"),
    ] = None,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Add a new requirement in draft status

    Args:
        title: Human-readable requirement title.
        kind: Requirement kind.
        priority: Requirement priority.
        owner: Owner of the requirement.
        description: Full requirement description.
        parent: Display ID of the parent requirement.
        criteria: Acceptance criteria.
        tags: Freeform tags.
        source: Origin of the requirement.
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            parent_id = (
                engine.requirements.resolve(ctx.project_id, parent).id
                if parent
                else None
            )
            requirement = engine.requirements.create_requirement(
                ctx.project_id,
                title=title,
                kind=kind,
                priority=priority,
                owner_id=owner or ctx.actor,
                actor=ctx.actor,
                description=description,
                parent_id=parent_id,
                acceptance_criteria=criteria or (),
                tags=tags or (),
                source=source,
            )
        _print_requirement(requirement_to_dict(requirement), format_)

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="update")
def update(
    requirement_ref: str,
    /,
    *,
    title: Annotated[
        str | None,
        Parameter(name=["--title", "-t"], help="New requirement title"),
    ] = None,
    status: Annotated[
        RequirementStatus | None,
        Parameter(name=["--status", "-s"], help="New status"),
    ] = None,
    kind: Annotated[
        RequirementKind | None,
        Parameter(name=["--kind", "-k"], help="New kind"),
    ] = None,
    priority: Annotated[
        Priority | None,
        Parameter(name=["--priority", "-p"], help="New priority"),
    ] = None,
    owner: Annotated[
        str | None,
        Parameter(name=["--owner"], help="New owner"),
    ] = None,
    description: Annotated[
        str | None,
        Parameter(name=["--description", "-d"], help="New description"),
    ] = None,
    criteria: Annotated[
        list[str] | None,
        Parameter(
            name=["--criteria", "-a"],
            help="New acceptance criteria (replaces existing)",
        ),
    ] = None,
    tags: Annotated[
        list[str] | None,
        Parameter(name=["--tags"], help="New tags (replaces existing)"),
    ] = None,
    source: Annotated[
        str | None,
        Parameter(name=["--source"], help="New source"),
    ] = None,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Update an existing requirement

    Args:
        requirement_ref: Display ID of the requirement.
        title: New title.
        status: New lifecycle status.
        kind: New kind.
        priority: New priority.
        owner: New owner.
        description: New description; empty clears it.
        criteria: New acceptance criteria (replaces existing).
        tags: New tags (replaces existing).
        source: New source; empty clears it.
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            current = engine.requirements.resolve(ctx.project_id, requirement_ref)
            requirement = engine.requirements.update_requirement(
                ctx.project_id,
                current.id,
                actor=ctx.actor,
                title=title,
                description=description,
                kind=kind,
                priority=priority,
                acceptance_criteria=criteria,
                tags=tags,
                owner_id=owner,
                source=source,
                status=status,
            )
        _print_requirement(requirement_to_dict(requirement), format_)

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="move")
def move(
    requirement_ref: str,
    /,
    *,
    parent: Annotated[
        str | None,
        Parameter(name=["--parent"], help="New parent requirement ID"),
    ] = None,
    root: Annotated[
        bool,
        Parameter(name=["--root"], help="Detach from the current parent"),
    ] = False,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Move a requirement under another parent or to the top level

    Exactly one of --parent or --root must be given.

    Args:
        requirement_ref: Display ID of the requirement to move.
        parent: Display ID of the new parent.
        root: Detach the requirement from its parent.
        format_: Output format.
    """
    if (parent is None) == (not root):
        exit_with_error(
            "Exactly one of --parent or --root is required",
            ExitCode.VALIDATION_ERROR,
        )

    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            current = engine.requirements.resolve(ctx.project_id, requirement_ref)
            parent_id = (
                engine.requirements.resolve(ctx.project_id, parent).id
                if parent
                else None
            )
            requirement = engine.requirements.update_requirement(
                ctx.project_id,
                current.id,
                actor=ctx.actor,
                parent_id=parent_id,
                detach_parent=root,
            )
        _print_requirement(requirement_to_dict(requirement), format_)

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="delete")
def delete(
    requirement_ref: str,
    /,
    *,
    force: Annotated[
        bool,
        Parameter(name=["--force"], help="Delete without confirmation"),
    ] = False,
) -> None:
    """Delete a requirement

    Deleted requirements keep their display ID and history.

    Args:
        requirement_ref: Display ID of the requirement.
        force: Delete without confirmation prompt.
    """
    console = get_error_console()
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            current = engine.requirements.resolve(ctx.project_id, requirement_ref)

            message = f"Delete requirement {current.display_id}?"
            if not confirm_destructive(message, force=force, console=console):
                console.print("[yellow]Cancelled[/yellow]")
                raise SystemExit(ExitCode.VALIDATION_ERROR)

            _ = engine.requirements.delete_requirement(
                ctx.project_id, current.id, actor=ctx.actor
            )

        console.print(f"[green]Deleted requirement {current.display_id}[/green]")
        exit_with_success()

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="show")
def show(
    requirement_ref: str,
    /,
    *,
    include_deleted: Annotated[
        bool,
        Parameter(name=["--include-deleted"], help="Show deleted requirements too"),
    ] = False,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Show detailed information about a requirement

    Args:
        requirement_ref: Display ID of the requirement.
        include_deleted: Resolve deleted requirements as well.
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            requirement = engine.requirements.resolve(
                ctx.project_id, requirement_ref, include_deleted=include_deleted
            )
        _print_requirement(requirement_to_dict(requirement), format_)

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="list")
def list_requirements(
    *,
    kind: Annotated[
        RequirementKind | None,
        Parameter(name=["--kind", "-k"], help="Filter by kind"),
    ] = None,
    status: Annotated[
        RequirementStatus | None,
        Parameter(name=["--status", "-s"], help="Filter by status"),
    ] = None,
    priority: Annotated[
        Priority | None,
        Parameter(name=["--priority", "-p"], help="Filter by priority"),
    ] = None,
    tags: Annotated[
        list[str] | None,
        Parameter(name=["--tags"], help="Filter by tags (all must match)"),
    ] = None,
    include_deleted: Annotated[
        bool,
        Parameter(name=["--include-deleted"], help="Include deleted requirements"),
    ] = False,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """List requirements with optional filtering

    Args:
        kind: Filter by kind.
        status: Filter by status.
        priority: Filter by priority.
        tags: Filter by tags (requirements must have all listed tags).
        include_deleted: Include deleted requirements.
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            requirements = engine.requirements.list_requirements(
                ctx.project_id,
                filter_kind=kind,
                filter_status=status,
                filter_priority=priority,
                filter_tags=tags,
                include_deleted=include_deleted,
            )

        req_dicts = [requirement_to_dict(r) for r in requirements]
        print(
            output_result(
                {"requirements": req_dicts},
                format_,
                table=format_requirement_table(req_dicts),
            )
        )
        exit_with_success()

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="tree")
def tree(
    *,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Show the requirement hierarchy

    Args:
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            hierarchy = engine.requirements.get_hierarchy(ctx.project_id)
            nodes = list(hierarchy.walk())

        print(
            output_result(
                {"requirements": hierarchy.to_dicts()},
                format_,
                table=format_tree(nodes),
            )
        )
        exit_with_success()

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="comment")
def comment(
    requirement_ref: str,
    /,
    *,
    message: Annotated[
        str,
        Parameter(name=["--message", "-m"], help="Comment text"),
    ],
) -> None:
    """Add a comment to a requirement's history

    Args:
        requirement_ref: Display ID of the requirement.
        message: Comment text.
    """
    console = get_error_console()
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            current = engine.requirements.resolve(ctx.project_id, requirement_ref)
            entry = engine.requirements.add_comment(
                ctx.project_id, current.id, actor=ctx.actor, content=message
            )

        console.print(
            f"[green]Commented on {current.display_id}[/green] (#{entry.sequence})"
        )
        exit_with_success()

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="history")
def history(
    requirement_ref: str,
    /,
    *,
    since: Annotated[
        str | None,
        Parameter(name=["--since"], help="Only entries after this time (1d, ISO)"),
    ] = None,
    until: Annotated[
        str | None,
        Parameter(name=["--until"], help="Only entries before this time (1d, ISO)"),
    ] = None,
    action: Annotated[
        HistoryAction | None,
        Parameter(name=["--action"], help="Filter by action"),
    ] = None,
    actor: Annotated[
        str | None,
        Parameter(name=["--by"], help="Filter by actor"),
    ] = None,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Show the audit trail of a requirement

    Deleted requirements keep their history.

    Args:
        requirement_ref: Display ID of the requirement.
        since: Only include entries at or after this time.
        until: Only include entries at or before this time.
        action: Filter by action.
        actor: Filter by actor.
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        since_dt = parse_time_filter(since)
        until_dt = parse_time_filter(until)
        with get_engine() as engine:
            current = engine.requirements.resolve(
                ctx.project_id, requirement_ref, include_deleted=True
            )
            entries = engine.history.get_history(
                ctx.project_id,
                EntityType.REQUIREMENT,
                current.id,
                since=since_dt,
                until=until_dt,
                action_filter=action,
                actor_filter=actor,
            ).to_list()

        entry_dicts = [history_entry_to_dict(e) for e in entries]
        print(
            output_result(
                {"requirement": current.display_id, "history": entry_dicts},
                format_,
                table=format_history_table(entry_dicts),
            )
        )
        exit_with_success()

    except (LifecycleError, RepositoryError, ValueError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))
