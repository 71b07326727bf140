# pyright: reportUnusedCallResult=false, reportUnusedFunction=false
# ruff: noqa: D415, PLR0913
"""Change request commands.

Commands: add, update, status, show, list, comment, impact, history.
"""

from typing import Annotated

from cyclopts import Parameter

from reqctl.cli._commands._context import CLIContext, OutputFormat
from reqctl.cli._commands._errors import exit_code_for_exception
from reqctl.cli._commands._helpers import (
    change_request_to_dict,
    get_engine,
    get_error_console,
    history_entry_to_dict,
    impact_to_dict,
    output_result,
    parse_time_filter,
)
from reqctl.cli._commands._output import (
    format_change_request_info,
    format_change_request_table,
    format_history_table,
    format_impact,
)
from reqctl.cli._commands._shared import exit_with_error, exit_with_success
from reqctl.exceptions import LifecycleError, RepositoryError
from reqctl.lifecycle import (
    ChangeRequestStatus,
    EntityType,
    HistoryAction,
    ImpactLevel,
)

from ._app import app

__all__ = ["app"]


def _print_change_request(data: dict[str, object], format_: OutputFormat) -> None:
    """Print a change request and exit with success.

    Raises:
        SystemExit: Always exits with ExitCode.SUCCESS (0).
    """
    print(output_result(data, format_, table=format_change_request_info(data)))
    exit_with_success()


@app.command(name="add")
def add(
    requirement_ref: str,
    /,
    *,
    title: Annotated[
        str,
        Parameter(name=["--title", "-t"], help="Change request title"),
    ],
    reason: Annotated[
        str,
        Parameter(name=["--reason", "-r"], help="Why the change is needed"),
    ],
    impact: Annotated[
        ImpactLevel,
        Parameter(name=["--impact", "-i"], help="Estimated impact level"),
    ] = ImpactLevel.MEDIUM,
    description: Annotated[
        str | None,
        Parameter(name=["--description", "-d"], help="Detailed description"),
    ] = None,
    impact_description: Annotated[
        str | None,
        Parameter(name=["--impact-description"], help="Narrative of the impact"),
    ] = None,
    risk: Annotated[
        str | None,
        Parameter(name=["--risk"], help="Narrative of the risks"),
    ] = None,
    schedule: Annotated[
        str | None,
        Parameter(name=["--schedule"], help="Narrative of the schedule impact"),
    ] = None,
    cost: Annotated[
        float | None,
        Parameter(name=["--cost"], help="Cost estimate"),
    ] = None,
    hours: Annotated[
        int | None,
        Parameter(name=["--hours"], help="Effort estimate in hours"),
    ] = None,
    releases: Annotated[
        list[str] | None,
        Parameter(name=["--release"], help="Affected release (can be repeated)"),
    ] = None,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Propose a change against a requirement

    Args:
        requirement_ref: Display ID of the targeted requirement.
        title: Change request title.
        reason: Justification for the change.
        impact: Estimated impact level.
        description: Detailed description.
        impact_description: Narrative of the impact.
        risk: Narrative of the risks.
        schedule: Narrative of the schedule impact.
        cost: Non-negative cost estimate.
        hours: Non-negative effort estimate in hours.
        releases: Affected releases.
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            requirement = engine.requirements.resolve(ctx.project_id, requirement_ref)
            change_request = engine.change_requests.create_change_request(
                ctx.project_id,
                requirement_id=requirement.id,
                title=title,
                reason=reason,
                requester_id=ctx.actor,
                impact_level=impact,
                description=description,
                impact_description=impact_description,
                risk_description=risk,
                schedule_impact_description=schedule,
                cost_estimate=cost,
                time_estimate_hours=hours,
                affected_releases=releases or (),
            )
        _print_change_request(change_request_to_dict(change_request), format_)

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="update")
def update(
    change_request_ref: str,
    /,
    *,
    title: Annotated[
        str | None,
        Parameter(name=["--title", "-t"], help="New title"),
    ] = None,
    reason: Annotated[
        str | None,
        Parameter(name=["--reason", "-r"], help="New justification"),
    ] = None,
    impact: Annotated[
        ImpactLevel | None,
        Parameter(name=["--impact", "-i"], help="New impact level"),
    ] = None,
    description: Annotated[
        str | None,
        Parameter(name=["--description", "-d"], help="New description"),
    ] = None,
    impact_description: Annotated[
        str | None,
        Parameter(name=["--impact-description"], help="New impact narrative"),
    ] = None,
    risk: Annotated[
        str | None,
        Parameter(name=["--risk"], help="New risk narrative"),
    ] = None,
    schedule: Annotated[
        str | None,
        Parameter(name=["--schedule"], help="New schedule narrative"),
    ] = None,
    cost: Annotated[
        float | None,
        Parameter(name=["--cost"], help="New cost estimate"),
    ] = None,
    hours: Annotated[
        int | None,
        Parameter(name=["--hours"], help="New effort estimate in hours"),
    ] = None,
    releases: Annotated[
        list[str] | None,
        Parameter(name=["--release"], help="Affected releases (replaces existing)"),
    ] = None,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Edit a change request that is still proposed or under review

    Args:
        change_request_ref: Display ID of the change request.
        title: New title.
        reason: New justification.
        impact: New impact level.
        description: New description; empty clears it.
        impact_description: New impact narrative; empty clears it.
        risk: New risk narrative; empty clears it.
        schedule: New schedule narrative; empty clears it.
        cost: New cost estimate.
        hours: New effort estimate.
        releases: New affected releases.
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            current = engine.change_requests.resolve(
                ctx.project_id, change_request_ref
            )
            change_request = engine.change_requests.update_change_request(
                ctx.project_id,
                current.id,
                actor=ctx.actor,
                title=title,
                reason=reason,
                impact_level=impact,
                description=description,
                impact_description=impact_description,
                risk_description=risk,
                schedule_impact_description=schedule,
                cost_estimate=cost,
                time_estimate_hours=hours,
                affected_releases=releases,
            )
        _print_change_request(change_request_to_dict(change_request), format_)

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="status")
def status(
    change_request_ref: str,
    target: ChangeRequestStatus,
    /,
    *,
    reason: Annotated[
        str | None,
        Parameter(name=["--reason", "-r"], help="Why (required when rejecting)"),
    ] = None,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Move a change request through its workflow

    Args:
        change_request_ref: Display ID of the change request.
        target: Requested status.
        reason: Why; required when rejecting.
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            current = engine.change_requests.resolve(
                ctx.project_id, change_request_ref
            )
            change_request = engine.change_requests.transition_status(
                ctx.project_id, current.id, target, actor=ctx.actor, reason=reason
            )
        _print_change_request(change_request_to_dict(change_request), format_)

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="show")
def show(
    change_request_ref: str,
    /,
    *,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Show detailed information about a change request

    Args:
        change_request_ref: Display ID of the change request.
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            change_request = engine.change_requests.resolve(
                ctx.project_id, change_request_ref
            )
        _print_change_request(change_request_to_dict(change_request), format_)

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="list")
def list_change_requests(
    *,
    requirement: Annotated[
        str | None,
        Parameter(name=["--requirement"], help="Only this requirement's requests"),
    ] = None,
    status: Annotated[
        ChangeRequestStatus | None,
        Parameter(name=["--status", "-s"], help="Filter by status"),
    ] = None,
    impact: Annotated[
        ImpactLevel | None,
        Parameter(name=["--impact", "-i"], help="Filter by impact level"),
    ] = None,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """List change requests, newest first

    Args:
        requirement: Display ID of a requirement to restrict the list to.
        status: Filter by status.
        impact: Filter by impact level.
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            change_requests = engine.change_requests.list_change_requests(
                ctx.project_id, filter_status=status, filter_impact=impact
            )
            if requirement:
                target = engine.requirements.resolve(
                    ctx.project_id, requirement, include_deleted=True
                )
                change_requests = [
                    cr for cr in change_requests if cr.requirement_id == target.id
                ]

        cr_dicts = [change_request_to_dict(cr) for cr in change_requests]
        print(
            output_result(
                {"change_requests": cr_dicts},
                format_,
                table=format_change_request_table(cr_dicts),
            )
        )
        exit_with_success()

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="comment")
def comment(
    change_request_ref: str,
    /,
    *,
    message: Annotated[
        str,
        Parameter(name=["--message", "-m"], help="Comment text"),
    ],
) -> None:
    """Add a comment to a change request's history

    Args:
        change_request_ref: Display ID of the change request.
        message: Comment text.
    """
    console = get_error_console()
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            current = engine.change_requests.resolve(
                ctx.project_id, change_request_ref
            )
            entry = engine.change_requests.add_comment(
                ctx.project_id, current.id, actor=ctx.actor, content=message
            )

        console.print(
            f"[green]Commented on {current.display_id}[/green] (#{entry.sequence})"
        )
        exit_with_success()

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="impact")
def impact(
    change_request_ref: str,
    /,
    *,
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Show what a change request touches

    Args:
        change_request_ref: Display ID of the change request.
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        with get_engine() as engine:
            current = engine.change_requests.resolve(
                ctx.project_id, change_request_ref
            )
            analysis = engine.change_requests.analyze_impact(
                ctx.project_id, current.id
            )
            display_ids = {
                r.id: r.display_id
                for r in engine.requirements.list_requirements(
                    ctx.project_id, include_deleted=True
                )
            }

        data = impact_to_dict(analysis)
        data["affected_requirement_ids"] = [
            display_ids.get(rid, rid) for rid in data["affected_requirement_ids"]
        ]
        print(output_result(data, format_, table=format_impact(data)))
        exit_with_success()

    except (LifecycleError, RepositoryError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))


@app.command(name="history")
def history(
    change_request_ref: str,
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
    format_: Annotated[
        OutputFormat,
        Parameter(name=["--format", "-f"], help="Output format"),
    ] = OutputFormat.TABLE,
) -> None:
    """Show the audit trail of a change request

    Args:
        change_request_ref: Display ID of the change request.
        since: Only include entries at or after this time.
        until: Only include entries at or before this time.
        action: Filter by action.
        format_: Output format.
    """
    ctx = CLIContext.get_current()

    try:
        since_dt = parse_time_filter(since)
        until_dt = parse_time_filter(until)
        with get_engine() as engine:
            current = engine.change_requests.resolve(
                ctx.project_id, change_request_ref
            )
            entries = engine.history.get_history(
                ctx.project_id,
                EntityType.CHANGE_REQUEST,
                current.id,
                since=since_dt,
                until=until_dt,
                action_filter=action,
            ).to_list()

        entry_dicts = [history_entry_to_dict(e) for e in entries]
        print(
            output_result(
                {"change_request": current.display_id, "history": entry_dicts},
                format_,
                table=format_history_table(entry_dicts),
            )
        )
        exit_with_success()

    except (LifecycleError, RepositoryError, ValueError) as e:
        exit_with_error(str(e), exit_code_for_exception(e))
