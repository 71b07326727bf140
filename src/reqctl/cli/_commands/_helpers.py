# pyright: reportExplicitAny=false, reportAny=false
"""Helper utilities shared by the reqctl command groups."""

import re
import sys
from datetime import UTC, datetime, timedelta
from typing import Any

from rich.console import Console

from reqctl.cli._commands._context import CLIContext, OutputFormat
from reqctl.cli._commands._shared import (
    FormattableData,
    format_json,
    format_yaml,
    get_error_console,
)
from reqctl.lifecycle import (
    BaselineDiff,
    ChangeRequest,
    CoverageReport,
    HistoryEntry,
    ImpactAnalysis,
    Requirement,
    RequirementBaseline,
    RequirementsEngine,
    TraceabilityMatrix,
    TraceLink,
)

__all__ = [
    "baseline_to_dict",
    "change_request_to_dict",
    "confirm_destructive",
    "coverage_to_dict",
    "diff_to_dict",
    "get_engine",
    "get_error_console",
    "history_entry_to_dict",
    "impact_to_dict",
    "link_to_dict",
    "matrix_to_dict",
    "output_result",
    "parse_time_filter",
    "requirement_to_dict",
]


def get_engine() -> RequirementsEngine:
    """Get a RequirementsEngine configured from CLIContext.

    Returns:
        An engine over the JSON project files of the configured data directory.
    """
    ctx = CLIContext.get_current()
    return RequirementsEngine.from_config(
        ctx.config, root=ctx.data_dir, logger=ctx.logger
    )


def confirm_destructive(message: str, *, force: bool, console: Console) -> bool:
    """Prompt for confirmation on destructive operations.

    Skips the prompt and returns True if force=True. Returns False without
    prompting when stdin is not a TTY.

    Args:
        message: The confirmation message to display.
        force: If True, skip confirmation and proceed.
        console: Rich console for output.

    Returns:
        True if the operation should proceed, False otherwise.
    """
    if force:
        return True

    # Non-interactive mode requires explicit --force
    if not sys.stdin.isatty():
        return False

    try:
        console.print(f"[yellow]{message}[/yellow]")
        response = console.input("[bold]Confirm (y/N): [/bold]")
        return response.lower() in ("y", "yes")
    except (EOFError, KeyboardInterrupt):
        return False


def output_result(
    data: FormattableData,
    output_format: OutputFormat,
    *,
    table: str | None = None,
) -> str:
    """Dispatch output formatting based on format enum.

    Args:
        data: The data dictionary for JSON and YAML output.
        output_format: The output format to use.
        table: Pre-rendered table or info block for table output. JSON is
            used when it is missing.

    Returns:
        Formatted string representation.
    """
    if output_format == OutputFormat.YAML:
        return format_yaml(data)
    if output_format == OutputFormat.TABLE and table is not None:
        return table
    return format_json(data)


# =============================================================================
# Model Converters
# =============================================================================


def requirement_to_dict(req: Requirement) -> FormattableData:
    """Convert Requirement model to output dictionary.

    Args:
        req: Requirement instance.

    Returns:
        Dictionary representation of the requirement.
    """
    data: dict[str, Any] = {
        "id": req.id,
        "display_id": req.display_id,
        "title": req.title,
        "kind": req.kind.value,
        "priority": req.priority.value,
        "status": req.status.value,
        "owner_id": req.owner_id,
        "created_at": req.created_at.isoformat(),
        "updated_at": req.updated_at.isoformat(),
        "is_baselined": req.is_baselined,
        "baseline_version": req.baseline_version,
        "has_unbaselined_changes": req.has_unbaselined_changes,
        "revision": req.revision,
    }

    # Optional fields
    if req.description:
        data["description"] = req.description
    if req.parent_id:
        data["parent_id"] = req.parent_id
    if req.acceptance_criteria:
        data["acceptance_criteria"] = list(req.acceptance_criteria)
    if req.tags:
        data["tags"] = sorted(req.tags)
    if req.source:
        data["source"] = req.source
    if req.deleted_at is not None:
        data["deleted_at"] = req.deleted_at.isoformat()

    return data


def baseline_to_dict(baseline: RequirementBaseline) -> FormattableData:
    """Convert RequirementBaseline model to output dictionary."""
    from reqctl.lifecycle._history_manager import to_detail_value

    snapshot = baseline.snapshot
    return {
        "requirement_id": baseline.requirement_id,
        "version": baseline.version,
        "captured_at": baseline.captured_at.isoformat(),
        "captured_by": baseline.captured_by,
        "snapshot": {
            "display_id": snapshot.display_id,
            "title": snapshot.title,
            "description": snapshot.description,
            "kind": snapshot.kind.value,
            "priority": snapshot.priority.value,
            "status": snapshot.status.value,
            "owner_id": snapshot.owner_id,
            "parent_id": snapshot.parent_id,
            "acceptance_criteria": to_detail_value(snapshot.acceptance_criteria),
            "tags": to_detail_value(snapshot.tags),
            "source": snapshot.source,
        },
    }


def diff_to_dict(diff: BaselineDiff) -> FormattableData:
    """Convert BaselineDiff model to output dictionary."""
    return {
        "requirement_id": diff.requirement_id,
        "from_version": diff.from_version,
        "to_version": diff.to_version,
        "changes": [
            {"field": change.field, "old": change.old, "new": change.new}
            for change in diff.changes
        ],
    }


def change_request_to_dict(cr: ChangeRequest) -> FormattableData:
    """Convert ChangeRequest model to output dictionary.

    Args:
        cr: ChangeRequest instance.

    Returns:
        Dictionary representation of the change request.
    """
    data: dict[str, Any] = {
        "id": cr.id,
        "display_id": cr.display_id,
        "requirement_id": cr.requirement_id,
        "title": cr.title,
        "reason": cr.reason,
        "impact_level": cr.impact_level.value,
        "status": cr.status.value,
        "requester_id": cr.requester_id,
        "created_at": cr.created_at.isoformat(),
        "updated_at": cr.updated_at.isoformat(),
        "revision": cr.revision,
    }

    # Optional fields
    for name in (
        "description",
        "impact_description",
        "risk_description",
        "schedule_impact_description",
        "cost_estimate",
        "time_estimate_hours",
        "reviewer_id",
        "approved_by",
        "rejection_reason",
    ):
        value = getattr(cr, name)
        if value is not None:
            data[name] = value
    if cr.affected_releases:
        data["affected_releases"] = list(cr.affected_releases)
    if cr.approved_at is not None:
        data["approved_at"] = cr.approved_at.isoformat()
    if cr.implemented_at is not None:
        data["implemented_at"] = cr.implemented_at.isoformat()

    return data


def impact_to_dict(analysis: ImpactAnalysis) -> FormattableData:
    """Convert ImpactAnalysis model to output dictionary."""
    return {
        "change_request": analysis.change_request.display_id,
        "requirement": analysis.requirement.display_id,
        "affected_requirement_ids": list(analysis.affected_requirement_ids),
        "affected_tasks": list(analysis.affected_tasks),
        "affected_test_cases": list(analysis.affected_test_cases),
        "affected_stakeholders": list(analysis.affected_stakeholders),
        "open_change_requests": list(analysis.open_change_requests),
    }


def link_to_dict(link: TraceLink) -> FormattableData:
    """Convert TraceLink model to output dictionary."""
    return {
        "requirement_id": link.requirement_id,
        "artifact_type": link.artifact_type.value,
        "artifact_id": link.artifact_id,
        "created_at": link.created_at.isoformat(),
        "created_by": link.created_by,
    }


def matrix_to_dict(matrix: TraceabilityMatrix) -> FormattableData:
    """Convert TraceabilityMatrix model to output dictionary."""
    return {
        "project_id": matrix.project_id,
        "rows": [
            {
                "requirement_id": row.requirement_id,
                "display_id": row.display_id,
                "title": row.title,
                "kind": row.kind.value,
                "status": row.status.value,
                "artifacts": {
                    artifact_type.value: list(ids)
                    for artifact_type, ids in row.artifacts.items()
                },
            }
            for row in matrix.rows
        ],
    }


def coverage_to_dict(report: CoverageReport) -> FormattableData:
    """Convert CoverageReport model to output dictionary."""
    return {
        "project_id": report.project_id,
        "total_requirements": report.total_requirements,
        "with_tasks": report.with_tasks,
        "with_tests": report.with_tests,
        "fully_covered": report.fully_covered,
        "partially_covered": report.partially_covered,
        "uncovered": report.uncovered,
        "coverage_percent": report.coverage_percent,
        "by_kind": [
            {"kind": k.kind.value, "total": k.total, "covered": k.covered}
            for k in report.by_kind
        ],
    }


def history_entry_to_dict(entry: HistoryEntry) -> FormattableData:
    """Convert HistoryEntry model to output dictionary.

    Args:
        entry: HistoryEntry instance.

    Returns:
        Dictionary representation of the history entry.
    """
    data: dict[str, Any] = {
        "sequence": entry.sequence,
        "timestamp": entry.timestamp.isoformat(),
        "action": entry.action.value,
        "actor": entry.actor_id,
    }
    if entry.version is not None:
        data["version"] = entry.version
    if entry.details:
        data["details"] = dict(entry.details)
    return data


def parse_time_filter(value: str | None) -> datetime | None:
    """Parse a time filter value into a datetime.

    Supports two formats:
    - Relative: 1d (1 day ago), 2h (2 hours ago), 30m (30 minutes ago)
    - Absolute: ISO 8601 dates like 2024-12-01 or 2024-12-01T10:30:00

    Args:
        value: The time filter string to parse, or None.

    Returns:
        Parsed datetime in UTC, or None if value is None.

    Raises:
        ValueError: If the time format is not recognized.
    """
    if value is None:
        return None

    relative_match = re.match(r"^(\d+)([dhm])$", value)
    if relative_match:
        amount = int(relative_match.group(1))
        unit = relative_match.group(2)
        delta = {
            "d": timedelta(days=amount),
            "h": timedelta(hours=amount),
            "m": timedelta(minutes=amount),
        }[unit]
        return datetime.now(UTC) - delta

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        msg = (
            f"Invalid time format: {value}. "
            "Use relative format (1d, 2h, 30m) or ISO 8601 (2024-12-01T10:30:00)"
        )
        raise ValueError(msg) from None
    else:
        # If no timezone, assume UTC
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed
