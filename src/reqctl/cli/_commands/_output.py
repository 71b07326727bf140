# pyright: reportExplicitAny=false, reportAny=false
"""Human-readable formatters for reqctl command output.

Every formatter takes the dictionaries produced by the model converters in
``_helpers`` so table, JSON and YAML output share one source of truth.
"""

from typing import Any

from reqctl.cli._commands._shared import FormattableData, format_table
from reqctl.lifecycle import HierarchyNode

__all__ = [
    "format_baseline_table",
    "format_change_request_info",
    "format_change_request_table",
    "format_coverage",
    "format_diff_table",
    "format_history_table",
    "format_impact",
    "format_matrix_table",
    "format_requirement_info",
    "format_requirement_table",
    "format_tree",
]

_TITLE_WIDTH = 40


def _truncate(value: object, width: int = _TITLE_WIDTH) -> str:
    text = str(value)
    return text if len(text) <= width else f"{text[: width - 3]}..."


def _format_timestamp(timestamp: str) -> str:
    """Format an ISO timestamp for display.

    Args:
        timestamp: ISO 8601 timestamp string.

    Returns:
        Human-readable timestamp string.
    """
    from datetime import datetime

    try:
        dt = datetime.fromisoformat(timestamp)
        return dt.strftime("%Y-%m-%d %H:%M:%S")
    except (ValueError, TypeError):
        return str(timestamp)


# =============================================================================
# Requirements
# =============================================================================


def format_requirement_table(requirements: list[FormattableData]) -> str:
    """Format requirements as table with ID, Kind, Priority, Status, Title."""
    if not requirements:
        return "No requirements found."

    headers = ["ID", "Kind", "Priority", "Status", "Title"]
    rows = [
        [
            str(r.get("display_id", "")),
            str(r.get("kind", "")),
            str(r.get("priority", "")),
            str(r.get("status", "")),
            _truncate(r.get("title", "")),
        ]
        for r in requirements
    ]
    return format_table(headers, rows)


def format_requirement_info(req: FormattableData) -> str:
    """Format single requirement as detailed info block.

    Args:
        req: Requirement dictionary with full metadata.

    Returns:
        Human-readable info block.
    """
    baseline = (
        f"v{req.get('baseline_version')}"
        + (" (modified)" if req.get("has_unbaselined_changes") else "")
        if req.get("is_baselined")
        else "none"
    )
    lines = [
        f"ID:          {req.get('display_id', '')}",
        f"Title:       {req.get('title', '')}",
        f"Kind:        {req.get('kind', '')}",
        f"Priority:    {req.get('priority', '')}",
        f"Status:      {req.get('status', '')}",
        f"Owner:       {req.get('owner_id', '')}",
        f"Baseline:    {baseline}",
        f"Created:     {_format_timestamp(str(req.get('created_at', '')))}",
        f"Updated:     {_format_timestamp(str(req.get('updated_at', '')))}",
    ]

    if req.get("parent_id"):
        lines.append(f"Parent:      {req.get('parent_id', '')}")
    if req.get("source"):
        lines.append(f"Source:      {req.get('source', '')}")
    if req.get("tags"):
        lines.append(f"Tags:        {', '.join(req.get('tags', []))}")
    if req.get("deleted_at"):
        lines.append(f"Deleted:     {_format_timestamp(str(req['deleted_at']))}")

    if req.get("description"):
        lines.extend(["", "Description:", f"  {req.get('description', '')}"])

    if req.get("acceptance_criteria"):
        lines.extend(["", "Acceptance Criteria:"])
        lines.extend(
            f"  - {criterion}" for criterion in req.get("acceptance_criteria", [])
        )

    return "\n".join(lines)


def format_tree(nodes: list[HierarchyNode]) -> str:
    """Format a requirement hierarchy as an indented outline.

    Args:
        nodes: Nodes in depth-first pre-order.

    Returns:
        One line per requirement, indented by depth.
    """
    if not nodes:
        return "No requirements found."
    return "\n".join(
        f"{'  ' * node.depth}- {node.requirement.display_id} "
        f"[{node.requirement.status}] {node.requirement.title}"
        for node in nodes
    )


# =============================================================================
# Baselines
# =============================================================================


def format_baseline_table(baselines: list[FormattableData]) -> str:
    """Format baselines as table with Version, Captured, By, Title, Status."""
    if not baselines:
        return "No baselines found."

    headers = ["Version", "Captured", "By", "Title", "Status"]
    rows = [
        [
            str(b["version"]),
            _format_timestamp(str(b["captured_at"])),
            str(b["captured_by"]),
            _truncate(b["snapshot"]["title"]),
            str(b["snapshot"]["status"]),
        ]
        for b in baselines
    ]
    return format_table(headers, rows)


def format_diff_table(diff: FormattableData) -> str:
    """Format a baseline diff as table with Field, Old, New."""
    to_label = "current" if diff["to_version"] == 0 else f"v{diff['to_version']}"
    header = f"v{diff['from_version']} -> {to_label}"
    if not diff["changes"]:
        return f"{header}: no differences."

    rows = [
        [str(c["field"]), _truncate(c["old"]), _truncate(c["new"])]
        for c in diff["changes"]
    ]
    return f"{header}\n\n{format_table(['Field', 'Old', 'New'], rows)}"


# =============================================================================
# Change Requests
# =============================================================================


def format_change_request_table(change_requests: list[FormattableData]) -> str:
    """Format change requests as table with ID, Impact, Status, Title."""
    if not change_requests:
        return "No change requests found."

    headers = ["ID", "Impact", "Status", "Requester", "Title"]
    rows = [
        [
            str(cr.get("display_id", "")),
            str(cr.get("impact_level", "")),
            str(cr.get("status", "")),
            str(cr.get("requester_id", "")),
            _truncate(cr.get("title", "")),
        ]
        for cr in change_requests
    ]
    return format_table(headers, rows)


def format_change_request_info(cr: FormattableData) -> str:
    """Format single change request as detailed info block."""
    lines = [
        f"ID:          {cr.get('display_id', '')}",
        f"Title:       {cr.get('title', '')}",
        f"Status:      {cr.get('status', '')}",
        f"Impact:      {cr.get('impact_level', '')}",
        f"Requester:   {cr.get('requester_id', '')}",
        f"Requirement: {cr.get('requirement_id', '')}",
        f"Created:     {_format_timestamp(str(cr.get('created_at', '')))}",
        f"Updated:     {_format_timestamp(str(cr.get('updated_at', '')))}",
    ]

    labelled = (
        ("Reviewer", "reviewer_id"),
        ("Approved by", "approved_by"),
        ("Cost", "cost_estimate"),
        ("Hours", "time_estimate_hours"),
    )
    for label, key in labelled:
        if cr.get(key) is not None:
            lines.append(f"{label + ':':<13}{cr[key]}")
    if cr.get("affected_releases"):
        lines.append(f"Releases:    {', '.join(cr['affected_releases'])}")

    lines.extend(["", "Reason:", f"  {cr.get('reason', '')}"])
    for label, key in (
        ("Description", "description"),
        ("Impact", "impact_description"),
        ("Risk", "risk_description"),
        ("Schedule", "schedule_impact_description"),
        ("Rejection reason", "rejection_reason"),
    ):
        if cr.get(key):
            lines.extend(["", f"{label}:", f"  {cr[key]}"])

    return "\n".join(lines)


def format_impact(impact: FormattableData) -> str:
    """Format an impact analysis as a sectioned list."""
    lines = [
        f"Change request: {impact['change_request']}",
        f"Requirement:    {impact['requirement']}",
    ]
    sections = (
        ("Affected requirements", "affected_requirement_ids"),
        ("Tasks", "affected_tasks"),
        ("Test cases", "affected_test_cases"),
        ("Stakeholders", "affected_stakeholders"),
        ("Other open change requests", "open_change_requests"),
    )
    for label, key in sections:
        values: list[Any] = impact[key]
        lines.extend(["", f"{label} ({len(values)}):"])
        lines.extend(f"  - {value}" for value in values)
    return "\n".join(lines)


# =============================================================================
# Traceability
# =============================================================================


def format_matrix_table(matrix: FormattableData) -> str:
    """Format the traceability matrix with one column per artifact type."""
    rows_data: list[FormattableData] = matrix["rows"]
    if not rows_data:
        return "No requirements found."

    artifact_types = list(rows_data[0]["artifacts"])
    headers = ["ID", "Title", *[t.replace("_", " ").title() for t in artifact_types]]
    rows = [
        [
            str(row["display_id"]),
            _truncate(row["title"], 30),
            *[", ".join(row["artifacts"][t]) or "-" for t in artifact_types],
        ]
        for row in rows_data
    ]
    return format_table(headers, rows)


def format_coverage(report: FormattableData) -> str:
    """Format a coverage report as summary lines plus a per-kind table."""
    lines = [
        f"Coverage:           {report['coverage_percent']}%",
        f"Requirements:       {report['total_requirements']}",
        f"With tasks:         {report['with_tasks']}",
        f"With tests:         {report['with_tests']}",
        f"Fully covered:      {report['fully_covered']}",
        f"Partially covered:  {report['partially_covered']}",
        f"Uncovered:          {report['uncovered']}",
    ]
    if report["by_kind"]:
        rows = [
            [str(k["kind"]), str(k["total"]), str(k["covered"])]
            for k in report["by_kind"]
        ]
        lines.extend(["", format_table(["Kind", "Total", "Covered"], rows)])
    return "\n".join(lines)


# =============================================================================
# History
# =============================================================================


def _format_history_details(details: dict[str, Any]) -> str:
    parts: list[str] = []
    for key, value in details.items():
        if isinstance(value, dict) and "old" in value and "new" in value:
            parts.append(f"{key}: {value['old']} -> {value['new']}")
        else:
            parts.append(f"{key}={_truncate(value, 30)}")
    return "; ".join(parts)


def format_history_table(entries: list[FormattableData]) -> str:
    """Format history entries as table with Seq, Timestamp, Action, Actor, Details.

    Args:
        entries: List of history entry dictionaries.

    Returns:
        Markdown table string representation.
    """
    if not entries:
        return "No history entries found."

    headers = ["Seq", "Timestamp", "Action", "Actor", "Details"]
    rows = [
        [
            str(e.get("sequence", "")),
            _format_timestamp(str(e.get("timestamp", ""))),
            str(e.get("action", "")),
            str(e.get("actor", "")),
            _format_history_details(e.get("details", {})),
        ]
        for e in entries
    ]
    return format_table(headers, rows)
