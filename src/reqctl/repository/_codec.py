# pyright: reportAny=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""Conversion between lifecycle models and JSON-ready dictionaries.

Decoders raise KeyError, TypeError or ValueError on malformed input; the JSON
repository turns those into RepositoryParseError with the file path.
"""

from datetime import datetime
from types import MappingProxyType
from typing import Any

from reqctl.lifecycle._models import (
    ArtifactType,
    ChangeRequest,
    ChangeRequestStatus,
    EntityType,
    HistoryAction,
    HistoryEntry,
    IdentifierKind,
    ImpactLevel,
    Priority,
    Requirement,
    RequirementBaseline,
    RequirementKind,
    RequirementSnapshot,
    RequirementStatus,
    TraceLink,
)
from reqctl.repository._state import ProjectState

__all__ = ["FORMAT_VERSION", "state_from_dict", "state_to_dict"]

FORMAT_VERSION = 1

type JsonDict = dict[str, Any]  # pyright: ignore[reportExplicitAny]


def _timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        msg = f"Timestamp must be timezone-aware: {value}"
        raise ValueError(msg)
    return parsed


def _optional_timestamp(value: str | None) -> datetime | None:
    return _timestamp(value) if value is not None else None


# =============================================================================
# Requirements
# =============================================================================


def requirement_to_dict(requirement: Requirement) -> JsonDict:
    """Convert a requirement to a JSON-ready dictionary."""
    return {
        "id": requirement.id,
        "display_id": requirement.display_id,
        "project_id": requirement.project_id,
        "title": requirement.title,
        "kind": requirement.kind.value,
        "priority": requirement.priority.value,
        "status": requirement.status.value,
        "owner_id": requirement.owner_id,
        "created_at": requirement.created_at.isoformat(),
        "updated_at": requirement.updated_at.isoformat(),
        "description": requirement.description,
        "parent_id": requirement.parent_id,
        "acceptance_criteria": list(requirement.acceptance_criteria),
        "tags": sorted(requirement.tags),
        "source": requirement.source,
        "is_baselined": requirement.is_baselined,
        "baseline_version": requirement.baseline_version,
        "has_unbaselined_changes": requirement.has_unbaselined_changes,
        "revision": requirement.revision,
        "deleted_at": (
            requirement.deleted_at.isoformat() if requirement.deleted_at else None
        ),
    }


def requirement_from_dict(data: JsonDict) -> Requirement:
    """Build a requirement from its dictionary form."""
    return Requirement(
        id=data["id"],
        display_id=data["display_id"],
        project_id=data["project_id"],
        title=data["title"],
        kind=RequirementKind(data["kind"]),
        priority=Priority(data["priority"]),
        status=RequirementStatus(data["status"]),
        owner_id=data["owner_id"],
        created_at=_timestamp(data["created_at"]),
        updated_at=_timestamp(data["updated_at"]),
        description=data.get("description"),
        parent_id=data.get("parent_id"),
        acceptance_criteria=tuple(data.get("acceptance_criteria", ())),
        tags=frozenset(data.get("tags", ())),
        source=data.get("source"),
        is_baselined=bool(data.get("is_baselined", False)),
        baseline_version=int(data.get("baseline_version", 0)),
        has_unbaselined_changes=bool(data.get("has_unbaselined_changes", False)),
        revision=int(data.get("revision", 1)),
        deleted_at=_optional_timestamp(data.get("deleted_at")),
    )


def _snapshot_to_dict(snapshot: RequirementSnapshot) -> JsonDict:
    return {
        "display_id": snapshot.display_id,
        "title": snapshot.title,
        "description": snapshot.description,
        "kind": snapshot.kind.value,
        "priority": snapshot.priority.value,
        "status": snapshot.status.value,
        "owner_id": snapshot.owner_id,
        "parent_id": snapshot.parent_id,
        "acceptance_criteria": list(snapshot.acceptance_criteria),
        "tags": sorted(snapshot.tags),
        "source": snapshot.source,
    }


def _snapshot_from_dict(data: JsonDict) -> RequirementSnapshot:
    return RequirementSnapshot(
        display_id=data["display_id"],
        title=data["title"],
        description=data.get("description"),
        kind=RequirementKind(data["kind"]),
        priority=Priority(data["priority"]),
        status=RequirementStatus(data["status"]),
        owner_id=data["owner_id"],
        parent_id=data.get("parent_id"),
        acceptance_criteria=tuple(data.get("acceptance_criteria", ())),
        tags=frozenset(data.get("tags", ())),
        source=data.get("source"),
    )


def baseline_to_dict(baseline: RequirementBaseline) -> JsonDict:
    """Convert a baseline to a JSON-ready dictionary."""
    return {
        "project_id": baseline.project_id,
        "requirement_id": baseline.requirement_id,
        "version": baseline.version,
        "snapshot": _snapshot_to_dict(baseline.snapshot),
        "captured_at": baseline.captured_at.isoformat(),
        "captured_by": baseline.captured_by,
    }


def baseline_from_dict(data: JsonDict) -> RequirementBaseline:
    """Build a baseline from its dictionary form."""
    return RequirementBaseline(
        project_id=data["project_id"],
        requirement_id=data["requirement_id"],
        version=int(data["version"]),
        snapshot=_snapshot_from_dict(data["snapshot"]),
        captured_at=_timestamp(data["captured_at"]),
        captured_by=data["captured_by"],
    )


# =============================================================================
# Change Requests
# =============================================================================


def change_request_to_dict(change_request: ChangeRequest) -> JsonDict:
    """Convert a change request to a JSON-ready dictionary."""
    cr = change_request
    return {
        "id": cr.id,
        "display_id": cr.display_id,
        "project_id": cr.project_id,
        "requirement_id": cr.requirement_id,
        "title": cr.title,
        "reason": cr.reason,
        "impact_level": cr.impact_level.value,
        "status": cr.status.value,
        "requester_id": cr.requester_id,
        "created_at": cr.created_at.isoformat(),
        "updated_at": cr.updated_at.isoformat(),
        "description": cr.description,
        "impact_description": cr.impact_description,
        "risk_description": cr.risk_description,
        "schedule_impact_description": cr.schedule_impact_description,
        "cost_estimate": cr.cost_estimate,
        "time_estimate_hours": cr.time_estimate_hours,
        "affected_releases": list(cr.affected_releases),
        "reviewer_id": cr.reviewer_id,
        "approved_by": cr.approved_by,
        "approved_at": cr.approved_at.isoformat() if cr.approved_at else None,
        "rejection_reason": cr.rejection_reason,
        "implemented_at": cr.implemented_at.isoformat() if cr.implemented_at else None,
        "revision": cr.revision,
    }


def change_request_from_dict(data: JsonDict) -> ChangeRequest:
    """Build a change request from its dictionary form."""
    cost = data.get("cost_estimate")
    hours = data.get("time_estimate_hours")
    return ChangeRequest(
        id=data["id"],
        display_id=data["display_id"],
        project_id=data["project_id"],
        requirement_id=data["requirement_id"],
        title=data["title"],
        reason=data["reason"],
        impact_level=ImpactLevel(data["impact_level"]),
        status=ChangeRequestStatus(data["status"]),
        requester_id=data["requester_id"],
        created_at=_timestamp(data["created_at"]),
        updated_at=_timestamp(data["updated_at"]),
        description=data.get("description"),
        impact_description=data.get("impact_description"),
        risk_description=data.get("risk_description"),
        schedule_impact_description=data.get("schedule_impact_description"),
        cost_estimate=float(cost) if cost is not None else None,
        time_estimate_hours=int(hours) if hours is not None else None,
        affected_releases=tuple(data.get("affected_releases", ())),
        reviewer_id=data.get("reviewer_id"),
        approved_by=data.get("approved_by"),
        approved_at=_optional_timestamp(data.get("approved_at")),
        rejection_reason=data.get("rejection_reason"),
        implemented_at=_optional_timestamp(data.get("implemented_at")),
        revision=int(data.get("revision", 1)),
    )


# =============================================================================
# Links and History
# =============================================================================


def link_to_dict(link: TraceLink) -> JsonDict:
    """Convert a trace link to a JSON-ready dictionary."""
    return {
        "project_id": link.project_id,
        "requirement_id": link.requirement_id,
        "artifact_type": link.artifact_type.value,
        "artifact_id": link.artifact_id,
        "created_at": link.created_at.isoformat(),
        "created_by": link.created_by,
    }


def link_from_dict(data: JsonDict) -> TraceLink:
    """Build a trace link from its dictionary form."""
    return TraceLink(
        project_id=data["project_id"],
        requirement_id=data["requirement_id"],
        artifact_type=ArtifactType(data["artifact_type"]),
        artifact_id=data["artifact_id"],
        created_at=_timestamp(data["created_at"]),
        created_by=data.get("created_by"),
    )


def history_entry_to_dict(entry: HistoryEntry) -> JsonDict:
    """Convert a history entry to a JSON-ready dictionary."""
    return {
        "project_id": entry.project_id,
        "entity_type": entry.entity_type.value,
        "entity_id": entry.entity_id,
        "action": entry.action.value,
        "actor_id": entry.actor_id,
        "sequence": entry.sequence,
        "timestamp": entry.timestamp.isoformat(),
        "version": entry.version,
        "details": dict(entry.details),
    }


def history_entry_from_dict(data: JsonDict) -> HistoryEntry:
    """Build a history entry from its dictionary form."""
    version = data.get("version")
    return HistoryEntry(
        project_id=data["project_id"],
        entity_type=EntityType(data["entity_type"]),
        entity_id=data["entity_id"],
        action=HistoryAction(data["action"]),
        actor_id=data["actor_id"],
        sequence=int(data["sequence"]),
        timestamp=_timestamp(data["timestamp"]),
        version=int(version) if version is not None else None,
        details=MappingProxyType(dict(data.get("details", {}))),
    )


# =============================================================================
# Project Documents
# =============================================================================


def state_to_dict(state: ProjectState) -> JsonDict:
    """Convert a whole project to its JSON document."""
    return {
        "version": FORMAT_VERSION,
        "project_id": state.project_id,
        "counters": {kind.value: value for kind, value in state.counters.items()},
        "requirements": [requirement_to_dict(r) for r in state.requirements.values()],
        "change_requests": [
            change_request_to_dict(cr) for cr in state.change_requests.values()
        ],
        "baselines": [
            baseline_to_dict(b) for items in state.baselines.values() for b in items
        ],
        "links": [link_to_dict(link) for link in state.links.values()],
        "history": [
            history_entry_to_dict(entry)
            for trail in state.history.values()
            for entry in trail
        ],
    }


def state_from_dict(data: JsonDict) -> ProjectState:
    """Build a project from its JSON document.

    Raises:
        ValueError: If the document format version is unsupported.
    """
    if data.get("version") != FORMAT_VERSION:
        msg = f"Unsupported project format version: {data.get('version')!r}"
        raise ValueError(msg)

    state = ProjectState(project_id=data["project_id"])
    state.counters = {
        IdentifierKind(kind): int(value) for kind, value in data["counters"].items()
    }
    for item in data["requirements"]:
        requirement = requirement_from_dict(item)
        state.requirements[requirement.id] = requirement
    for item in data["change_requests"]:
        change_request = change_request_from_dict(item)
        state.change_requests[change_request.id] = change_request
    for item in sorted(data["baselines"], key=lambda b: b["version"]):
        baseline = baseline_from_dict(item)
        state.baselines.setdefault(baseline.requirement_id, []).append(baseline)
    for item in data["links"]:
        link = link_from_dict(item)
        state.links[link.key] = link
    for item in sorted(data["history"], key=lambda h: h["sequence"]):
        entry = history_entry_from_dict(item)
        state.history.setdefault((entry.entity_type, entry.entity_id), []).append(
            entry
        )
    return state
