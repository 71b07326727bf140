"""Data models for the requirements lifecycle engine.

This module defines all enums and dataclasses for requirements, baselines,
change requests, traceability links and history entries. All models are frozen
dataclasses with slots so that a value handed to a caller can never be mutated
behind the store's back; updates always produce a new instance via
``dataclasses.replace``.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Any

# =============================================================================
# Classification Enums
# =============================================================================


class RequirementKind(StrEnum):
    """Requirement classification."""

    FUNCTIONAL = "functional"
    NON_FUNCTIONAL = "non_functional"
    BUSINESS = "business"
    TECHNICAL = "technical"


class Priority(StrEnum):
    """Requirement priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ImpactLevel(StrEnum):
    """Estimated impact of a change request."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ArtifactType(StrEnum):
    """External artifact kinds a requirement can be traced to."""

    TASK = "task"
    TEST_CASE = "test_case"
    STAKEHOLDER = "stakeholder"
    MEETING = "meeting"


class EntityType(StrEnum):
    """Entity kinds that own a history trail."""

    REQUIREMENT = "requirement"
    CHANGE_REQUEST = "change_request"


class IdentifierKind(StrEnum):
    """Identifier sequences maintained per project."""

    REQUIREMENT = "requirement"
    CHANGE_REQUEST = "change_request"


# =============================================================================
# Status Enums
# =============================================================================


class RequirementStatus(StrEnum):
    """Requirement lifecycle status values.

    Tracks the progression of a requirement from first draft through review,
    approval, implementation and verification until it is closed.
    """

    DRAFT = "draft"
    REVIEW = "review"
    APPROVED = "approved"
    IMPLEMENTED = "implemented"
    VERIFIED = "verified"
    CLOSED = "closed"


class ChangeRequestStatus(StrEnum):
    """Change request (RFC) workflow status values."""

    PROPOSED = "proposed"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    IMPLEMENTED = "implemented"
    CANCELLED = "cancelled"


class HistoryAction(StrEnum):
    """Closed set of audited actions.

    Requirements may record every action; change requests only record
    ``created``, ``edited``, ``status_changed`` and ``commented``.
    """

    CREATED = "created"
    EDITED = "edited"
    STATUS_CHANGED = "status_changed"
    REPARENTED = "reparented"
    BASELINED = "baselined"
    COMMENTED = "commented"
    LINKED = "linked"
    UNLINKED = "unlinked"
    DELETED = "deleted"


# =============================================================================
# Requirement Models
# =============================================================================


@dataclass(frozen=True, slots=True)
class Requirement:
    """A tracked requirement.

    Attributes:
        id: Opaque internal key.
        display_id: Human-readable identifier, unique per project, never reused.
        project_id: Owning project.
        title: Short non-empty title.
        kind: Requirement classification.
        priority: Requirement priority.
        status: Current lifecycle status.
        owner_id: Identifier of the responsible party.
        created_at: When the requirement was created.
        updated_at: When the requirement was last changed.
        description: Optional detailed description.
        parent_id: Opaque key of the parent requirement, if any.
        acceptance_criteria: Ordered acceptance criteria; duplicates allowed.
        tags: Unordered unique tags.
        source: Where the requirement originated (meeting, document, person).
        is_baselined: Whether at least one baseline exists.
        baseline_version: Latest baseline version, 0 when never baselined.
        has_unbaselined_changes: Whether content changed after the last baseline.
        revision: Optimistic-concurrency counter, bumped on every write.
        deleted_at: Tombstone timestamp; set once the requirement is deleted.
    """

    # Required
    id: str
    display_id: str
    project_id: str
    title: str
    kind: RequirementKind
    priority: Priority
    status: RequirementStatus
    owner_id: str
    created_at: datetime
    updated_at: datetime
    # Optional
    description: str | None = None
    parent_id: str | None = None
    acceptance_criteria: tuple[str, ...] = ()
    tags: frozenset[str] = field(default_factory=frozenset)
    source: str | None = None
    # Baseline tracking
    is_baselined: bool = False
    baseline_version: int = 0
    has_unbaselined_changes: bool = False
    # Bookkeeping
    revision: int = 1
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        """Return True when the requirement has been tombstoned."""
        return self.deleted_at is not None


@dataclass(frozen=True, slots=True)
class RequirementSnapshot:
    """Copy of a requirement's content fields at capture time.

    Attributes:
        display_id: Human-readable identifier.
        title: Title at capture time.
        description: Description at capture time.
        kind: Classification at capture time.
        priority: Priority at capture time.
        status: Lifecycle status at capture time.
        owner_id: Responsible party at capture time.
        parent_id: Parent key at capture time.
        acceptance_criteria: Acceptance criteria at capture time.
        tags: Tags at capture time.
        source: Source at capture time.
    """

    display_id: str
    title: str
    description: str | None
    kind: RequirementKind
    priority: Priority
    status: RequirementStatus
    owner_id: str
    parent_id: str | None
    acceptance_criteria: tuple[str, ...]
    tags: frozenset[str]
    source: str | None


@dataclass(frozen=True, slots=True)
class RequirementBaseline:
    """An immutable, versioned snapshot of a requirement.

    Attributes:
        project_id: Owning project.
        requirement_id: Opaque key of the baselined requirement.
        version: 1-based version, gap-free per requirement.
        snapshot: Content captured at baseline time.
        captured_at: When the baseline was taken.
        captured_by: Actor who took the baseline.
    """

    project_id: str
    requirement_id: str
    version: int
    snapshot: RequirementSnapshot
    captured_at: datetime
    captured_by: str


@dataclass(frozen=True, slots=True)
class FieldChange:
    """A single field difference.

    Attributes:
        field: Field name.
        old: Value before the change.
        new: Value after the change.
    """

    field: str
    old: Any  # pyright: ignore[reportExplicitAny]
    new: Any  # pyright: ignore[reportExplicitAny]


@dataclass(frozen=True, slots=True)
class BaselineDiff:
    """Field-level difference between two snapshots of one requirement.

    Attributes:
        requirement_id: The compared requirement.
        from_version: Version on the left side (0 denotes the live requirement).
        to_version: Version on the right side (0 denotes the live requirement).
        changes: Changed fields in snapshot field order.
    """

    requirement_id: str
    from_version: int
    to_version: int
    changes: tuple[FieldChange, ...] = ()

    @property
    def is_empty(self) -> bool:
        """Return True when both sides are identical."""
        return not self.changes

    @property
    def changed_fields(self) -> tuple[str, ...]:
        """Return the names of the changed fields."""
        return tuple(change.field for change in self.changes)


# =============================================================================
# Change Request Models
# =============================================================================


@dataclass(frozen=True, slots=True)
class ChangeRequest:
    """A formal request for change against one requirement.

    Attributes:
        id: Opaque internal key.
        display_id: Human-readable identifier, unique per project.
        project_id: Owning project.
        requirement_id: Opaque key of the targeted requirement.
        title: Non-empty title.
        reason: Non-empty justification.
        impact_level: Estimated impact.
        status: Current workflow status.
        requester_id: Actor who proposed the change.
        created_at: When the change request was created.
        updated_at: When the change request was last changed.
        description: Optional detailed description of the change.
        impact_description: Narrative of the impact.
        risk_description: Narrative of the risks.
        schedule_impact_description: Narrative of the schedule impact.
        cost_estimate: Non-negative cost estimate.
        time_estimate_hours: Non-negative effort estimate in hours.
        affected_releases: Releases the change touches.
        reviewer_id: Actor who moved the request under review.
        approved_by: Actor who approved the request.
        approved_at: When the request was approved.
        rejection_reason: Why the request was rejected.
        implemented_at: When the request was marked implemented.
        revision: Optimistic-concurrency counter, bumped on every write.
    """

    # Required
    id: str
    display_id: str
    project_id: str
    requirement_id: str
    title: str
    reason: str
    impact_level: ImpactLevel
    status: ChangeRequestStatus
    requester_id: str
    created_at: datetime
    updated_at: datetime
    # Optional narrative
    description: str | None = None
    impact_description: str | None = None
    risk_description: str | None = None
    schedule_impact_description: str | None = None
    # Estimates
    cost_estimate: float | None = None
    time_estimate_hours: int | None = None
    affected_releases: tuple[str, ...] = ()
    # Workflow stamps
    reviewer_id: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    rejection_reason: str | None = None
    implemented_at: datetime | None = None
    # Bookkeeping
    revision: int = 1

    @property
    def is_terminal(self) -> bool:
        """Return True when no further transitions are allowed."""
        return self.status in {
            ChangeRequestStatus.REJECTED,
            ChangeRequestStatus.IMPLEMENTED,
            ChangeRequestStatus.CANCELLED,
        }


@dataclass(frozen=True, slots=True)
class ImpactAnalysis:
    """Impact of a change request on the requirement tree and its links.

    Attributes:
        change_request: The analyzed change request.
        requirement: The targeted requirement.
        affected_requirement_ids: The target plus its live descendants.
        affected_tasks: Task ids linked to any affected requirement.
        affected_test_cases: Test case ids linked to any affected requirement.
        affected_stakeholders: Stakeholder ids linked to the target.
        open_change_requests: Other non-terminal change requests on the target.
    """

    change_request: ChangeRequest
    requirement: Requirement
    affected_requirement_ids: tuple[str, ...]
    affected_tasks: tuple[str, ...]
    affected_test_cases: tuple[str, ...]
    affected_stakeholders: tuple[str, ...]
    open_change_requests: tuple[str, ...]


# =============================================================================
# Traceability Models
# =============================================================================


@dataclass(frozen=True, slots=True)
class TraceLink:
    """A typed link between a requirement and an external artifact.

    Attributes:
        project_id: Owning project.
        requirement_id: Opaque key of the linked requirement.
        artifact_type: Kind of the external artifact.
        artifact_id: Identifier of the external artifact.
        created_at: When the link was created.
        created_by: Actor who created the link.
    """

    project_id: str
    requirement_id: str
    artifact_type: ArtifactType
    artifact_id: str
    created_at: datetime
    created_by: str | None = None

    @property
    def key(self) -> tuple[str, ArtifactType, str]:
        """Return the uniqueness key of the link."""
        return (self.requirement_id, self.artifact_type, self.artifact_id)


@dataclass(frozen=True, slots=True)
class TraceabilityRow:
    """One requirement's row of the traceability matrix.

    Attributes:
        requirement_id: Opaque requirement key.
        display_id: Human-readable requirement identifier.
        title: Requirement title.
        kind: Requirement classification.
        status: Requirement status.
        artifacts: Linked artifact ids grouped by artifact type; every type is
            present, possibly with an empty tuple.
    """

    requirement_id: str
    display_id: str
    title: str
    kind: RequirementKind
    status: RequirementStatus
    artifacts: MappingProxyType[ArtifactType, tuple[str, ...]]

    @property
    def is_covered(self) -> bool:
        """Return True when the row has a task or test case link."""
        return bool(
            self.artifacts[ArtifactType.TASK] or self.artifacts[ArtifactType.TEST_CASE]
        )


@dataclass(frozen=True, slots=True)
class TraceabilityMatrix:
    """Traceability matrix for a project.

    Attributes:
        project_id: The project the matrix was built for.
        rows: Matrix rows in requirement creation order.
    """

    project_id: str
    rows: tuple[TraceabilityRow, ...]

    def row_for(self, requirement_id: str) -> TraceabilityRow | None:
        """Return the row of a requirement, or None if it was filtered out."""
        for row in self.rows:
            if row.requirement_id == requirement_id:
                return row
        return None


@dataclass(frozen=True, slots=True)
class KindCoverage:
    """Coverage statistics for a requirement kind.

    Attributes:
        kind: The requirement kind.
        total: Number of live requirements of this kind.
        covered: Number with at least one task or test case link.
    """

    kind: RequirementKind
    total: int
    covered: int


@dataclass(frozen=True, slots=True)
class CoverageReport:
    """Traceability coverage report for a project.

    Attributes:
        project_id: The project ID.
        total_requirements: Number of live requirements.
        with_tasks: Requirements linked to at least one task.
        with_tests: Requirements linked to at least one test case.
        fully_covered: Requirements linked to both a task and a test case.
        partially_covered: Requirements linked to exactly one of the two.
        uncovered: Requirements linked to neither.
        coverage_percent: Rounded percentage of requirements with a task or
            test case link (0-100).
        by_kind: Coverage breakdown by requirement kind.
    """

    project_id: str
    total_requirements: int
    with_tasks: int
    with_tests: int
    fully_covered: int
    partially_covered: int
    uncovered: int
    coverage_percent: int
    by_kind: tuple[KindCoverage, ...] = ()


# =============================================================================
# History Models
# =============================================================================


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """One entry of the audit trail.

    Attributes:
        project_id: Owning project.
        entity_type: Kind of the audited entity.
        entity_id: Opaque key of the audited entity.
        action: What happened.
        actor_id: Who did it.
        sequence: Per-entity position, 1-based and gap-free.
        timestamp: When it happened.
        version: For requirements, the baseline version in effect (None if the
            requirement was never baselined). Always None for change requests.
        details: Structured diff or note.
    """

    project_id: str
    entity_type: EntityType
    entity_id: str
    action: HistoryAction
    actor_id: str
    sequence: int
    timestamp: datetime
    version: int | None = None
    details: MappingProxyType[str, Any] = field(  # pyright: ignore[reportExplicitAny]
        default_factory=lambda: MappingProxyType({})
    )


@dataclass(frozen=True, slots=True)
class PendingHistoryEntry:
    """A history entry waiting for the repository to assign its sequence.

    Attributes:
        project_id: Owning project.
        entity_type: Kind of the audited entity.
        entity_id: Opaque key of the audited entity.
        action: What happened.
        actor_id: Who did it.
        timestamp: When it happened.
        version: Baseline version in effect, if any.
        details: Structured diff or note.
    """

    project_id: str
    entity_type: EntityType
    entity_id: str
    action: HistoryAction
    actor_id: str
    timestamp: datetime
    version: int | None = None
    details: MappingProxyType[str, Any] = field(  # pyright: ignore[reportExplicitAny]
        default_factory=lambda: MappingProxyType({})
    )

    def assign(
        self, sequence: int, *, not_before: datetime | None = None
    ) -> HistoryEntry:
        """Return the committed entry carrying ``sequence``.

        Args:
            sequence: Position in the entity's trail.
            not_before: Timestamp of the previous entry; the committed
                timestamp is never earlier, keeping each trail monotonic.
        """
        timestamp = self.timestamp
        if not_before is not None and not_before > timestamp:
            timestamp = not_before
        return HistoryEntry(
            project_id=self.project_id,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            action=self.action,
            actor_id=self.actor_id,
            sequence=sequence,
            timestamp=timestamp,
            version=self.version,
            details=self.details,
        )
