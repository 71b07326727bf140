# pyright: reportExplicitAny=false
"""Change-control engine for requests for change (RFCs).

This module provides the ChangeControlEngine class. A change request targets
exactly one requirement and follows its own workflow; approving or
implementing a request never changes the requirement's lifecycle status.
"""

from collections.abc import Iterable, Iterator  # noqa: TC003
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Final
from uuid import uuid4

from reqctl.exceptions import (
    ChangeRequestNotFoundError,
    ConflictError,
    LifecycleValidationError,
)
from reqctl.lifecycle._concurrency import LockRegistry, retry_on_conflict
from reqctl.lifecycle._history_manager import HistoryLedger
from reqctl.lifecycle._ids import IdentifierAllocator, display_sequence
from reqctl.lifecycle._lazy import LazySequence
from reqctl.lifecycle._models import (
    ArtifactType,
    ChangeRequest,
    ChangeRequestStatus,
    EntityType,
    HistoryAction,
    HistoryEntry,
    IdentifierKind,
    ImpactAnalysis,
    ImpactLevel,
)
from reqctl.lifecycle._requirement_manager import RequirementStore
from reqctl.lifecycle._transitions import validate_change_request_transition
from reqctl.lifecycle._unit_of_work import UnitOfWork
from reqctl.lifecycle._validation import (
    coerce_enum,
    optional_text,
    require_non_negative,
    require_text,
)

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from reqctl.repository import RepositoryProtocol

__all__ = ["EDITABLE_STATUSES", "ChangeControlEngine"]

EDITABLE_STATUSES: Final = frozenset(
    {ChangeRequestStatus.PROPOSED, ChangeRequestStatus.UNDER_REVIEW}
)


def _validate_hours(value: int | None) -> int | None:
    if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
        msg = f"time_estimate_hours must be an integer, got {value!r}"
        raise LifecycleValidationError(
            msg, field="time_estimate_hours", value=value, expected="integer >= 0"
        )
    return require_non_negative(value, "time_estimate_hours")


def _validate_releases(releases: Iterable[str]) -> tuple[str, ...]:
    if isinstance(releases, str):
        msg = "affected_releases must be a sequence of strings"
        raise LifecycleValidationError(
            msg, field="affected_releases", value=releases, expected="sequence"
        )
    return tuple(require_text(release, "affected_releases") for release in releases)


class ChangeControlEngine:
    """Owner of change requests and their workflow.

    Attributes:
        _repository: Project storage.
        _requirements: Requirement store used to resolve targets.
        _ids: Display identifier allocator.
        _history: Ledger that stages audit entries.
        _locks: Engine-scoped per-entity locks.
    """

    __slots__: Final = (
        "_history",
        "_ids",
        "_locks",
        "_logger",
        "_max_retries",
        "_repository",
        "_requirements",
    )

    _repository: "RepositoryProtocol"  # noqa: UP037
    _requirements: RequirementStore
    _ids: IdentifierAllocator
    _history: HistoryLedger
    _locks: LockRegistry
    _max_retries: int
    _logger: "FilteringBoundLogger | None"  # noqa: UP037

    def __init__(  # noqa: PLR0913
        self,
        repository: "RepositoryProtocol",  # noqa: UP037
        requirements: RequirementStore,
        ids: IdentifierAllocator,
        history: HistoryLedger,
        locks: LockRegistry,
        *,
        max_retries: int = 3,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize the change-control engine.

        Args:
            repository: Project storage.
            requirements: Requirement store used to resolve targets.
            ids: Display identifier allocator.
            history: Ledger that stages audit entries.
            locks: Engine-scoped per-entity locks.
            max_retries: Retries after a concurrency conflict.
            logger: Optional structured logger.
        """
        self._repository = repository
        self._requirements = requirements
        self._ids = ids
        self._history = history
        self._locks = locks
        self._max_retries = max_retries
        self._logger = logger

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    def get_change_request(
        self, project_id: str, change_request_id: str
    ) -> ChangeRequest:
        """Get a change request by its opaque id.

        Raises:
            ChangeRequestNotFoundError: If it does not exist.
        """
        change_request = self._repository.get_change_request(
            project_id, change_request_id
        )
        if change_request is None:
            msg = f"Change request not found: {change_request_id}"
            raise ChangeRequestNotFoundError(msg, change_request_id=change_request_id)
        return change_request

    def resolve(self, project_id: str, reference: str) -> ChangeRequest:
        """Get a change request by opaque id or display id (``RFC-0001``).

        Raises:
            ChangeRequestNotFoundError: If nothing matches.
        """
        found = self._repository.get_change_request(project_id, reference)
        if found is not None:
            return found
        for change_request in self._repository.snapshot(
            project_id
        ).change_requests.values():
            if change_request.display_id == reference:
                return change_request
        msg = f"Change request not found: {reference}"
        raise ChangeRequestNotFoundError(msg, change_request_id=reference)

    def get_change_requests_for_requirement(
        self, project_id: str, requirement_id: str
    ) -> LazySequence[ChangeRequest]:
        """Return the change requests targeting a requirement, newest first.

        Raises:
            RequirementNotFoundError: If the requirement never existed.
        """
        _ = self._requirements.get_requirement(
            project_id, requirement_id, include_deleted=True
        )

        def produce() -> Iterator[ChangeRequest]:
            snapshot = self._repository.snapshot(project_id)
            yield from snapshot.change_requests_for(requirement_id)

        return LazySequence(produce)

    def list_change_requests(
        self,
        project_id: str,
        *,
        filter_status: ChangeRequestStatus | str | None = None,
        filter_impact: ImpactLevel | str | None = None,
    ) -> list[ChangeRequest]:
        """List a project's change requests, newest first.

        Raises:
            LifecycleValidationError: If a filter value is not a valid member.
        """
        status = (
            coerce_enum(ChangeRequestStatus, filter_status, "status")
            if filter_status
            else None
        )
        impact = (
            coerce_enum(ImpactLevel, filter_impact, "impact_level")
            if filter_impact
            else None
        )
        snapshot = self._repository.snapshot(project_id)
        return sorted(
            (
                cr
                for cr in snapshot.change_requests.values()
                if (status is None or cr.status == status)
                and (impact is None or cr.impact_level == impact)
            ),
            key=lambda cr: display_sequence(cr.display_id),
            reverse=True,
        )

    def analyze_impact(
        self, project_id: str, change_request_id: str
    ) -> ImpactAnalysis:
        """Assess what a change request touches.

        The affected requirements are the target and its live descendants.
        Tasks and test cases linked to any of them are affected; stakeholders
        are taken from the target's own links.

        Raises:
            ChangeRequestNotFoundError: If the change request does not exist.
        """
        change_request = self.get_change_request(project_id, change_request_id)
        snapshot = self._repository.snapshot(project_id)
        requirement = snapshot.requirements[change_request.requirement_id]

        index = snapshot.children_index()
        affected: list[str] = []
        pending = [requirement.id]
        while pending:
            current = pending.pop(0)
            affected.append(current)
            pending.extend(child.id for child in index.get(current, ()))

        artifacts = snapshot.artifacts_by_requirement()

        def collect(artifact_type: ArtifactType, ids: Iterable[str]) -> tuple[str, ...]:
            seen: dict[str, None] = {}
            for rid in ids:
                for artifact_id in artifacts.get(rid, {}).get(artifact_type, ()):
                    seen[artifact_id] = None
            return tuple(seen)

        open_requests = tuple(
            cr.display_id
            for cr in snapshot.change_requests_for(requirement.id)
            if cr.id != change_request.id and not cr.is_terminal
        )
        return ImpactAnalysis(
            change_request=change_request,
            requirement=requirement,
            affected_requirement_ids=tuple(affected),
            affected_tasks=collect(ArtifactType.TASK, affected),
            affected_test_cases=collect(ArtifactType.TEST_CASE, affected),
            affected_stakeholders=collect(ArtifactType.STAKEHOLDER, [requirement.id]),
            open_change_requests=open_requests,
        )

    # -------------------------------------------------------------------------
    # Mutation Methods
    # -------------------------------------------------------------------------

    def create_change_request(  # noqa: PLR0913
        self,
        project_id: str,
        *,
        requirement_id: str,
        title: str,
        reason: str,
        requester_id: str,
        impact_level: ImpactLevel | str | None = None,
        description: str | None = None,
        impact_description: str | None = None,
        risk_description: str | None = None,
        schedule_impact_description: str | None = None,
        cost_estimate: float | None = None,
        time_estimate_hours: int | None = None,
        affected_releases: Iterable[str] = (),
    ) -> ChangeRequest:
        """Propose a change against a requirement.

        Args:
            project_id: The project.
            requirement_id: Opaque key of the targeted requirement.
            title: Non-empty title.
            reason: Non-empty justification.
            requester_id: Actor proposing the change (also the history actor).
            impact_level: Estimated impact; defaults to ``medium``.
            description: Detailed description of the change.
            impact_description: Narrative of the impact.
            risk_description: Narrative of the risks.
            schedule_impact_description: Narrative of the schedule impact.
            cost_estimate: Non-negative cost estimate.
            time_estimate_hours: Non-negative integer effort estimate.
            affected_releases: Releases the change touches.

        Returns:
            The new change request in ``proposed`` status.

        Raises:
            RequirementNotFoundError: If the requirement does not exist or is
                tombstoned.
            LifecycleValidationError: If a field is invalid.
        """
        clean_title = require_text(title, "title")
        clean_reason = require_text(reason, "reason")
        clean_requester = require_text(requester_id, "requester_id")
        clean_impact = (
            coerce_enum(ImpactLevel, impact_level, "impact_level")
            if impact_level is not None
            else ImpactLevel.MEDIUM
        )
        clean_cost = require_non_negative(cost_estimate, "cost_estimate")
        clean_hours = _validate_hours(time_estimate_hours)
        clean_releases = _validate_releases(affected_releases)

        def attempt() -> ChangeRequest:
            requirement = self._requirements.get_requirement(project_id, requirement_id)
            with self._ids.reserve(
                project_id, IdentifierKind.CHANGE_REQUEST
            ) as allocated:
                now = datetime.now(UTC)
                change_request = ChangeRequest(
                    id=uuid4().hex,
                    display_id=allocated.display_id,
                    project_id=project_id,
                    requirement_id=requirement.id,
                    title=clean_title,
                    reason=clean_reason,
                    impact_level=clean_impact,
                    status=ChangeRequestStatus.PROPOSED,
                    requester_id=clean_requester,
                    created_at=now,
                    updated_at=now,
                    description=optional_text(description),
                    impact_description=optional_text(impact_description),
                    risk_description=optional_text(risk_description),
                    schedule_impact_description=optional_text(
                        schedule_impact_description
                    ),
                    cost_estimate=clean_cost,
                    time_estimate_hours=clean_hours,
                    affected_releases=clean_releases,
                )

                unit = UnitOfWork(project_id)
                unit.put_change_request(change_request, expected_revision=None)
                unit.guard(
                    EntityType.REQUIREMENT,
                    requirement.id,
                    revision=requirement.revision,
                )
                allocated.stage(unit)
                _ = self._history.stage(
                    unit,
                    entity_type=EntityType.CHANGE_REQUEST,
                    entity_id=change_request.id,
                    action=HistoryAction.CREATED,
                    actor_id=clean_requester,
                    timestamp=now,
                    details={
                        "display_id": change_request.display_id,
                        "requirement_id": requirement.id,
                        "requirement_display_id": requirement.display_id,
                        "title": change_request.title,
                        "impact_level": change_request.impact_level,
                    },
                )
                _ = self._repository.commit(unit)
                return change_request

        # Serializes with the active change request check of delete_requirement.
        with self._locks.hold(project_id, requirement_id):
            change_request = retry_on_conflict(
                attempt,
                attempts=self._max_retries,
                logger=self._logger,
                operation_name="create_change_request",
            )

        if self._logger:
            self._logger.info(
                "change_request_created",
                project_id=project_id,
                change_request_id=change_request.id,
                display_id=change_request.display_id,
                requirement_id=requirement_id,
                actor=clean_requester,
            )
        return change_request

    def transition_status(
        self,
        project_id: str,
        change_request_id: str,
        target: ChangeRequestStatus | str,
        *,
        actor: str,
        reason: str | None = None,
    ) -> ChangeRequest:
        """Move a change request through its workflow.

        Entering ``under_review`` records the reviewer, ``approved`` records
        the approver and time, ``rejected`` requires a reason and
        ``implemented`` records the time.

        Args:
            project_id: The project.
            change_request_id: Opaque change request key.
            target: Requested status.
            actor: The actor performing the action (for history).
            reason: Why; required when rejecting.

        Returns:
            The updated change request.

        Raises:
            ChangeRequestNotFoundError: If the change request does not exist.
            InvalidTransitionError: If the table does not allow the move.
            LifecycleValidationError: If the target is not a status, or a
                rejection has no reason.
        """
        requested = coerce_enum(ChangeRequestStatus, target, "status")
        note = optional_text(reason)

        def attempt() -> ChangeRequest:
            current = self.get_change_request(project_id, change_request_id)
            validate_change_request_transition(
                current.display_id, current.status, requested
            )
            if requested is ChangeRequestStatus.REJECTED and note is None:
                msg = f"Rejecting {current.display_id} requires a reason"
                raise LifecycleValidationError(
                    msg, field="reason", value=reason, expected="non-empty string"
                )

            now = datetime.now(UTC)
            stamps: dict[str, Any] = {}
            match requested:
                case ChangeRequestStatus.UNDER_REVIEW:
                    stamps["reviewer_id"] = actor
                case ChangeRequestStatus.APPROVED:
                    stamps["approved_by"] = actor
                    stamps["approved_at"] = now
                case ChangeRequestStatus.REJECTED:
                    stamps["rejection_reason"] = note
                case ChangeRequestStatus.IMPLEMENTED:
                    stamps["implemented_at"] = now
                case _:
                    pass

            updated = replace(
                current,
                status=requested,
                updated_at=now,
                revision=current.revision + 1,
                **stamps,
            )
            details: dict[str, Any] = {
                "status": {"old": current.status, "new": requested}
            }
            if note is not None:
                details["reason"] = note

            unit = UnitOfWork(project_id)
            unit.put_change_request(updated, expected_revision=current.revision)
            _ = self._history.stage(
                unit,
                entity_type=EntityType.CHANGE_REQUEST,
                entity_id=current.id,
                action=HistoryAction.STATUS_CHANGED,
                actor_id=actor,
                timestamp=now,
                details=details,
            )
            _ = self._repository.commit(unit)
            return updated

        with self._locks.hold(project_id, change_request_id):
            updated = retry_on_conflict(
                attempt,
                attempts=self._max_retries,
                logger=self._logger,
                operation_name="transition_status",
            )

        if self._logger:
            self._logger.info(
                "change_request_transitioned",
                project_id=project_id,
                change_request_id=change_request_id,
                display_id=updated.display_id,
                status=updated.status.value,
                actor=actor,
            )
        return updated

    def update_change_request(  # noqa: PLR0913
        self,
        project_id: str,
        change_request_id: str,
        *,
        actor: str,
        title: str | None = None,
        reason: str | None = None,
        impact_level: ImpactLevel | str | None = None,
        description: str | None = None,
        impact_description: str | None = None,
        risk_description: str | None = None,
        schedule_impact_description: str | None = None,
        cost_estimate: float | None = None,
        time_estimate_hours: int | None = None,
        affected_releases: Iterable[str] | None = None,
    ) -> ChangeRequest:
        """Edit a change request that is still open for discussion.

        Only ``proposed`` and ``under_review`` requests may be edited. None
        keeps a value; an empty narrative string clears it.

        Returns:
            The updated change request (unchanged when nothing differs).

        Raises:
            ChangeRequestNotFoundError: If the change request does not exist.
            ConflictError: If the request is past review.
            LifecycleValidationError: If a field is invalid.
        """
        patch: dict[str, Any] = {}
        if title is not None:
            patch["title"] = require_text(title, "title")
        if reason is not None:
            patch["reason"] = require_text(reason, "reason")
        if impact_level is not None:
            patch["impact_level"] = coerce_enum(
                ImpactLevel, impact_level, "impact_level"
            )
        for name, value in (
            ("description", description),
            ("impact_description", impact_description),
            ("risk_description", risk_description),
            ("schedule_impact_description", schedule_impact_description),
        ):
            if value is not None:
                patch[name] = optional_text(value)
        if cost_estimate is not None:
            patch["cost_estimate"] = require_non_negative(
                cost_estimate, "cost_estimate"
            )
        if time_estimate_hours is not None:
            patch["time_estimate_hours"] = _validate_hours(time_estimate_hours)
        if affected_releases is not None:
            patch["affected_releases"] = _validate_releases(affected_releases)

        def attempt() -> ChangeRequest:
            current = self.get_change_request(project_id, change_request_id)
            if current.status not in EDITABLE_STATUSES:
                msg = (
                    f"{current.display_id} is '{current.status}' and can no longer "
                    "be edited"
                )
                raise ConflictError(
                    msg, entity_id=current.id, reason="change_request_closed"
                )

            diff = {
                name: {"old": getattr(current, name), "new": value}
                for name, value in patch.items()
                if getattr(current, name) != value
            }
            if not diff:
                return current

            now = datetime.now(UTC)
            updated = replace(
                current,
                **{name: d["new"] for name, d in diff.items()},
                updated_at=now,
                revision=current.revision + 1,
            )
            unit = UnitOfWork(project_id)
            unit.put_change_request(updated, expected_revision=current.revision)
            _ = self._history.stage(
                unit,
                entity_type=EntityType.CHANGE_REQUEST,
                entity_id=current.id,
                action=HistoryAction.EDITED,
                actor_id=actor,
                timestamp=now,
                details=diff,
            )
            _ = self._repository.commit(unit)
            return updated

        with self._locks.hold(project_id, change_request_id):
            updated = retry_on_conflict(
                attempt,
                attempts=self._max_retries,
                logger=self._logger,
                operation_name="update_change_request",
            )

        if self._logger:
            self._logger.info(
                "change_request_updated",
                project_id=project_id,
                change_request_id=change_request_id,
                revision=updated.revision,
                actor=actor,
            )
        return updated

    def add_comment(
        self, project_id: str, change_request_id: str, *, actor: str, content: str
    ) -> HistoryEntry:
        """Record a comment on a change request's history.

        Comments are accepted in every status, terminal ones included.

        Raises:
            ChangeRequestNotFoundError: If the change request does not exist.
            LifecycleValidationError: If the comment is blank.
        """
        text = require_text(content, "content")
        with self._locks.hold(project_id, change_request_id):
            current = self.get_change_request(project_id, change_request_id)
            unit = UnitOfWork(project_id)
            unit.guard(
                EntityType.CHANGE_REQUEST, current.id, revision=current.revision
            )
            _ = self._history.stage(
                unit,
                entity_type=EntityType.CHANGE_REQUEST,
                entity_id=current.id,
                action=HistoryAction.COMMENTED,
                actor_id=actor,
                details={"content": text},
            )
            (entry,) = self._repository.commit(unit)

        if self._logger:
            self._logger.info(
                "change_request_commented",
                project_id=project_id,
                change_request_id=change_request_id,
                actor=actor,
            )
        return entry
