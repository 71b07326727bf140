"""Traceability index linking requirements to external artifacts.

This module provides the TraceabilityIndex class. Links are stored as plain
records; the matrix and coverage views are recomputed from a project snapshot
on every call, so they are never stale.
"""

from collections import Counter
from datetime import UTC, datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from reqctl.lifecycle._concurrency import (
    CancellationToken,
    LockRegistry,
    check_cancelled,
    retry_on_conflict,
)
from reqctl.lifecycle._history_manager import HistoryLedger
from reqctl.lifecycle._models import (
    ArtifactType,
    CoverageReport,
    EntityType,
    HistoryAction,
    KindCoverage,
    Requirement,
    RequirementKind,
    RequirementStatus,
    TraceabilityMatrix,
    TraceabilityRow,
    TraceLink,
)
from reqctl.lifecycle._requirement_manager import RequirementStore
from reqctl.lifecycle._unit_of_work import UnitOfWork
from reqctl.lifecycle._validation import coerce_enum, require_text

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from reqctl.repository import RepositoryProtocol

__all__ = ["TraceabilityIndex", "coverage_percent"]

_COVERING_TYPES: Final = (ArtifactType.TASK, ArtifactType.TEST_CASE)


def coverage_percent(covered: int, total: int) -> int:
    """Return ``100 * covered / total`` rounded half up; 0 when total is 0."""
    if total <= 0:
        return 0
    return (200 * covered + total) // (2 * total)


def _row_for(
    requirement: Requirement, grouped: dict[ArtifactType, list[str]]
) -> TraceabilityRow:
    return TraceabilityRow(
        requirement_id=requirement.id,
        display_id=requirement.display_id,
        title=requirement.title,
        kind=requirement.kind,
        status=requirement.status,
        artifacts=MappingProxyType(
            {
                artifact_type: tuple(grouped.get(artifact_type, ()))
                for artifact_type in ArtifactType
            }
        ),
    )


class TraceabilityIndex:
    """Maintains trace links and computes matrix and coverage views.

    Attributes:
        _repository: Project storage.
        _requirements: Requirement store used to validate link targets.
        _history: Ledger that stages audit entries.
        _locks: Engine-scoped per-entity locks.
    """

    __slots__: Final = (
        "_history",
        "_locks",
        "_logger",
        "_max_retries",
        "_repository",
        "_requirements",
    )

    _repository: "RepositoryProtocol"  # noqa: UP037
    _requirements: RequirementStore
    _history: HistoryLedger
    _locks: LockRegistry
    _max_retries: int
    _logger: "FilteringBoundLogger | None"  # noqa: UP037

    def __init__(  # noqa: PLR0913
        self,
        repository: "RepositoryProtocol",  # noqa: UP037
        requirements: RequirementStore,
        history: HistoryLedger,
        locks: LockRegistry,
        *,
        max_retries: int = 3,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize the traceability index.

        Args:
            repository: Project storage.
            requirements: Requirement store used to validate link targets.
            history: Ledger that stages audit entries.
            locks: Engine-scoped per-entity locks.
            max_retries: Retries after a concurrency conflict.
            logger: Optional structured logger.
        """
        self._repository = repository
        self._requirements = requirements
        self._history = history
        self._locks = locks
        self._max_retries = max_retries
        self._logger = logger

    # -------------------------------------------------------------------------
    # Mutation Methods
    # -------------------------------------------------------------------------

    def link(
        self,
        project_id: str,
        requirement_id: str,
        artifact_type: ArtifactType | str,
        artifact_id: str,
        *,
        actor: str,
    ) -> TraceLink:
        """Link a requirement to an external artifact.

        Linking an existing pair again is a no-op that returns the stored link
        and records no history.

        Args:
            project_id: The project.
            requirement_id: Opaque key of a live requirement.
            artifact_type: Kind of the artifact.
            artifact_id: Caller-validated artifact identifier.
            actor: The actor performing the action (for history).

        Returns:
            The stored link.

        Raises:
            RequirementNotFoundError: If the requirement does not exist.
            LifecycleValidationError: If the type or id is invalid.
        """
        kind = coerce_enum(ArtifactType, artifact_type, "artifact_type")
        target = require_text(artifact_id, "artifact_id")
        key = (requirement_id, kind, target)

        def attempt() -> tuple[TraceLink, bool]:
            requirement = self._requirements.get_requirement(project_id, requirement_id)
            for existing in self._repository.snapshot(project_id).links:
                if existing.key == key:
                    return (existing, False)

            now = datetime.now(UTC)
            link = TraceLink(
                project_id=project_id,
                requirement_id=requirement.id,
                artifact_type=kind,
                artifact_id=target,
                created_at=now,
                created_by=actor,
            )
            unit = UnitOfWork(project_id)
            unit.add_link(link)
            self._stage(unit, requirement, HistoryAction.LINKED, actor, link)
            _ = self._repository.commit(unit)
            return (link, True)

        with self._locks.hold(project_id, requirement_id):
            link, created = retry_on_conflict(
                attempt,
                attempts=self._max_retries,
                logger=self._logger,
                operation_name="link",
            )

        if created and self._logger:
            self._logger.info(
                "trace_linked",
                project_id=project_id,
                requirement_id=requirement_id,
                artifact_type=kind.value,
                artifact_id=target,
                actor=actor,
            )
        return link

    def unlink(
        self,
        project_id: str,
        requirement_id: str,
        artifact_type: ArtifactType | str,
        artifact_id: str,
        *,
        actor: str,
    ) -> bool:
        """Remove a link between a requirement and an artifact.

        Removing a link that does not exist is a no-op. Links of tombstoned
        requirements can still be removed.

        Returns:
            True if a link was removed.

        Raises:
            RequirementNotFoundError: If the requirement never existed.
            LifecycleValidationError: If the type or id is invalid.
        """
        kind = coerce_enum(ArtifactType, artifact_type, "artifact_type")
        target = require_text(artifact_id, "artifact_id")
        key = (requirement_id, kind, target)

        def attempt() -> bool:
            requirement = self._requirements.get_requirement(
                project_id, requirement_id, include_deleted=True
            )
            existing = next(
                (
                    link
                    for link in self._repository.snapshot(project_id).links
                    if link.key == key
                ),
                None,
            )
            if existing is None:
                return False

            unit = UnitOfWork(project_id)
            unit.remove_link(key)
            self._stage(unit, requirement, HistoryAction.UNLINKED, actor, existing)
            _ = self._repository.commit(unit)
            return True

        with self._locks.hold(project_id, requirement_id):
            removed = retry_on_conflict(
                attempt,
                attempts=self._max_retries,
                logger=self._logger,
                operation_name="unlink",
            )

        if removed and self._logger:
            self._logger.info(
                "trace_unlinked",
                project_id=project_id,
                requirement_id=requirement_id,
                artifact_type=kind.value,
                artifact_id=target,
                actor=actor,
            )
        return removed

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    def links_for(
        self,
        project_id: str,
        requirement_id: str,
        *,
        artifact_type: ArtifactType | str | None = None,
    ) -> tuple[TraceLink, ...]:
        """Return a requirement's links in creation order.

        Raises:
            RequirementNotFoundError: If the requirement never existed.
        """
        _ = self._requirements.get_requirement(
            project_id, requirement_id, include_deleted=True
        )
        links = self._repository.snapshot(project_id).links_for(requirement_id)
        if artifact_type is None:
            return links
        kind = coerce_enum(ArtifactType, artifact_type, "artifact_type")
        return tuple(link for link in links if link.artifact_type == kind)

    def build_matrix(
        self,
        project_id: str,
        *,
        filter_kind: RequirementKind | str | None = None,
        filter_status: RequirementStatus | str | None = None,
        cancel: CancellationToken | None = None,
    ) -> TraceabilityMatrix:
        """Build the traceability matrix of a project's live requirements.

        Args:
            project_id: The project.
            filter_kind: Only include requirements of this kind.
            filter_status: Only include requirements in this status.
            cancel: Optional token checked between rows.

        Returns:
            Matrix with one row per matching requirement, in creation order.

        Raises:
            OperationCancelledError: If ``cancel`` fires during the build.
        """
        kind = (
            coerce_enum(RequirementKind, filter_kind, "kind") if filter_kind else None
        )
        status = (
            coerce_enum(RequirementStatus, filter_status, "status")
            if filter_status
            else None
        )
        snapshot = self._repository.snapshot(project_id)
        artifacts = snapshot.artifacts_by_requirement()

        rows: list[TraceabilityRow] = []
        for requirement in snapshot.live_requirements():
            check_cancelled(cancel, "build_matrix")
            if kind is not None and requirement.kind != kind:
                continue
            if status is not None and requirement.status != status:
                continue
            rows.append(_row_for(requirement, artifacts.get(requirement.id, {})))
        return TraceabilityMatrix(project_id=project_id, rows=tuple(rows))

    def compute_coverage(self, project_id: str) -> int:
        """Return the percentage of live requirements with a task or test link."""
        return self.coverage_report(project_id).coverage_percent

    def coverage_report(
        self, project_id: str, *, cancel: CancellationToken | None = None
    ) -> CoverageReport:
        """Compute coverage statistics for a project.

        Raises:
            OperationCancelledError: If ``cancel`` fires during the scan.
        """
        snapshot = self._repository.snapshot(project_id)
        artifacts = snapshot.artifacts_by_requirement()

        totals: Counter[RequirementKind] = Counter()
        covered_by_kind: Counter[RequirementKind] = Counter()
        with_tasks = with_tests = fully = partially = 0

        requirements = snapshot.live_requirements()
        for requirement in requirements:
            check_cancelled(cancel, "coverage_report")
            grouped = artifacts.get(requirement.id, {})
            has_task = bool(grouped.get(ArtifactType.TASK))
            has_test = bool(grouped.get(ArtifactType.TEST_CASE))
            with_tasks += has_task
            with_tests += has_test
            totals[requirement.kind] += 1
            if has_task and has_test:
                fully += 1
            elif has_task or has_test:
                partially += 1
            if any(grouped.get(t) for t in _COVERING_TYPES):
                covered_by_kind[requirement.kind] += 1

        total = len(requirements)
        covered = fully + partially
        return CoverageReport(
            project_id=project_id,
            total_requirements=total,
            with_tasks=with_tasks,
            with_tests=with_tests,
            fully_covered=fully,
            partially_covered=partially,
            uncovered=total - covered,
            coverage_percent=coverage_percent(covered, total),
            by_kind=tuple(
                KindCoverage(
                    kind=kind, total=totals[kind], covered=covered_by_kind[kind]
                )
                for kind in RequirementKind
                if totals[kind]
            ),
        )

    # -------------------------------------------------------------------------
    # Internal Methods
    # -------------------------------------------------------------------------

    def _stage(
        self,
        unit: UnitOfWork,
        requirement: Requirement,
        action: HistoryAction,
        actor: str,
        link: TraceLink,
    ) -> None:
        unit.guard(
            EntityType.REQUIREMENT, requirement.id, revision=requirement.revision
        )
        _ = self._history.stage(
            unit,
            entity_type=EntityType.REQUIREMENT,
            entity_id=requirement.id,
            action=action,
            actor_id=actor,
            version=requirement.baseline_version or None,
            details={
                "artifact_type": link.artifact_type,
                "artifact_id": link.artifact_id,
            },
        )
