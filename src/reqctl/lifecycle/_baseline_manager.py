"""Baseline manager for immutable, versioned requirement snapshots.

This module provides the BaselineManager class. A baseline copies every
content field of the requirement at capture time; later edits never reach a
stored snapshot.
"""

from collections.abc import Iterator
from dataclasses import fields, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

from reqctl.exceptions import BaselineNotFoundError
from reqctl.lifecycle._concurrency import LockRegistry, retry_on_conflict
from reqctl.lifecycle._history_manager import HistoryLedger, to_detail_value
from reqctl.lifecycle._lazy import LazySequence
from reqctl.lifecycle._models import (
    BaselineDiff,
    EntityType,
    FieldChange,
    HistoryAction,
    Requirement,
    RequirementBaseline,
    RequirementSnapshot,
)
from reqctl.lifecycle._requirement_manager import RequirementStore
from reqctl.lifecycle._unit_of_work import UnitOfWork

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from reqctl.repository import RepositoryProtocol

__all__ = ["BaselineManager", "diff_snapshots", "snapshot_of"]

_SNAPSHOT_FIELDS: Final = tuple(f.name for f in fields(RequirementSnapshot))


def snapshot_of(requirement: Requirement) -> RequirementSnapshot:
    """Copy the content fields of a requirement."""
    return RequirementSnapshot(
        **{name: getattr(requirement, name) for name in _SNAPSHOT_FIELDS}
    )


def diff_snapshots(
    requirement_id: str,
    left: RequirementSnapshot,
    right: RequirementSnapshot,
    *,
    from_version: int,
    to_version: int,
) -> BaselineDiff:
    """Compare two snapshots field by field.

    Values in the result are JSON-friendly (enum values, sorted tag lists).
    """
    changes = tuple(
        FieldChange(
            field=name,
            old=to_detail_value(getattr(left, name)),
            new=to_detail_value(getattr(right, name)),
        )
        for name in _SNAPSHOT_FIELDS
        if getattr(left, name) != getattr(right, name)
    )
    return BaselineDiff(
        requirement_id=requirement_id,
        from_version=from_version,
        to_version=to_version,
        changes=changes,
    )


class BaselineManager:
    """Captures and compares requirement baselines.

    Attributes:
        _repository: Project storage.
        _requirements: Requirement store used for lookups.
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
        """Initialize the baseline manager.

        Args:
            repository: Project storage.
            requirements: Requirement store used for lookups.
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

    def create_baseline(
        self, project_id: str, requirement_id: str, *, actor: str
    ) -> RequirementBaseline:
        """Capture a new baseline of a requirement.

        Every call creates a new version, even without intervening edits.
        Callers that want to skip redundant baselines should check
        ``has_unbaselined_changes`` first.

        Args:
            project_id: The project.
            requirement_id: Opaque requirement key.
            actor: The actor performing the action (for history).

        Returns:
            The stored baseline.

        Raises:
            RequirementNotFoundError: If the requirement does not exist.
        """

        def attempt() -> RequirementBaseline:
            current = self._requirements.get_requirement(project_id, requirement_id)
            existing = self._repository.snapshot(project_id).baselines.get(
                requirement_id, ()
            )
            version = (existing[-1].version if existing else 0) + 1
            now = datetime.now(UTC)

            baseline = RequirementBaseline(
                project_id=project_id,
                requirement_id=requirement_id,
                version=version,
                snapshot=snapshot_of(current),
                captured_at=now,
                captured_by=actor,
            )
            updated = replace(
                current,
                is_baselined=True,
                baseline_version=version,
                has_unbaselined_changes=False,
                updated_at=now,
                revision=current.revision + 1,
            )

            unit = UnitOfWork(project_id)
            unit.put_requirement(updated, expected_revision=current.revision)
            unit.append_baseline(baseline)
            _ = self._history.stage(
                unit,
                entity_type=EntityType.REQUIREMENT,
                entity_id=requirement_id,
                action=HistoryAction.BASELINED,
                actor_id=actor,
                version=version,
                timestamp=now,
                details={"version": version, "title": current.title},
            )
            _ = self._repository.commit(unit)
            return baseline

        with self._locks.hold(project_id, requirement_id):
            baseline = retry_on_conflict(
                attempt,
                attempts=self._max_retries,
                logger=self._logger,
                operation_name="create_baseline",
            )

        if self._logger:
            self._logger.info(
                "baseline_created",
                project_id=project_id,
                requirement_id=requirement_id,
                version=baseline.version,
                actor=actor,
            )
        return baseline

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    def get_baseline_history(
        self, project_id: str, requirement_id: str
    ) -> LazySequence[RequirementBaseline]:
        """Return a requirement's baselines in version order.

        Tombstoned requirements keep their baselines readable.

        Raises:
            RequirementNotFoundError: If the requirement never existed.
        """
        _ = self._requirements.get_requirement(
            project_id, requirement_id, include_deleted=True
        )

        def produce() -> Iterator[RequirementBaseline]:
            snapshot = self._repository.snapshot(project_id)
            yield from snapshot.baselines.get(requirement_id, ())

        return LazySequence(produce)

    def get_baseline(
        self, project_id: str, requirement_id: str, version: int
    ) -> RequirementBaseline:
        """Get one baseline version.

        Raises:
            RequirementNotFoundError: If the requirement never existed.
            BaselineNotFoundError: If the version does not exist.
        """
        for baseline in self.get_baseline_history(project_id, requirement_id):
            if baseline.version == version:
                return baseline
        msg = f"Baseline version {version} not found for requirement {requirement_id}"
        raise BaselineNotFoundError(
            msg, requirement_id=requirement_id, version=version
        )

    def diff_baselines(
        self,
        project_id: str,
        requirement_id: str,
        version_a: int,
        version_b: int,
    ) -> BaselineDiff:
        """Compare two baseline versions of a requirement.

        Args:
            project_id: The project.
            requirement_id: Opaque requirement key.
            version_a: Left-hand version.
            version_b: Right-hand version.

        Returns:
            Field-level differences from ``version_a`` to ``version_b``.

        Raises:
            RequirementNotFoundError: If the requirement never existed.
            BaselineNotFoundError: If either version does not exist.
        """
        left = self.get_baseline(project_id, requirement_id, version_a)
        right = self.get_baseline(project_id, requirement_id, version_b)
        return diff_snapshots(
            requirement_id,
            left.snapshot,
            right.snapshot,
            from_version=version_a,
            to_version=version_b,
        )

    def diff_against_current(
        self, project_id: str, requirement_id: str
    ) -> BaselineDiff:
        """Compare the latest baseline with the live requirement.

        The live side is reported as version 0.

        Raises:
            RequirementNotFoundError: If the requirement does not exist.
            BaselineNotFoundError: If the requirement was never baselined.
        """
        current = self._requirements.get_requirement(project_id, requirement_id)
        if not current.is_baselined:
            msg = f"Requirement {current.display_id} has never been baselined"
            raise BaselineNotFoundError(msg, requirement_id=requirement_id, version=1)
        latest = self.get_baseline(
            project_id, requirement_id, current.baseline_version
        )
        return diff_snapshots(
            requirement_id,
            latest.snapshot,
            snapshot_of(current),
            from_version=latest.version,
            to_version=0,
        )

