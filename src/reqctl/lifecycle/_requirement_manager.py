# pyright: reportExplicitAny=false
"""Requirement store for requirement entities, hierarchy and lifecycle.

This module provides the RequirementStore class. Every mutation is a
read-validate-write sequence run under the entity's lock and committed as one
unit of work together with its history entries.
"""

from collections.abc import Iterable  # noqa: TC003
from dataclasses import replace
from datetime import UTC, datetime
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final
from uuid import uuid4

from reqctl.exceptions import (
    ConflictError,
    LifecycleValidationError,
    RequirementNotFoundError,
)
from reqctl.lifecycle._concurrency import (
    CancellationToken,
    LockRegistry,
    retry_on_conflict,
)
from reqctl.lifecycle._hierarchy import RequirementHierarchy
from reqctl.lifecycle._history_manager import HistoryLedger, to_detail_value
from reqctl.lifecycle._ids import IdentifierAllocator, display_sequence
from reqctl.lifecycle._models import (
    ChangeRequestStatus,
    EntityType,
    HistoryAction,
    HistoryEntry,
    IdentifierKind,
    Priority,
    Requirement,
    RequirementKind,
    RequirementStatus,
)
from reqctl.lifecycle._transitions import validate_requirement_transition
from reqctl.lifecycle._unit_of_work import UnitOfWork
from reqctl.lifecycle._validation import (
    coerce_enum,
    normalize_criteria,
    normalize_tags,
    optional_text,
    require_text,
)

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

    from reqctl.repository import RepositoryProtocol

__all__ = ["RequirementStore"]


class RequirementStore:
    """Owner of requirement entities and their lifecycle.

    Attributes:
        _repository: Project storage.
        _history: Ledger that stages audit entries.
        _ids: Display identifier allocator.
        _locks: Engine-scoped per-entity locks.
        _max_retries: Retries after a concurrency conflict.
        _logger: Optional structured logger.
    """

    __slots__: Final = (
        "_history",
        "_ids",
        "_locks",
        "_logger",
        "_max_retries",
        "_repository",
    )

    _repository: "RepositoryProtocol"  # noqa: UP037
    _history: HistoryLedger
    _ids: IdentifierAllocator
    _locks: LockRegistry
    _max_retries: int
    _logger: "FilteringBoundLogger | None"  # noqa: UP037

    def __init__(  # noqa: PLR0913
        self,
        repository: "RepositoryProtocol",  # noqa: UP037
        history: HistoryLedger,
        ids: IdentifierAllocator,
        locks: LockRegistry,
        *,
        max_retries: int = 3,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize the requirement store.

        Args:
            repository: Project storage.
            history: Ledger that stages audit entries.
            ids: Display identifier allocator.
            locks: Engine-scoped per-entity locks.
            max_retries: Retries after a concurrency conflict.
            logger: Optional structured logger.
        """
        self._repository = repository
        self._history = history
        self._ids = ids
        self._locks = locks
        self._max_retries = max_retries
        self._logger = logger

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    def get_requirement(
        self,
        project_id: str,
        requirement_id: str,
        *,
        include_deleted: bool = False,
    ) -> Requirement:
        """Get a requirement by its opaque id.

        Args:
            project_id: The project.
            requirement_id: Opaque requirement key.
            include_deleted: Return tombstoned requirements instead of raising.

        Returns:
            The requirement.

        Raises:
            RequirementNotFoundError: If the requirement does not exist or is
                tombstoned (unless ``include_deleted``).
        """
        requirement = self._repository.get_requirement(project_id, requirement_id)
        if requirement is None or (requirement.is_deleted and not include_deleted):
            msg = f"Requirement not found: {requirement_id}"
            raise RequirementNotFoundError(msg, requirement_id=requirement_id)
        return requirement

    def get_by_display_id(
        self,
        project_id: str,
        display_id: str,
        *,
        include_deleted: bool = False,
    ) -> Requirement:
        """Get a requirement by its display id (e.g. ``REQ-0001``).

        Raises:
            RequirementNotFoundError: If no live requirement carries the id.
        """
        snapshot = self._repository.snapshot(project_id)
        for requirement in snapshot.requirements.values():
            if requirement.display_id != display_id:
                continue
            if requirement.is_deleted and not include_deleted:
                break
            return requirement
        msg = f"Requirement not found: {display_id}"
        raise RequirementNotFoundError(msg, requirement_id=display_id)

    def resolve(
        self, project_id: str, reference: str, *, include_deleted: bool = False
    ) -> Requirement:
        """Get a requirement by opaque id or display id."""
        requirement = self._repository.get_requirement(project_id, reference)
        if requirement is not None:
            return self.get_requirement(
                project_id, reference, include_deleted=include_deleted
            )
        return self.get_by_display_id(
            project_id, reference, include_deleted=include_deleted
        )

    def requirement_exists(self, project_id: str, requirement_id: str) -> bool:
        """Return True if a live requirement has the given opaque id."""
        requirement = self._repository.get_requirement(project_id, requirement_id)
        return requirement is not None and not requirement.is_deleted

    def list_requirements(  # noqa: PLR0913
        self,
        project_id: str,
        *,
        filter_kind: RequirementKind | str | None = None,
        filter_status: RequirementStatus | str | None = None,
        filter_priority: Priority | str | None = None,
        filter_tags: Iterable[str] | None = None,
        include_deleted: bool = False,
    ) -> list[Requirement]:
        """List requirements in creation order.

        Args:
            project_id: The project.
            filter_kind: Only include requirements of this kind.
            filter_status: Only include requirements in this status.
            filter_priority: Only include requirements with this priority.
            filter_tags: Only include requirements carrying all of these tags.
            include_deleted: Include tombstoned requirements.

        Returns:
            Matching requirements.

        Raises:
            LifecycleValidationError: If a filter value is not a valid member.
        """
        kind = (
            coerce_enum(RequirementKind, filter_kind, "kind") if filter_kind else None
        )
        status = (
            coerce_enum(RequirementStatus, filter_status, "status")
            if filter_status
            else None
        )
        priority = (
            coerce_enum(Priority, filter_priority, "priority")
            if filter_priority
            else None
        )
        tags = frozenset(filter_tags) if filter_tags else frozenset()

        snapshot = self._repository.snapshot(project_id)
        if include_deleted:
            candidates = sorted(
                snapshot.requirements.values(),
                key=lambda r: display_sequence(r.display_id),
            )
        else:
            candidates = snapshot.live_requirements()

        return [
            r
            for r in candidates
            if (kind is None or r.kind == kind)
            and (status is None or r.status == status)
            and (priority is None or r.priority == priority)
            and tags <= r.tags
        ]

    def get_children(self, project_id: str, requirement_id: str) -> list[Requirement]:
        """Get the live children of a requirement in creation order.

        Raises:
            RequirementNotFoundError: If the parent does not exist.
        """
        _ = self.get_requirement(project_id, requirement_id)
        return self._repository.snapshot(project_id).children_of(requirement_id)

    def get_hierarchy(
        self,
        project_id: str,
        *,
        cancel: CancellationToken | None = None,
    ) -> RequirementHierarchy:
        """Get the requirement forest of a project.

        The tree is captured from one snapshot; traversing it is lazy and may
        be repeated.

        Args:
            project_id: The project.
            cancel: Optional token checked before each node is produced.

        Returns:
            The hierarchy view.
        """
        snapshot = self._repository.snapshot(project_id)
        index = {
            parent: tuple(children)
            for parent, children in snapshot.children_index().items()
        }
        return RequirementHierarchy(
            project_id, MappingProxyType(index), cancel=cancel
        )

    # -------------------------------------------------------------------------
    # Mutation Methods
    # -------------------------------------------------------------------------

    def create_requirement(  # noqa: PLR0913
        self,
        project_id: str,
        *,
        title: str,
        kind: RequirementKind | str,
        priority: Priority | str,
        owner_id: str,
        actor: str,
        description: str | None = None,
        parent_id: str | None = None,
        acceptance_criteria: Iterable[str] = (),
        tags: Iterable[str] = (),
        source: str | None = None,
    ) -> Requirement:
        """Create a requirement in ``draft`` status.

        Args:
            project_id: The project.
            title: Non-empty title.
            kind: Requirement classification.
            priority: Requirement priority.
            owner_id: Responsible party.
            actor: The actor performing the action (for history).
            description: Optional description.
            parent_id: Opaque key of the parent requirement.
            acceptance_criteria: Ordered acceptance criteria.
            tags: Tags; duplicates are collapsed.
            source: Where the requirement originated.

        Returns:
            The created requirement.

        Raises:
            LifecycleValidationError: If a field is invalid or the parent does
                not resolve to a live requirement of the project.
        """
        clean_title = require_text(title, "title")
        clean_kind = coerce_enum(RequirementKind, kind, "kind")
        clean_priority = coerce_enum(Priority, priority, "priority")
        clean_owner = require_text(owner_id, "owner_id")
        clean_criteria = normalize_criteria(acceptance_criteria)
        clean_tags = normalize_tags(tags)

        def attempt() -> Requirement:
            parent = (
                self._resolve_parent(project_id, parent_id)
                if parent_id is not None
                else None
            )
            with self._ids.reserve(project_id, IdentifierKind.REQUIREMENT) as allocated:
                now = datetime.now(UTC)
                requirement = Requirement(
                    id=uuid4().hex,
                    display_id=allocated.display_id,
                    project_id=project_id,
                    title=clean_title,
                    kind=clean_kind,
                    priority=clean_priority,
                    status=RequirementStatus.DRAFT,
                    owner_id=clean_owner,
                    created_at=now,
                    updated_at=now,
                    description=optional_text(description),
                    parent_id=parent.id if parent else None,
                    acceptance_criteria=clean_criteria,
                    tags=clean_tags,
                    source=optional_text(source),
                )

                unit = UnitOfWork(project_id)
                unit.put_requirement(requirement, expected_revision=None)
                allocated.stage(unit)
                if parent is not None:
                    unit.guard(
                        EntityType.REQUIREMENT, parent.id, revision=parent.revision
                    )
                _ = self._history.stage(
                    unit,
                    entity_type=EntityType.REQUIREMENT,
                    entity_id=requirement.id,
                    action=HistoryAction.CREATED,
                    actor_id=actor,
                    timestamp=now,
                    details={
                        "display_id": requirement.display_id,
                        "title": requirement.title,
                        "kind": requirement.kind,
                        "priority": requirement.priority,
                        "parent_id": requirement.parent_id,
                    },
                )
                _ = self._repository.commit(unit)
                return requirement

        with self._locks.hold(project_id, parent_id):
            requirement = retry_on_conflict(
                attempt,
                attempts=self._max_retries,
                logger=self._logger,
                operation_name="create_requirement",
            )

        if self._logger:
            self._logger.info(
                "requirement_created",
                project_id=project_id,
                requirement_id=requirement.id,
                display_id=requirement.display_id,
                actor=actor,
            )
        return requirement

    def update_requirement(  # noqa: PLR0913
        self,
        project_id: str,
        requirement_id: str,
        *,
        actor: str,
        title: str | None = None,
        description: str | None = None,
        kind: RequirementKind | str | None = None,
        priority: Priority | str | None = None,
        acceptance_criteria: Iterable[str] | None = None,
        tags: Iterable[str] | None = None,
        owner_id: str | None = None,
        source: str | None = None,
        status: RequirementStatus | str | None = None,
        parent_id: str | None = None,
        detach_parent: bool = False,
    ) -> Requirement:
        """Update an existing requirement.

        None means "keep the current value". An empty ``description`` or
        ``source`` clears the field. A ``status`` equal to the current status is
        treated as unchanged; any other status must be an allowed transition.
        A patch without effective changes returns the requirement untouched
        and records nothing.

        Args:
            project_id: The project.
            requirement_id: Opaque requirement key.
            actor: The actor performing the action (for history).
            title: New title.
            description: New description.
            kind: New classification.
            priority: New priority.
            acceptance_criteria: New acceptance criteria (replaces existing).
            tags: New tags (replaces existing).
            owner_id: New responsible party.
            source: New source.
            status: Requested lifecycle status.
            parent_id: New parent requirement.
            detach_parent: Make the requirement a root.

        Returns:
            The updated requirement.

        Raises:
            RequirementNotFoundError: If the requirement does not exist.
            InvalidTransitionError: If the status change is not allowed.
            LifecycleValidationError: If a field is invalid or the new parent
                is unknown or would create a cycle.
        """
        if parent_id is not None and detach_parent:
            msg = "parent_id and detach_parent are mutually exclusive"
            raise LifecycleValidationError(msg, field="parent_id", value=parent_id)

        patch: dict[str, Any] = {}
        if title is not None:
            patch["title"] = require_text(title, "title")
        if description is not None:
            patch["description"] = optional_text(description)
        if kind is not None:
            patch["kind"] = coerce_enum(RequirementKind, kind, "kind")
        if priority is not None:
            patch["priority"] = coerce_enum(Priority, priority, "priority")
        if acceptance_criteria is not None:
            patch["acceptance_criteria"] = normalize_criteria(acceptance_criteria)
        if tags is not None:
            patch["tags"] = normalize_tags(tags)
        if owner_id is not None:
            patch["owner_id"] = require_text(owner_id, "owner_id")
        if source is not None:
            patch["source"] = optional_text(source)
        requested_status = (
            coerce_enum(RequirementStatus, status, "status")
            if status is not None
            else None
        )

        def attempt() -> Requirement:
            current = self.get_requirement(project_id, requirement_id)

            content = {
                name: {"old": getattr(current, name), "new": value}
                for name, value in patch.items()
                if getattr(current, name) != value
            }
            status_change = (
                requested_status
                if requested_status is not None and requested_status != current.status
                else None
            )
            if status_change is not None:
                validate_requirement_transition(
                    current.display_id, current.status, status_change
                )

            reparent, new_parent, ancestors = self._reparent_target(
                current, parent_id, detach=detach_parent
            )

            if not content and status_change is None and not reparent:
                return current

            now = datetime.now(UTC)
            changes: dict[str, Any] = {name: d["new"] for name, d in content.items()}
            if status_change is not None:
                changes["status"] = status_change
            if reparent:
                changes["parent_id"] = new_parent.id if new_parent else None
            updated = replace(
                current,
                **changes,
                updated_at=now,
                revision=current.revision + 1,
                has_unbaselined_changes=current.is_baselined,
            )

            unit = UnitOfWork(project_id)
            unit.put_requirement(updated, expected_revision=current.revision)
            # The ancestor chain must be unchanged when the move commits.
            for ancestor in ancestors:
                unit.guard(
                    EntityType.REQUIREMENT, ancestor.id, revision=ancestor.revision
                )
            if content:
                self._stage(unit, current, HistoryAction.EDITED, actor, now, content)
            if status_change is not None:
                self._stage(
                    unit,
                    current,
                    HistoryAction.STATUS_CHANGED,
                    actor,
                    now,
                    {"status": {"old": current.status, "new": status_change}},
                )
            if reparent:
                self._stage(
                    unit,
                    current,
                    HistoryAction.REPARENTED,
                    actor,
                    now,
                    {"parent_id": {"old": current.parent_id, "new": updated.parent_id}},
                )
            _ = self._repository.commit(unit)
            return updated

        with self._locks.hold(project_id, requirement_id, parent_id):
            updated = retry_on_conflict(
                attempt,
                attempts=self._max_retries,
                logger=self._logger,
                operation_name="update_requirement",
            )

        if self._logger:
            self._logger.info(
                "requirement_updated",
                project_id=project_id,
                requirement_id=requirement_id,
                display_id=updated.display_id,
                status=updated.status.value,
                revision=updated.revision,
                actor=actor,
            )
        return updated

    def delete_requirement(
        self, project_id: str, requirement_id: str, *, actor: str
    ) -> Requirement:
        """Soft-delete a requirement.

        The tombstone keeps the display id reserved and the audit trail
        reachable.

        Args:
            project_id: The project.
            requirement_id: Opaque requirement key.
            actor: The actor performing the action (for history).

        Returns:
            The tombstoned requirement.

        Raises:
            RequirementNotFoundError: If the requirement does not exist.
            ConflictError: If the requirement has live children or is
                referenced by a change request that is not cancelled.
        """

        def attempt() -> Requirement:
            current = self.get_requirement(project_id, requirement_id)
            snapshot = self._repository.snapshot(project_id)

            children = snapshot.children_of(requirement_id)
            if children:
                ids = ", ".join(child.display_id for child in children)
                msg = f"Cannot delete {current.display_id}: it has children ({ids})"
                raise ConflictError(
                    msg, entity_id=requirement_id, reason="has_children"
                )

            active = [
                cr
                for cr in snapshot.change_requests_for(requirement_id)
                if cr.status != ChangeRequestStatus.CANCELLED
            ]
            if active:
                ids = ", ".join(cr.display_id for cr in active)
                msg = (
                    f"Cannot delete {current.display_id}: referenced by change "
                    f"requests ({ids})"
                )
                raise ConflictError(
                    msg, entity_id=requirement_id, reason="has_change_requests"
                )

            now = datetime.now(UTC)
            tombstone = replace(
                current, deleted_at=now, updated_at=now, revision=current.revision + 1
            )
            unit = UnitOfWork(project_id)
            unit.put_requirement(tombstone, expected_revision=current.revision)
            self._stage(
                unit,
                current,
                HistoryAction.DELETED,
                actor,
                now,
                {"display_id": current.display_id},
            )
            _ = self._repository.commit(unit)
            return tombstone

        with self._locks.hold(project_id, requirement_id):
            tombstone = retry_on_conflict(
                attempt,
                attempts=self._max_retries,
                logger=self._logger,
                operation_name="delete_requirement",
            )

        if self._logger:
            self._logger.info(
                "requirement_deleted",
                project_id=project_id,
                requirement_id=requirement_id,
                display_id=tombstone.display_id,
                actor=actor,
            )
        return tombstone

    def add_comment(
        self, project_id: str, requirement_id: str, *, actor: str, content: str
    ) -> HistoryEntry:
        """Record a comment on a requirement's history.

        Raises:
            RequirementNotFoundError: If the requirement does not exist.
            LifecycleValidationError: If the comment is blank.
        """
        text = require_text(content, "content")
        with self._locks.hold(project_id, requirement_id):
            current = self.get_requirement(project_id, requirement_id)
            unit = UnitOfWork(project_id)
            unit.guard(EntityType.REQUIREMENT, current.id, revision=current.revision)
            self._stage(
                unit,
                current,
                HistoryAction.COMMENTED,
                actor,
                datetime.now(UTC),
                {"content": text},
            )
            (entry,) = self._repository.commit(unit)

        if self._logger:
            self._logger.info(
                "requirement_commented",
                project_id=project_id,
                requirement_id=requirement_id,
                actor=actor,
            )
        return entry

    # -------------------------------------------------------------------------
    # Internal Methods
    # -------------------------------------------------------------------------

    def _stage(  # noqa: PLR0913
        self,
        unit: UnitOfWork,
        requirement: Requirement,
        action: HistoryAction,
        actor: str,
        timestamp: datetime,
        details: dict[str, Any],
    ) -> None:
        _ = self._history.stage(
            unit,
            entity_type=EntityType.REQUIREMENT,
            entity_id=requirement.id,
            action=action,
            actor_id=actor,
            version=requirement.baseline_version or None,
            details=to_detail_value(details),
            timestamp=timestamp,
        )

    def _resolve_parent(self, project_id: str, parent_id: str) -> Requirement:
        parent = self._repository.get_requirement(project_id, parent_id)
        if parent is None or parent.is_deleted:
            msg = f"Parent requirement not found in project {project_id}: {parent_id}"
            raise LifecycleValidationError(
                msg,
                field="parent_id",
                value=parent_id,
                expected="live requirement of the same project",
            )
        return parent

    def _reparent_target(
        self, current: Requirement, parent_id: str | None, *, detach: bool
    ) -> tuple[bool, Requirement | None, tuple[Requirement, ...]]:
        """Resolve a parent change.

        Returns whether the parent changes, the new parent (None = root) and
        the chain of ancestors from the new parent up to its root, as read.
        """
        if detach:
            return (current.parent_id is not None, None, ())
        if parent_id is None or parent_id == current.parent_id:
            return (False, None, ())

        parent = self._resolve_parent(current.project_id, parent_id)

        # Walk up from the new parent; reaching the requirement means a cycle.
        snapshot = self._repository.snapshot(current.project_id)
        chain: list[Requirement] = []
        cursor: Requirement | None = parent
        while cursor is not None:
            if cursor.id == current.id:
                msg = (
                    f"Cannot move {current.display_id} under {parent.display_id}: "
                    "the hierarchy would contain a cycle"
                )
                raise LifecycleValidationError(
                    msg,
                    field="parent_id",
                    value=parent_id,
                    expected="requirement outside the moved subtree",
                )
            chain.append(cursor)
            cursor = (
                snapshot.requirements.get(cursor.parent_id)
                if cursor.parent_id
                else None
            )
        return (True, parent, tuple(chain))
