"""Repository protocol for type-safe dependency injection.

The lifecycle engine depends only on this protocol, so any storage technology
that can apply a unit of work atomically can back it.
"""

from typing import Protocol, runtime_checkable

from reqctl.lifecycle._models import (
    ChangeRequest,
    EntityType,
    HistoryEntry,
    IdentifierKind,
    Requirement,
)
from reqctl.lifecycle._snapshot import ProjectSnapshot
from reqctl.lifecycle._unit_of_work import UnitOfWork

__all__ = ["RepositoryProtocol"]


@runtime_checkable
class RepositoryProtocol(Protocol):
    """Protocol for project-partitioned lifecycle storage.

    Example:
        >>> def requirement_count(repo: RepositoryProtocol, project_id: str) -> int:
        ...     return len(repo.snapshot(project_id).live_requirements())
    """

    def snapshot(self, project_id: str) -> ProjectSnapshot:
        """Return an immutable, internally consistent view of a project.

        Unknown projects yield an empty snapshot.
        """
        ...

    def get_requirement(
        self, project_id: str, requirement_id: str
    ) -> Requirement | None:
        """Return a requirement (tombstones included), or None."""
        ...

    def get_change_request(
        self, project_id: str, change_request_id: str
    ) -> ChangeRequest | None:
        """Return a change request, or None."""
        ...

    def get_counter(self, project_id: str, kind: IdentifierKind) -> int:
        """Return the last committed sequence of an identifier kind (0 if none)."""
        ...

    def get_history(
        self, project_id: str, entity_type: EntityType, entity_id: str
    ) -> tuple[HistoryEntry, ...]:
        """Return an entity's history ordered by sequence."""
        ...

    def commit(self, unit: UnitOfWork) -> tuple[HistoryEntry, ...]:
        """Apply every write of ``unit`` or none of them.

        Args:
            unit: The staged writes.

        Returns:
            The committed history entries with their sequence numbers, in the
            order they were staged.

        Raises:
            ConcurrencyConflictError: If an expected revision or counter value
                no longer matches.
            ConflictError: If a baseline version would duplicate or skip.
            RepositoryError: If durable storage fails.
        """
        ...

    def close(self) -> None:
        """Release any resources held by the repository."""
        ...
