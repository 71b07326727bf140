"""In-memory repository.

Useful for tests and for embedding the engine in a process that persists
state some other way.
"""

import threading
from dataclasses import dataclass, field
from types import TracebackType
from typing import Self

from reqctl.lifecycle._models import (
    ChangeRequest,
    EntityType,
    HistoryEntry,
    IdentifierKind,
    Requirement,
)
from reqctl.lifecycle._snapshot import ProjectSnapshot
from reqctl.lifecycle._unit_of_work import UnitOfWork
from reqctl.repository._state import ProjectState

__all__ = ["InMemoryRepository"]


@dataclass(slots=True)
class InMemoryRepository:
    """Repository keeping every project in process memory.

    Implements RepositoryProtocol. A single lock guards all projects; commits
    are cheap dictionary updates, so contention stays low.

    Example:
        >>> repo = InMemoryRepository()
        >>> repo.snapshot("demo").live_requirements()
        []
    """

    commits: int = 0
    _projects: dict[str, ProjectState] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    # =========================================================================
    # Context Manager Protocol
    # =========================================================================

    def __enter__(self) -> Self:
        """Enter context manager."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit context manager."""
        self.close()

    # =========================================================================
    # RepositoryProtocol Methods
    # =========================================================================

    def close(self) -> None:
        """Close the repository (no-op for memory)."""

    def snapshot(self, project_id: str) -> ProjectSnapshot:
        """Return an immutable view of a project."""
        with self._lock:
            state = self._projects.get(project_id)
            return state.snapshot() if state else ProjectSnapshot.empty(project_id)

    def get_requirement(
        self, project_id: str, requirement_id: str
    ) -> Requirement | None:
        """Return a requirement (tombstones included), or None."""
        with self._lock:
            state = self._projects.get(project_id)
            return state.requirements.get(requirement_id) if state else None

    def get_change_request(
        self, project_id: str, change_request_id: str
    ) -> ChangeRequest | None:
        """Return a change request, or None."""
        with self._lock:
            state = self._projects.get(project_id)
            return state.change_requests.get(change_request_id) if state else None

    def get_counter(self, project_id: str, kind: IdentifierKind) -> int:
        """Return the last committed sequence of an identifier kind."""
        with self._lock:
            state = self._projects.get(project_id)
            return state.counters.get(kind, 0) if state else 0

    def get_history(
        self, project_id: str, entity_type: EntityType, entity_id: str
    ) -> tuple[HistoryEntry, ...]:
        """Return an entity's history ordered by sequence."""
        with self._lock:
            state = self._projects.get(project_id)
            return state.history_for(entity_type, entity_id) if state else ()

    def commit(self, unit: UnitOfWork) -> tuple[HistoryEntry, ...]:
        """Apply every write of ``unit`` or none of them."""
        with self._lock:
            state = self._projects.get(unit.project_id)
            if state is None:
                state = ProjectState(project_id=unit.project_id)
            committed = state.apply(unit)
            self._projects[unit.project_id] = state
            self.commits += 1
            return committed

    # =========================================================================
    # Test Helpers
    # =========================================================================

    def project_ids(self) -> tuple[str, ...]:
        """Return the ids of every project holding data."""
        with self._lock:
            return tuple(sorted(self._projects))
