"""JSON-file repository.

Each project lives in one JSON document, ``<root>/<project_id>.json``. A commit
rewrites the whole document atomically, so entity writes and their history
entries always land together. Documents are cached and re-read when their
modification time changes.

Only one writing process per directory is supported; readers in other
processes always see a complete document.
"""

import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import Final, Self

from reqctl.exceptions import LifecycleValidationError, RepositoryParseError
from reqctl.lifecycle._models import (
    ChangeRequest,
    EntityType,
    HistoryEntry,
    IdentifierKind,
    Requirement,
)
from reqctl.lifecycle._snapshot import ProjectSnapshot
from reqctl.lifecycle._unit_of_work import UnitOfWork
from reqctl.repository._codec import state_from_dict, state_to_dict
from reqctl.repository._io import read_json, write_json_atomic
from reqctl.repository._state import ProjectState

__all__ = ["JsonFileRepository"]

_PROJECT_ID_PATTERN: Final = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


@dataclass(slots=True)
class _CachedProject:
    mtime_ns: int
    state: ProjectState


@dataclass(slots=True)
class JsonFileRepository:
    """Repository storing one JSON document per project.

    Implements RepositoryProtocol.

    Example:
        >>> with JsonFileRepository(Path(".reqctl/projects")) as repo:
        ...     snapshot = repo.snapshot("demo")
    """

    root: Path
    _cache: dict[str, _CachedProject] = field(default_factory=dict)
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
        """Drop cached documents."""
        with self._lock:
            self._cache.clear()

    def path_for(self, project_id: str) -> Path:
        """Return the document path of a project.

        Raises:
            LifecycleValidationError: If the project id is not file-name safe.
        """
        if not _PROJECT_ID_PATTERN.match(project_id):
            msg = f"Invalid project ID: {project_id!r}"
            raise LifecycleValidationError(
                msg,
                field="project_id",
                value=project_id,
                expected="letters, digits, '.', '_' or '-'",
            )
        return self.root / f"{project_id}.json"

    def snapshot(self, project_id: str) -> ProjectSnapshot:
        """Return an immutable view of a project."""
        with self._lock:
            state = self._load(project_id)
            return state.snapshot() if state else ProjectSnapshot.empty(project_id)

    def get_requirement(
        self, project_id: str, requirement_id: str
    ) -> Requirement | None:
        """Return a requirement (tombstones included), or None."""
        with self._lock:
            state = self._load(project_id)
            return state.requirements.get(requirement_id) if state else None

    def get_change_request(
        self, project_id: str, change_request_id: str
    ) -> ChangeRequest | None:
        """Return a change request, or None."""
        with self._lock:
            state = self._load(project_id)
            return state.change_requests.get(change_request_id) if state else None

    def get_counter(self, project_id: str, kind: IdentifierKind) -> int:
        """Return the last committed sequence of an identifier kind."""
        with self._lock:
            state = self._load(project_id)
            return state.counters.get(kind, 0) if state else 0

    def get_history(
        self, project_id: str, entity_type: EntityType, entity_id: str
    ) -> tuple[HistoryEntry, ...]:
        """Return an entity's history ordered by sequence."""
        with self._lock:
            state = self._load(project_id)
            return state.history_for(entity_type, entity_id) if state else ()

    def commit(self, unit: UnitOfWork) -> tuple[HistoryEntry, ...]:
        """Apply ``unit`` and rewrite the project document.

        Raises:
            ConcurrencyConflictError: If a revision or counter check fails.
            ConflictError: If a baseline version is not the next one.
            RepositoryIOError: If the document cannot be written; the cached
                state is discarded so the next read comes from disk.
        """
        path = self.path_for(unit.project_id)
        with self._lock:
            state = self._load(unit.project_id) or ProjectState(
                project_id=unit.project_id
            )
            committed = state.apply(unit)
            try:
                write_json_atomic(path, state_to_dict(state))
            except Exception:
                _ = self._cache.pop(unit.project_id, None)
                raise
            self._cache[unit.project_id] = _CachedProject(
                mtime_ns=path.stat().st_mtime_ns, state=state
            )
            return committed

    # =========================================================================
    # Query Methods
    # =========================================================================

    def project_ids(self) -> tuple[str, ...]:
        """Return the ids of every project stored under ``root``."""
        if not self.root.is_dir():
            return ()
        return tuple(sorted(path.stem for path in self.root.glob("*.json")))

    # =========================================================================
    # Internal Methods
    # =========================================================================

    def _load(self, project_id: str) -> ProjectState | None:
        path = self.path_for(project_id)
        try:
            mtime_ns = path.stat().st_mtime_ns
        except FileNotFoundError:
            _ = self._cache.pop(project_id, None)
            return None

        cached = self._cache.get(project_id)
        if cached is not None and cached.mtime_ns == mtime_ns:
            return cached.state

        data = read_json(path)
        try:
            state = state_from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            msg = f"Malformed project document: {e}"
            raise RepositoryParseError(msg, path=path, cause=e) from e

        if state.project_id != project_id:
            msg = f"Document holds project {state.project_id!r}, not {project_id!r}"
            raise RepositoryParseError(msg, path=path)

        self._cache[project_id] = _CachedProject(mtime_ns=mtime_ns, state=state)
        return state
