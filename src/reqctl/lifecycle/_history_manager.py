# pyright: reportAny=false, reportExplicitAny=false
"""History ledger for requirement and change request audit trails.

This module provides the HistoryLedger class. The ledger never writes on its
own: managers stage entries into the unit of work that carries the mutation,
so an entity change and its audit record commit together or not at all.
"""

from collections.abc import Iterator, Mapping
from datetime import UTC, date, datetime
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Final

from reqctl.exceptions import LifecycleValidationError
from reqctl.lifecycle._lazy import LazySequence
from reqctl.lifecycle._models import (
    EntityType,
    HistoryAction,
    HistoryEntry,
    PendingHistoryEntry,
)

if TYPE_CHECKING:
    from reqctl.lifecycle._unit_of_work import UnitOfWork
    from reqctl.repository import RepositoryProtocol

__all__ = ["ALLOWED_ACTIONS", "HistoryLedger", "to_detail_value"]

ALLOWED_ACTIONS: Final[MappingProxyType[EntityType, frozenset[HistoryAction]]] = (
    MappingProxyType(
        {
            EntityType.REQUIREMENT: frozenset(HistoryAction),
            EntityType.CHANGE_REQUEST: frozenset(
                {
                    HistoryAction.CREATED,
                    HistoryAction.EDITED,
                    HistoryAction.STATUS_CHANGED,
                    HistoryAction.COMMENTED,
                }
            ),
        }
    )
)


def to_detail_value(value: Any) -> Any:
    """Convert a field value into a JSON-friendly history detail value.

    Enums become their values, sets become sorted lists, tuples become lists
    and datetimes become ISO 8601 strings.
    """
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(to_detail_value(item) for item in value)
    if isinstance(value, (list, tuple)):
        return [to_detail_value(item) for item in value]
    if isinstance(value, Mapping):
        return {str(k): to_detail_value(v) for k, v in value.items()}
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class HistoryLedger:
    """Append-only audit log of state-affecting operations.

    Attributes:
        _repository: Storage the committed entries are read from.
    """

    __slots__: Final = ("_repository",)

    _repository: "RepositoryProtocol"  # noqa: UP037

    def __init__(self, repository: "RepositoryProtocol") -> None:  # noqa: UP037
        """Initialize the ledger.

        Args:
            repository: Storage the committed entries are read from.
        """
        self._repository = repository

    # -------------------------------------------------------------------------
    # Mutation Methods
    # -------------------------------------------------------------------------

    def stage(  # noqa: PLR0913
        self,
        unit: "UnitOfWork",  # noqa: UP037
        *,
        entity_type: EntityType,
        entity_id: str,
        action: HistoryAction,
        actor_id: str,
        version: int | None = None,
        details: Mapping[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> PendingHistoryEntry:
        """Stage a history entry into ``unit``.

        Args:
            unit: The unit of work carrying the audited mutation.
            entity_type: Kind of the audited entity.
            entity_id: Opaque key of the audited entity.
            action: What happened; must belong to the entity type's action set.
            actor_id: Who did it.
            version: Baseline version in effect, for requirements.
            details: Structured diff or note; converted to JSON-friendly values.
            timestamp: When it happened; defaults to now (UTC).

        Returns:
            The staged entry. Its sequence is assigned at commit time.

        Raises:
            LifecycleValidationError: If the action is not allowed for the
                entity type or the actor is blank.
        """
        if action not in ALLOWED_ACTIONS[entity_type]:
            msg = f"Action '{action}' is not recorded for {entity_type} entities"
            raise LifecycleValidationError(
                msg,
                field="action",
                value=action,
                expected=", ".join(sorted(ALLOWED_ACTIONS[entity_type])),
            )
        if not actor_id.strip():
            msg = "Actor ID must not be empty"
            raise LifecycleValidationError(msg, field="actor_id", value=actor_id)

        entry = PendingHistoryEntry(
            project_id=unit.project_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            timestamp=timestamp if timestamp is not None else datetime.now(UTC),
            version=version,
            details=MappingProxyType(to_detail_value(dict(details or {}))),
        )
        unit.record(entry)
        return entry

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    def get_history(  # noqa: PLR0913
        self,
        project_id: str,
        entity_type: EntityType,
        entity_id: str,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
        action_filter: HistoryAction | None = None,
        actor_filter: str | None = None,
    ) -> LazySequence[HistoryEntry]:
        """Return an entity's history, oldest first.

        The trail is read when iteration starts; each new iteration re-reads
        it. Unknown entities yield an empty sequence so the audit trail of a
        tombstoned entity stays reachable.

        Args:
            project_id: The project.
            entity_type: Kind of the entity.
            entity_id: Opaque key of the entity.
            since: Only include entries at or after this timestamp.
            until: Only include entries at or before this timestamp.
            action_filter: Only include entries with this action.
            actor_filter: Only include entries by this actor.

        Returns:
            Lazy, restartable sequence of entries ordered by sequence number.
        """

        def produce() -> Iterator[HistoryEntry]:
            for entry in self._repository.get_history(
                project_id, entity_type, entity_id
            ):
                if since is not None and entry.timestamp < since:
                    continue
                if until is not None and entry.timestamp > until:
                    continue
                if action_filter is not None and entry.action != action_filter:
                    continue
                if actor_filter is not None and entry.actor_id != actor_filter:
                    continue
                yield entry

        return LazySequence(produce)

    def latest(
        self, project_id: str, entity_type: EntityType, entity_id: str
    ) -> HistoryEntry | None:
        """Return the most recent entry of an entity, or None."""
        trail = self._repository.get_history(project_id, entity_type, entity_id)
        return trail[-1] if trail else None
