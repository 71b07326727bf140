"""Mutable per-project state shared by the repository implementations.

``ProjectState.apply`` validates an entire unit of work before touching any
collection, so a failed commit leaves the state exactly as it was.
"""

from dataclasses import dataclass, field
from types import MappingProxyType

from reqctl.exceptions import ConcurrencyConflictError, ConflictError
from reqctl.lifecycle._models import (
    ArtifactType,
    ChangeRequest,
    EntityType,
    HistoryEntry,
    IdentifierKind,
    Requirement,
    RequirementBaseline,
    TraceLink,
)
from reqctl.lifecycle._snapshot import ProjectSnapshot
from reqctl.lifecycle._unit_of_work import EntityPut, UnitOfWork

__all__ = ["ProjectState"]

type _HistoryKey = tuple[EntityType, str]


@dataclass(slots=True)
class ProjectState:
    """All collections of one project.

    Attributes:
        project_id: The project.
        requirements: Requirements keyed by opaque id.
        change_requests: Change requests keyed by opaque id.
        baselines: Version-ordered baselines per requirement id.
        links: Trace links keyed by their uniqueness key.
        counters: Last committed identifier sequence per kind.
        history: History entries per (entity type, entity id).
    """

    project_id: str
    requirements: dict[str, Requirement] = field(default_factory=dict)
    change_requests: dict[str, ChangeRequest] = field(default_factory=dict)
    baselines: dict[str, list[RequirementBaseline]] = field(default_factory=dict)
    links: dict[tuple[str, ArtifactType, str], TraceLink] = field(default_factory=dict)
    counters: dict[IdentifierKind, int] = field(default_factory=dict)
    history: dict[_HistoryKey, list[HistoryEntry]] = field(default_factory=dict)

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    def snapshot(self) -> ProjectSnapshot:
        """Return an immutable copy of the current collections."""
        return ProjectSnapshot(
            project_id=self.project_id,
            requirements=MappingProxyType(dict(self.requirements)),
            change_requests=MappingProxyType(dict(self.change_requests)),
            baselines=MappingProxyType(
                {rid: tuple(items) for rid, items in self.baselines.items()}
            ),
            links=tuple(self.links.values()),
            counters=MappingProxyType(dict(self.counters)),
        )

    def history_for(
        self, entity_type: EntityType, entity_id: str
    ) -> tuple[HistoryEntry, ...]:
        """Return a copy of one entity's history."""
        return tuple(self.history.get((entity_type, entity_id), ()))

    # -------------------------------------------------------------------------
    # Mutation Methods
    # -------------------------------------------------------------------------

    def apply(self, unit: UnitOfWork) -> tuple[HistoryEntry, ...]:
        """Validate and apply a unit of work.

        Args:
            unit: The staged writes; must belong to this project.

        Returns:
            Committed history entries in staging order.

        Raises:
            ConcurrencyConflictError: If a revision or counter check fails.
            ConflictError: If a baseline version is not the next one.
        """
        self._validate(unit)

        for put in unit.requirements:
            self.requirements[put.entity.id] = put.entity
        for put in unit.change_requests:
            self.change_requests[put.entity.id] = put.entity
        for baseline in unit.baselines:
            self.baselines.setdefault(baseline.requirement_id, []).append(baseline)
        for key in unit.links_removed:
            _ = self.links.pop(key, None)
        for link in unit.links_added:
            _ = self.links.setdefault(link.key, link)
        for bump in unit.counters:
            self.counters[bump.kind] = bump.value

        committed: list[HistoryEntry] = []
        for pending in unit.history:
            history_key = (pending.entity_type, pending.entity_id)
            trail = self.history.setdefault(history_key, [])
            previous = trail[-1].timestamp if trail else None
            entry = pending.assign(len(trail) + 1, not_before=previous)
            trail.append(entry)
            committed.append(entry)
        return tuple(committed)

    # -------------------------------------------------------------------------
    # Internal Methods
    # -------------------------------------------------------------------------

    def _validate(self, unit: UnitOfWork) -> None:
        if unit.project_id != self.project_id:
            msg = f"Unit of work for {unit.project_id} applied to {self.project_id}"
            raise ValueError(msg)

        _check_puts(unit.requirements, self.requirements)
        _check_puts(unit.change_requests, self.change_requests)

        for guard in unit.guards:
            stored = (
                self.requirements.get(guard.entity_id)
                if guard.entity_type is EntityType.REQUIREMENT
                else self.change_requests.get(guard.entity_id)
            )
            actual = stored.revision if stored is not None else 0
            if actual != guard.revision:
                msg = f"{guard.entity_type} {guard.entity_id} changed concurrently"
                raise ConcurrencyConflictError(
                    msg,
                    entity_id=guard.entity_id,
                    expected=guard.revision,
                    actual=actual,
                )

        counters = dict(self.counters)
        for bump in unit.counters:
            actual = counters.get(bump.kind, 0)
            if actual != bump.expected:
                msg = f"Identifier counter {bump.kind} advanced concurrently"
                raise ConcurrencyConflictError(
                    msg, entity_id=str(bump.kind), expected=bump.expected, actual=actual
                )
            counters[bump.kind] = bump.value

        versions = {rid: len(items) for rid, items in self.baselines.items()}
        for baseline in unit.baselines:
            latest = versions.get(baseline.requirement_id, 0)
            if baseline.version != latest + 1:
                msg = (
                    f"Baseline version {baseline.version} of requirement "
                    f"{baseline.requirement_id} does not follow version {latest}"
                )
                raise ConflictError(
                    msg,
                    entity_id=baseline.requirement_id,
                    reason="baseline_version",
                )
            versions[baseline.requirement_id] = baseline.version


def _check_puts[T: (Requirement, ChangeRequest)](
    puts: list[EntityPut[T]], stored: dict[str, T]
) -> None:
    revisions: dict[str, int] = {}
    for put in puts:
        entity_id = put.entity.id
        current = stored.get(entity_id)
        actual = revisions.get(entity_id, current.revision if current else 0)
        expected = put.expected_revision if put.expected_revision is not None else 0
        if actual != expected:
            msg = f"{put.entity.display_id} was modified concurrently"
            raise ConcurrencyConflictError(
                msg, entity_id=entity_id, expected=expected, actual=actual
            )
        revisions[entity_id] = put.entity.revision
