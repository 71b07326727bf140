"""Units of work committed atomically by a repository.

A unit of work collects every write an operation needs (entity puts, baseline
appends, link changes, identifier counter bumps and history entries) so the
repository can validate them together and apply all of them or none.
"""

from dataclasses import dataclass, field

from reqctl.lifecycle._models import (
    ArtifactType,
    ChangeRequest,
    EntityType,
    IdentifierKind,
    PendingHistoryEntry,
    Requirement,
    RequirementBaseline,
    TraceLink,
)

__all__ = ["CounterBump", "EntityPut", "RevisionGuard", "UnitOfWork"]


@dataclass(frozen=True, slots=True)
class EntityPut[T]:
    """A create-or-replace write guarded by an expected revision.

    Attributes:
        entity: The new entity value.
        expected_revision: Revision the writer read, or None for a create.
    """

    entity: T
    expected_revision: int | None


@dataclass(frozen=True, slots=True)
class CounterBump:
    """An identifier counter advance guarded by the value the writer read.

    Attributes:
        kind: Identifier sequence being advanced.
        expected: Counter value the writer read.
        value: New counter value.
    """

    kind: IdentifierKind
    expected: int
    value: int


@dataclass(frozen=True, slots=True)
class RevisionGuard:
    """A read dependency: commit only if the entity is still at ``revision``.

    Attributes:
        entity_type: Kind of the guarded entity.
        entity_id: Opaque key of the guarded entity.
        revision: Revision the writer based its decision on.
    """

    entity_type: EntityType
    entity_id: str
    revision: int


@dataclass(slots=True)
class UnitOfWork:
    """Writes for one project that must land together.

    Attributes:
        project_id: The project every write belongs to.
        requirements: Requirement puts in application order.
        change_requests: Change request puts in application order.
        baselines: Baselines to append.
        links_added: Trace links to add.
        links_removed: Trace link keys to remove.
        counters: Identifier counter bumps.
        guards: Revisions of entities that were read but not written.
        history: History entries awaiting sequence numbers.
    """

    project_id: str
    requirements: list[EntityPut[Requirement]] = field(default_factory=list)
    change_requests: list[EntityPut[ChangeRequest]] = field(default_factory=list)
    baselines: list[RequirementBaseline] = field(default_factory=list)
    links_added: list[TraceLink] = field(default_factory=list)
    links_removed: list[tuple[str, ArtifactType, str]] = field(default_factory=list)
    counters: list[CounterBump] = field(default_factory=list)
    guards: list[RevisionGuard] = field(default_factory=list)
    history: list[PendingHistoryEntry] = field(default_factory=list)

    def put_requirement(
        self, requirement: Requirement, *, expected_revision: int | None
    ) -> None:
        """Stage a requirement create (expected None) or replace."""
        self.requirements.append(EntityPut(requirement, expected_revision))

    def put_change_request(
        self, change_request: ChangeRequest, *, expected_revision: int | None
    ) -> None:
        """Stage a change request create (expected None) or replace."""
        self.change_requests.append(EntityPut(change_request, expected_revision))

    def append_baseline(self, baseline: RequirementBaseline) -> None:
        """Stage a baseline append."""
        self.baselines.append(baseline)

    def add_link(self, link: TraceLink) -> None:
        """Stage a trace link addition."""
        self.links_added.append(link)

    def remove_link(self, key: tuple[str, ArtifactType, str]) -> None:
        """Stage a trace link removal."""
        self.links_removed.append(key)

    def bump_counter(self, kind: IdentifierKind, *, expected: int, value: int) -> None:
        """Stage an identifier counter advance."""
        self.counters.append(CounterBump(kind, expected, value))

    def guard(self, entity_type: EntityType, entity_id: str, *, revision: int) -> None:
        """Stage a revision check for an entity this unit only read."""
        self.guards.append(RevisionGuard(entity_type, entity_id, revision))

    def record(self, entry: PendingHistoryEntry) -> None:
        """Stage a history entry."""
        self.history.append(entry)

    @property
    def is_empty(self) -> bool:
        """Return True when nothing was staged."""
        return not (
            self.requirements
            or self.change_requests
            or self.baselines
            or self.links_added
            or self.links_removed
            or self.counters
            or self.history
        )
