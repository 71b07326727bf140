"""Unit tests for InMemoryRepository and ProjectState."""

from dataclasses import replace
from datetime import UTC, datetime

import pytest

from reqctl.exceptions import ConcurrencyConflictError, ConflictError
from reqctl.lifecycle import (
    EntityType,
    HistoryAction,
    IdentifierKind,
    Priority,
    Requirement,
    RequirementBaseline,
    RequirementKind,
    RequirementStatus,
    UnitOfWork,
    snapshot_of,
)
from reqctl.lifecycle._models import PendingHistoryEntry
from reqctl.repository import InMemoryRepository

NOW = datetime(2024, 1, 1, tzinfo=UTC)


def _requirement(**overrides: object) -> Requirement:
    values: dict[str, object] = {
        "id": "r1",
        "display_id": "REQ-0001",
        "project_id": "demo",
        "title": "Title",
        "kind": RequirementKind.FUNCTIONAL,
        "priority": Priority.LOW,
        "status": RequirementStatus.DRAFT,
        "owner_id": "alice",
        "created_at": NOW,
        "updated_at": NOW,
    }
    values.update(overrides)
    return Requirement(**values)  # pyright: ignore[reportArgumentType]


def _created(requirement: Requirement) -> PendingHistoryEntry:
    return PendingHistoryEntry(
        project_id="demo",
        entity_type=EntityType.REQUIREMENT,
        entity_id=requirement.id,
        action=HistoryAction.CREATED,
        actor_id="alice",
        timestamp=NOW,
    )


@pytest.fixture
def repository() -> InMemoryRepository:
    """Create a repository holding one committed requirement."""
    repo = InMemoryRepository()
    requirement = _requirement()
    unit = UnitOfWork("demo")
    unit.put_requirement(requirement, expected_revision=None)
    unit.bump_counter(IdentifierKind.REQUIREMENT, expected=0, value=1)
    unit.record(_created(requirement))
    _ = repo.commit(unit)
    return repo


class TestCommit:
    def test_commit_applies_every_write(self, repository: InMemoryRepository) -> None:
        assert repository.get_requirement("demo", "r1") == _requirement()
        assert repository.get_counter("demo", IdentifierKind.REQUIREMENT) == 1
        (entry,) = repository.get_history("demo", EntityType.REQUIREMENT, "r1")
        assert entry.sequence == 1
        assert repository.commits == 1
        assert repository.project_ids() == ("demo",)

    def test_stale_revision_rejects_whole_unit(
        self, repository: InMemoryRepository
    ) -> None:
        stale = UnitOfWork("demo")
        stale.put_requirement(
            _requirement(id="r2", display_id="REQ-0002"), expected_revision=None
        )
        stale.bump_counter(IdentifierKind.REQUIREMENT, expected=1, value=2)
        stale.put_requirement(
            replace(_requirement(), title="Other", revision=2), expected_revision=5
        )

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            repository.commit(stale)

        assert exc_info.value.expected == 5
        assert exc_info.value.actual == 1
        assert repository.get_requirement("demo", "r2") is None
        assert repository.get_counter("demo", IdentifierKind.REQUIREMENT) == 1

    def test_creating_an_existing_id_conflicts(
        self, repository: InMemoryRepository
    ) -> None:
        unit = UnitOfWork("demo")
        unit.put_requirement(_requirement(), expected_revision=None)

        with pytest.raises(ConcurrencyConflictError):
            repository.commit(unit)

    def test_chained_puts_in_one_unit(self, repository: InMemoryRepository) -> None:
        first = replace(_requirement(), title="One", revision=2)
        second = replace(first, title="Two", revision=3)
        unit = UnitOfWork("demo")
        unit.put_requirement(first, expected_revision=1)
        unit.put_requirement(second, expected_revision=2)

        _ = repository.commit(unit)

        stored = repository.get_requirement("demo", "r1")
        assert stored is not None
        assert stored.title == "Two"

    def test_baseline_versions_must_be_contiguous(
        self, repository: InMemoryRepository
    ) -> None:
        requirement = _requirement()
        unit = UnitOfWork("demo")
        unit.append_baseline(
            RequirementBaseline(
                project_id="demo",
                requirement_id="r1",
                version=2,
                snapshot=snapshot_of(requirement),
                captured_at=NOW,
                captured_by="alice",
            )
        )

        with pytest.raises(ConflictError) as exc_info:
            repository.commit(unit)

        assert exc_info.value.reason == "baseline_version"

    def test_unit_for_unknown_project_starts_fresh(
        self, repository: InMemoryRepository
    ) -> None:
        unit = UnitOfWork("other")
        unit.bump_counter(IdentifierKind.CHANGE_REQUEST, expected=0, value=1)

        _ = repository.commit(unit)

        assert repository.get_counter("other", IdentifierKind.CHANGE_REQUEST) == 1
        assert repository.get_counter("demo", IdentifierKind.CHANGE_REQUEST) == 0


class TestSnapshot:
    def test_snapshot_is_isolated_from_later_commits(
        self, repository: InMemoryRepository
    ) -> None:
        snapshot = repository.snapshot("demo")
        unit = UnitOfWork("demo")
        unit.put_requirement(
            replace(_requirement(), title="Changed", revision=2), expected_revision=1
        )
        _ = repository.commit(unit)

        assert snapshot.requirements["r1"].title == "Title"
        assert repository.snapshot("demo").requirements["r1"].title == "Changed"

    def test_empty_project_snapshot(self) -> None:
        snapshot = InMemoryRepository().snapshot("nothing")

        assert snapshot.project_id == "nothing"
        assert snapshot.live_requirements() == []
        assert snapshot.links == ()
