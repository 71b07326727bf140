"""Unit tests for HistoryLedger."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import StrEnum

import pytest

from reqctl.exceptions import LifecycleValidationError
from reqctl.lifecycle import (
    ALLOWED_ACTIONS,
    EntityType,
    HistoryAction,
    HistoryLedger,
    Requirement,
    RequirementsEngine,
    UnitOfWork,
)
from reqctl.lifecycle._history_manager import to_detail_value
from reqctl.repository import InMemoryRepository


class _Color(StrEnum):
    RED = "red"


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def ledger(repository: InMemoryRepository) -> HistoryLedger:
    """Create a ledger over an empty in-memory repository."""
    return HistoryLedger(repository)


class TestToDetailValue:
    def test_converts_nested_values(self) -> None:
        moment = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

        converted = to_detail_value(
            {
                "color": _Color.RED,
                "tags": frozenset({"b", "a"}),
                "criteria": ("x", "y"),
                "at": moment,
                "nested": {"inner": [_Color.RED]},
            }
        )

        assert converted == {
            "color": "red",
            "tags": ["a", "b"],
            "criteria": ["x", "y"],
            "at": "2024-05-01T12:00:00+00:00",
            "nested": {"inner": ["red"]},
        }

    def test_leaves_scalars_alone(self) -> None:
        assert to_detail_value(3) == 3
        assert to_detail_value(None) is None


class TestStage:
    def test_sequences_are_assigned_per_entity_at_commit(
        self, repository: InMemoryRepository, ledger: HistoryLedger
    ) -> None:
        unit = UnitOfWork("demo")
        for entity_id in ("a", "a", "b"):
            _ = ledger.stage(
                unit,
                entity_type=EntityType.REQUIREMENT,
                entity_id=entity_id,
                action=HistoryAction.COMMENTED,
                actor_id="alice",
            )

        committed = repository.commit(unit)

        assert [(e.entity_id, e.sequence) for e in committed] == [
            ("a", 1),
            ("a", 2),
            ("b", 1),
        ]

    def test_action_outside_entity_set_is_rejected(
        self, ledger: HistoryLedger
    ) -> None:
        with pytest.raises(LifecycleValidationError) as exc_info:
            ledger.stage(
                UnitOfWork("demo"),
                entity_type=EntityType.CHANGE_REQUEST,
                entity_id="c",
                action=HistoryAction.BASELINED,
                actor_id="alice",
            )

        assert exc_info.value.field == "action"

    def test_blank_actor_is_rejected(self, ledger: HistoryLedger) -> None:
        with pytest.raises(LifecycleValidationError):
            ledger.stage(
                UnitOfWork("demo"),
                entity_type=EntityType.REQUIREMENT,
                entity_id="r",
                action=HistoryAction.CREATED,
                actor_id=" ",
            )

    def test_timestamps_never_go_backwards(
        self, repository: InMemoryRepository, ledger: HistoryLedger
    ) -> None:
        now = datetime.now(UTC)
        for timestamp in (now, now - timedelta(seconds=5)):
            unit = UnitOfWork("demo")
            _ = ledger.stage(
                unit,
                entity_type=EntityType.REQUIREMENT,
                entity_id="r",
                action=HistoryAction.COMMENTED,
                actor_id="alice",
                timestamp=timestamp,
            )
            _ = repository.commit(unit)

        trail = ledger.get_history("demo", EntityType.REQUIREMENT, "r").to_list()

        assert trail[1].timestamp == trail[0].timestamp == now

    def test_change_request_actions_are_a_subset(self) -> None:
        assert ALLOWED_ACTIONS[EntityType.CHANGE_REQUEST] < ALLOWED_ACTIONS[
            EntityType.REQUIREMENT
        ]


class TestGetHistory:
    def test_filters_by_action_and_actor(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()
        _ = engine.requirements.add_comment(
            project_id, requirement.id, actor="bob", content="One"
        )
        _ = engine.requirements.add_comment(
            project_id, requirement.id, actor="carol", content="Two"
        )

        comments = engine.history.get_history(
            project_id,
            EntityType.REQUIREMENT,
            requirement.id,
            action_filter=HistoryAction.COMMENTED,
        ).to_list()
        by_bob = engine.history.get_history(
            project_id, EntityType.REQUIREMENT, requirement.id, actor_filter="bob"
        ).to_list()

        assert [e.details["content"] for e in comments] == ["One", "Two"]
        assert [e.action for e in by_bob] == [HistoryAction.COMMENTED]

    def test_filters_by_time_window(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()
        created = engine.history.latest(
            project_id, EntityType.REQUIREMENT, requirement.id
        )
        assert created is not None

        after = engine.history.get_history(
            project_id,
            EntityType.REQUIREMENT,
            requirement.id,
            since=created.timestamp + timedelta(seconds=1),
        ).to_list()
        before = engine.history.get_history(
            project_id,
            EntityType.REQUIREMENT,
            requirement.id,
            until=created.timestamp,
        ).to_list()

        assert after == []
        assert before == [created]

    def test_unknown_entity_has_empty_history(self, ledger: HistoryLedger) -> None:
        assert ledger.get_history("demo", EntityType.REQUIREMENT, "x").to_list() == []
        assert ledger.latest("demo", EntityType.REQUIREMENT, "x") is None

    def test_sequences_are_contiguous(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()
        _ = engine.requirements.update_requirement(
            project_id, requirement.id, actor="bob", title="New", status="review"
        )
        _ = engine.baselines.create_baseline(project_id, requirement.id, actor="bob")

        trail = engine.history.get_history(
            project_id, EntityType.REQUIREMENT, requirement.id
        ).to_list()

        assert [e.sequence for e in trail] == [1, 2, 3, 4]
        assert [e.action for e in trail] == [
            HistoryAction.CREATED,
            HistoryAction.EDITED,
            HistoryAction.STATUS_CHANGED,
            HistoryAction.BASELINED,
        ]
