"""Unit tests for ChangeControlEngine."""

from collections.abc import Callable

import pytest

from reqctl.exceptions import (
    ChangeRequestNotFoundError,
    ConflictError,
    InvalidTransitionError,
    LifecycleValidationError,
    RequirementNotFoundError,
)
from reqctl.lifecycle import (
    ArtifactType,
    ChangeRequest,
    ChangeRequestStatus,
    EntityType,
    HistoryAction,
    ImpactLevel,
    Requirement,
    RequirementsEngine,
)


@pytest.fixture
def requirement(make_requirement: Callable[..., Requirement]) -> Requirement:
    """Create the requirement change requests target."""
    return make_requirement("Users can log in")


@pytest.fixture
def make_change_request(
    engine: RequirementsEngine, project_id: str, requirement: Requirement
) -> Callable[..., ChangeRequest]:
    """Return a factory creating change requests against ``requirement``."""

    def _make(**overrides: object) -> ChangeRequest:
        values: dict[str, object] = {
            "requirement_id": requirement.id,
            "title": "Support passkeys",
            "reason": "Customer demand",
            "requester_id": "carol",
        }
        values.update(overrides)
        return engine.change_requests.create_change_request(
            project_id,
            **values,  # pyright: ignore[reportArgumentType]
        )

    return _make


def _walk(
    engine: RequirementsEngine,
    project_id: str,
    change_request: ChangeRequest,
    *targets: ChangeRequestStatus,
) -> ChangeRequest:
    for target in targets:
        change_request = engine.change_requests.transition_status(
            project_id,
            change_request.id,
            target,
            actor="dave",
            reason="Not needed" if target == ChangeRequestStatus.REJECTED else None,
        )
    return change_request


class TestCreateChangeRequest:
    def test_creates_proposed_with_defaults(
        self, make_change_request: Callable[..., ChangeRequest]
    ) -> None:
        change_request = make_change_request()

        assert change_request.display_id == "RFC-0001"
        assert change_request.status == ChangeRequestStatus.PROPOSED
        assert change_request.impact_level == ImpactLevel.MEDIUM
        assert change_request.reviewer_id is None
        assert change_request.approved_at is None

    def test_numbering_is_separate_from_requirements(
        self,
        make_requirement: Callable[..., Requirement],
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        _ = make_requirement("Second")

        assert make_change_request().display_id == "RFC-0001"
        assert make_change_request().display_id == "RFC-0002"

    def test_stores_estimates_and_releases(
        self, make_change_request: Callable[..., ChangeRequest]
    ) -> None:
        change_request = make_change_request(
            impact_level="high",
            cost_estimate=1500.0,
            time_estimate_hours=16,
            affected_releases=["2.0", "2.1"],
        )

        assert change_request.impact_level == ImpactLevel.HIGH
        assert change_request.cost_estimate == 1500.0
        assert change_request.time_estimate_hours == 16
        assert change_request.affected_releases == ("2.0", "2.1")

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("title", " "),
            ("reason", ""),
            ("cost_estimate", -1.0),
            ("time_estimate_hours", -2),
            ("affected_releases", "2.0"),
            ("impact_level", "catastrophic"),
        ],
    )
    def test_invalid_field_raises_validation_error(
        self,
        make_change_request: Callable[..., ChangeRequest],
        field: str,
        value: object,
    ) -> None:
        with pytest.raises(LifecycleValidationError):
            make_change_request(**{field: value})

    @pytest.mark.parametrize("cost", [float("nan"), float("inf"), float("-inf"), "5"])
    def test_cost_must_be_a_finite_number(
        self, make_change_request: Callable[..., ChangeRequest], cost: object
    ) -> None:
        with pytest.raises(LifecycleValidationError) as exc_info:
            make_change_request(cost_estimate=cost)

        assert exc_info.value.field == "cost_estimate"

    def test_unknown_requirement_raises_not_found(
        self, make_change_request: Callable[..., ChangeRequest]
    ) -> None:
        with pytest.raises(RequirementNotFoundError):
            make_change_request(requirement_id="missing")

    def test_deleted_requirement_raises_not_found(
        self,
        engine: RequirementsEngine,
        project_id: str,
        requirement: Requirement,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        _ = engine.requirements.delete_requirement(
            project_id, requirement.id, actor="bob"
        )

        with pytest.raises(RequirementNotFoundError):
            make_change_request()

    def test_records_created_history(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        change_request = make_change_request()

        entry = engine.history.latest(
            project_id, EntityType.CHANGE_REQUEST, change_request.id
        )

        assert entry is not None
        assert entry.action == HistoryAction.CREATED
        assert entry.details["requirement_display_id"] == "REQ-0001"
        assert entry.actor_id == "carol"


class TestTransitionStatus:
    def test_happy_path_stamps_each_step(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        change_request = make_change_request()

        reviewed = _walk(
            engine, project_id, change_request, ChangeRequestStatus.UNDER_REVIEW
        )
        approved = _walk(engine, project_id, reviewed, ChangeRequestStatus.APPROVED)
        implemented = _walk(
            engine, project_id, approved, ChangeRequestStatus.IMPLEMENTED
        )

        assert reviewed.reviewer_id == "dave"
        assert approved.approved_by == "dave"
        assert approved.approved_at is not None
        assert implemented.implemented_at is not None
        assert implemented.is_terminal

    def test_rejection_requires_reason(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        change_request = _walk(
            engine,
            project_id,
            make_change_request(),
            ChangeRequestStatus.UNDER_REVIEW,
        )

        with pytest.raises(LifecycleValidationError) as exc_info:
            engine.change_requests.transition_status(
                project_id, change_request.id, "rejected", actor="dave"
            )

        assert exc_info.value.field == "reason"

    def test_rejection_stores_reason(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        rejected = _walk(
            engine,
            project_id,
            make_change_request(),
            ChangeRequestStatus.UNDER_REVIEW,
            ChangeRequestStatus.REJECTED,
        )

        assert rejected.rejection_reason == "Not needed"

    def test_skipping_review_is_invalid(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        change_request = make_change_request()

        with pytest.raises(InvalidTransitionError) as exc_info:
            engine.change_requests.transition_status(
                project_id, change_request.id, "approved", actor="dave"
            )

        assert exc_info.value.current == ChangeRequestStatus.PROPOSED
        stored = engine.change_requests.get_change_request(
            project_id, change_request.id
        )
        assert stored.status == ChangeRequestStatus.PROPOSED

    @pytest.mark.parametrize(
        "path",
        [
            (ChangeRequestStatus.CANCELLED,),
            (ChangeRequestStatus.UNDER_REVIEW, ChangeRequestStatus.REJECTED),
            (
                ChangeRequestStatus.UNDER_REVIEW,
                ChangeRequestStatus.APPROVED,
                ChangeRequestStatus.IMPLEMENTED,
            ),
        ],
    )
    def test_terminal_statuses_accept_no_transition(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_change_request: Callable[..., ChangeRequest],
        path: tuple[ChangeRequestStatus, ...],
    ) -> None:
        terminal = _walk(engine, project_id, make_change_request(), *path)

        for target in ChangeRequestStatus:
            with pytest.raises(InvalidTransitionError):
                engine.change_requests.transition_status(
                    project_id, terminal.id, target, actor="dave", reason="x"
                )

    def test_records_status_history(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        change_request = _walk(
            engine,
            project_id,
            make_change_request(),
            ChangeRequestStatus.UNDER_REVIEW,
        )

        entry = engine.history.latest(
            project_id, EntityType.CHANGE_REQUEST, change_request.id
        )

        assert entry is not None
        assert entry.action == HistoryAction.STATUS_CHANGED
        assert entry.details["status"] == {"old": "proposed", "new": "under_review"}

    def test_unknown_change_request_raises_not_found(
        self, engine: RequirementsEngine, project_id: str
    ) -> None:
        with pytest.raises(ChangeRequestNotFoundError):
            engine.change_requests.transition_status(
                project_id, "missing", "cancelled", actor="dave"
            )


class TestUpdateChangeRequest:
    def test_edits_open_request(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        change_request = make_change_request()

        updated = engine.change_requests.update_change_request(
            project_id,
            change_request.id,
            actor="carol",
            risk_description="Low",
            time_estimate_hours=8,
        )

        assert updated.risk_description == "Low"
        assert updated.time_estimate_hours == 8
        assert updated.revision == change_request.revision + 1
        entry = engine.history.latest(
            project_id, EntityType.CHANGE_REQUEST, change_request.id
        )
        assert entry is not None
        assert entry.action == HistoryAction.EDITED
        assert entry.details["time_estimate_hours"] == {"old": None, "new": 8}

    def test_non_finite_cost_is_rejected_and_nothing_changes(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        change_request = make_change_request(cost_estimate=100.0)

        with pytest.raises(LifecycleValidationError):
            _ = engine.change_requests.update_change_request(
                project_id, change_request.id, actor="carol", cost_estimate=float("nan")
            )

        stored = engine.change_requests.get_change_request(
            project_id, change_request.id
        )
        assert stored.cost_estimate == 100.0
        assert stored.revision == change_request.revision

    def test_noop_update_returns_request_unchanged(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        change_request = make_change_request()

        updated = engine.change_requests.update_change_request(
            project_id, change_request.id, actor="carol", title="Support passkeys"
        )

        assert updated == change_request

    def test_approved_request_is_closed_for_edits(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        approved = _walk(
            engine,
            project_id,
            make_change_request(),
            ChangeRequestStatus.UNDER_REVIEW,
            ChangeRequestStatus.APPROVED,
        )

        with pytest.raises(ConflictError) as exc_info:
            engine.change_requests.update_change_request(
                project_id, approved.id, actor="carol", title="Other"
            )

        assert exc_info.value.reason == "change_request_closed"


class TestQueries:
    def test_resolve_by_display_id(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        change_request = make_change_request()

        assert engine.change_requests.resolve(project_id, "RFC-0001") == change_request
        with pytest.raises(ChangeRequestNotFoundError):
            engine.change_requests.resolve(project_id, "RFC-0009")

    def test_requests_for_requirement_are_newest_first(
        self,
        engine: RequirementsEngine,
        project_id: str,
        requirement: Requirement,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        first = make_change_request()
        second = make_change_request(title="Support magic links")

        found = engine.change_requests.get_change_requests_for_requirement(
            project_id, requirement.id
        )

        assert [cr.id for cr in found] == [second.id, first.id]

    def test_list_filters_by_status_and_impact(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        low = make_change_request(impact_level="low")
        high = make_change_request(impact_level="high")
        _ = _walk(engine, project_id, high, ChangeRequestStatus.CANCELLED)

        by_impact = engine.change_requests.list_change_requests(
            project_id, filter_impact="low"
        )
        by_status = engine.change_requests.list_change_requests(
            project_id, filter_status=ChangeRequestStatus.CANCELLED
        )

        assert [cr.id for cr in by_impact] == [low.id]
        assert [cr.id for cr in by_status] == [high.id]


class TestAnalyzeImpact:
    def test_collects_descendants_and_their_artifacts(
        self,
        engine: RequirementsEngine,
        project_id: str,
        requirement: Requirement,
        make_requirement: Callable[..., Requirement],
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        child = make_requirement("Child", parent_id=requirement.id)
        grandchild = make_requirement("Grandchild", parent_id=child.id)
        unrelated = make_requirement("Unrelated")
        trace = engine.traceability
        _ = trace.link(project_id, requirement.id, "task", "T-1", actor="bob")
        _ = trace.link(project_id, grandchild.id, "test_case", "TC-9", actor="bob")
        _ = trace.link(project_id, child.id, "stakeholder", "ops", actor="bob")
        _ = trace.link(project_id, requirement.id, "stakeholder", "pm", actor="bob")
        _ = trace.link(project_id, unrelated.id, ArtifactType.TASK, "T-2", actor="b")
        other = make_change_request(title="Other change")
        change_request = make_change_request()

        impact = engine.change_requests.analyze_impact(project_id, change_request.id)

        assert impact.affected_requirement_ids == (
            requirement.id,
            child.id,
            grandchild.id,
        )
        assert impact.affected_tasks == ("T-1",)
        assert impact.affected_test_cases == ("TC-9",)
        assert impact.affected_stakeholders == ("pm",)
        assert impact.open_change_requests == (other.display_id,)

    def test_terminal_requests_are_not_open(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        cancelled = make_change_request()
        _ = _walk(engine, project_id, cancelled, ChangeRequestStatus.CANCELLED)
        change_request = make_change_request()

        impact = engine.change_requests.analyze_impact(project_id, change_request.id)

        assert impact.open_change_requests == ()


class TestAddComment:
    def test_comment_on_terminal_request_is_allowed(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_change_request: Callable[..., ChangeRequest],
    ) -> None:
        cancelled = _walk(
            engine, project_id, make_change_request(), ChangeRequestStatus.CANCELLED
        )

        entry = engine.change_requests.add_comment(
            project_id, cancelled.id, actor="carol", content="Superseded by RFC-0002"
        )

        assert entry.action == HistoryAction.COMMENTED
        assert entry.entity_type == EntityType.CHANGE_REQUEST
