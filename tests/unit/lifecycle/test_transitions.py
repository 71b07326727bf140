"""Unit tests for the status transition tables."""

import pytest

from reqctl.exceptions import InvalidTransitionError
from reqctl.lifecycle import (
    CHANGE_REQUEST_TRANSITIONS,
    REQUIREMENT_TRANSITIONS,
    ChangeRequestStatus,
    RequirementStatus,
    allowed_change_request_targets,
    allowed_requirement_targets,
)
from reqctl.lifecycle._transitions import (
    validate_change_request_transition,
    validate_requirement_transition,
)


class TestRequirementTransitions:
    @pytest.mark.parametrize(
        ("current", "requested"),
        [
            (RequirementStatus.DRAFT, RequirementStatus.REVIEW),
            (RequirementStatus.REVIEW, RequirementStatus.APPROVED),
            (RequirementStatus.REVIEW, RequirementStatus.DRAFT),
            (RequirementStatus.APPROVED, RequirementStatus.IMPLEMENTED),
            (RequirementStatus.IMPLEMENTED, RequirementStatus.VERIFIED),
            (RequirementStatus.VERIFIED, RequirementStatus.CLOSED),
        ],
    )
    def test_allowed_moves_pass(
        self, current: RequirementStatus, requested: RequirementStatus
    ) -> None:
        validate_requirement_transition("REQ-0001", current, requested)

    def test_every_status_has_an_entry(self) -> None:
        assert set(REQUIREMENT_TRANSITIONS) == set(RequirementStatus)

    def test_closed_is_terminal(self) -> None:
        assert allowed_requirement_targets(RequirementStatus.CLOSED) == frozenset()

    def test_skipping_a_step_is_rejected(self) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_requirement_transition(
                "REQ-0001", RequirementStatus.DRAFT, RequirementStatus.IMPLEMENTED
            )

        error = exc_info.value
        assert error.entity_id == "REQ-0001"
        assert "review" in str(error)

    def test_message_for_terminal_status_mentions_no_moves(self) -> None:
        with pytest.raises(InvalidTransitionError, match="closed"):
            validate_requirement_transition(
                "REQ-0001", RequirementStatus.CLOSED, RequirementStatus.DRAFT
            )


class TestChangeRequestTransitions:
    def test_every_status_has_an_entry(self) -> None:
        assert set(CHANGE_REQUEST_TRANSITIONS) == set(ChangeRequestStatus)

    @pytest.mark.parametrize(
        "status",
        [
            ChangeRequestStatus.REJECTED,
            ChangeRequestStatus.IMPLEMENTED,
            ChangeRequestStatus.CANCELLED,
        ],
    )
    def test_terminal_statuses_have_no_targets(
        self, status: ChangeRequestStatus
    ) -> None:
        assert allowed_change_request_targets(status) == frozenset()

    def test_approved_cannot_be_cancelled(self) -> None:
        with pytest.raises(InvalidTransitionError):
            validate_change_request_transition(
                "RFC-0001",
                ChangeRequestStatus.APPROVED,
                ChangeRequestStatus.CANCELLED,
            )

    def test_review_can_end_three_ways(self) -> None:
        assert allowed_change_request_targets(
            ChangeRequestStatus.UNDER_REVIEW
        ) == frozenset(
            {
                ChangeRequestStatus.APPROVED,
                ChangeRequestStatus.REJECTED,
                ChangeRequestStatus.CANCELLED,
            }
        )
