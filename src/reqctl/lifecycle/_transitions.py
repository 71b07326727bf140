"""Lifecycle state machines.

Each entity kind has one transition table and one validation function; no
other module compares status values to decide whether a move is legal.
"""

from types import MappingProxyType
from typing import Final

from reqctl.exceptions import InvalidTransitionError
from reqctl.lifecycle._models import ChangeRequestStatus, RequirementStatus

__all__ = [
    "CHANGE_REQUEST_TRANSITIONS",
    "REQUIREMENT_TRANSITIONS",
    "allowed_change_request_targets",
    "allowed_requirement_targets",
    "validate_change_request_transition",
    "validate_requirement_transition",
]

REQUIREMENT_TRANSITIONS: Final[
    MappingProxyType[RequirementStatus, frozenset[RequirementStatus]]
] = MappingProxyType(
    {
        RequirementStatus.DRAFT: frozenset({RequirementStatus.REVIEW}),
        # Review may be sent back for rework.
        RequirementStatus.REVIEW: frozenset(
            {RequirementStatus.APPROVED, RequirementStatus.DRAFT}
        ),
        RequirementStatus.APPROVED: frozenset({RequirementStatus.IMPLEMENTED}),
        RequirementStatus.IMPLEMENTED: frozenset({RequirementStatus.VERIFIED}),
        RequirementStatus.VERIFIED: frozenset({RequirementStatus.CLOSED}),
        RequirementStatus.CLOSED: frozenset(),
    }
)

CHANGE_REQUEST_TRANSITIONS: Final[
    MappingProxyType[ChangeRequestStatus, frozenset[ChangeRequestStatus]]
] = MappingProxyType(
    {
        ChangeRequestStatus.PROPOSED: frozenset(
            {ChangeRequestStatus.UNDER_REVIEW, ChangeRequestStatus.CANCELLED}
        ),
        ChangeRequestStatus.UNDER_REVIEW: frozenset(
            {
                ChangeRequestStatus.APPROVED,
                ChangeRequestStatus.REJECTED,
                ChangeRequestStatus.CANCELLED,
            }
        ),
        ChangeRequestStatus.APPROVED: frozenset({ChangeRequestStatus.IMPLEMENTED}),
        ChangeRequestStatus.REJECTED: frozenset(),
        ChangeRequestStatus.IMPLEMENTED: frozenset(),
        ChangeRequestStatus.CANCELLED: frozenset(),
    }
)


def allowed_requirement_targets(
    current: RequirementStatus,
) -> frozenset[RequirementStatus]:
    """Return the statuses a requirement may move to from ``current``."""
    return REQUIREMENT_TRANSITIONS[current]


def allowed_change_request_targets(
    current: ChangeRequestStatus,
) -> frozenset[ChangeRequestStatus]:
    """Return the statuses a change request may move to from ``current``."""
    return CHANGE_REQUEST_TRANSITIONS[current]


def validate_requirement_transition(
    entity_id: str,
    current: RequirementStatus,
    requested: RequirementStatus,
) -> None:
    """Validate a requirement status change.

    Args:
        entity_id: Display ID of the requirement, used in the error.
        current: Status the requirement is in.
        requested: Status the caller asked for.

    Raises:
        InvalidTransitionError: If the table does not allow the move.
    """
    if requested not in REQUIREMENT_TRANSITIONS[current]:
        msg = _transition_message(
            entity_id, current, requested, REQUIREMENT_TRANSITIONS
        )
        raise InvalidTransitionError(
            msg, entity_id=entity_id, current=current, requested=requested
        )


def validate_change_request_transition(
    entity_id: str,
    current: ChangeRequestStatus,
    requested: ChangeRequestStatus,
) -> None:
    """Validate a change request status change.

    Args:
        entity_id: Display ID of the change request, used in the error.
        current: Status the change request is in.
        requested: Status the caller asked for.

    Raises:
        InvalidTransitionError: If the table does not allow the move.
    """
    if requested not in CHANGE_REQUEST_TRANSITIONS[current]:
        msg = _transition_message(
            entity_id, current, requested, CHANGE_REQUEST_TRANSITIONS
        )
        raise InvalidTransitionError(
            msg, entity_id=entity_id, current=current, requested=requested
        )


def _transition_message[S: str](
    entity_id: str,
    current: S,
    requested: S,
    table: MappingProxyType[S, frozenset[S]],
) -> str:
    allowed = sorted(table[current])
    if not allowed:
        return (
            f"Cannot move {entity_id} from '{current}' to '{requested}': "
            f"'{current}' is a terminal state"
        )
    return (
        f"Cannot move {entity_id} from '{current}' to '{requested}'; "
        f"allowed: {', '.join(allowed)}"
    )
