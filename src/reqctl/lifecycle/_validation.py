"""Input validation helpers shared by the lifecycle managers.

Every helper raises LifecycleValidationError naming the offending field, so
callers can report exactly which rule was violated.
"""

import math
from collections.abc import Iterable
from enum import StrEnum

from reqctl.exceptions import LifecycleValidationError

__all__ = [
    "coerce_enum",
    "normalize_criteria",
    "normalize_tags",
    "optional_text",
    "require_non_negative",
    "require_text",
]


def require_text(value: str, field: str) -> str:
    """Return ``value`` stripped, rejecting blank strings."""
    if not isinstance(value, str) or not value.strip():
        msg = f"{field} must not be empty"
        raise LifecycleValidationError(
            msg, field=field, value=value, expected="non-empty string"
        )
    return value.strip()


def optional_text(value: str | None) -> str | None:
    """Return ``value`` stripped, mapping blank strings to None."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def coerce_enum[E: StrEnum](enum_type: type[E], value: E | str, field: str) -> E:
    """Convert a string to ``enum_type``.

    Raises:
        LifecycleValidationError: If the value is not a member.
    """
    try:
        return enum_type(value)
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_type)
        msg = f"Invalid {field}: {value!r} (expected one of: {allowed})"
        raise LifecycleValidationError(
            msg, field=field, value=value, expected=allowed
        ) from e


def normalize_criteria(criteria: Iterable[str]) -> tuple[str, ...]:
    """Strip acceptance criteria, keeping order and duplicates."""
    if isinstance(criteria, str):
        msg = "acceptance_criteria must be a sequence of strings"
        raise LifecycleValidationError(
            msg, field="acceptance_criteria", value=criteria, expected="sequence"
        )
    return tuple(require_text(item, "acceptance_criteria") for item in criteria)


def normalize_tags(tags: Iterable[str]) -> frozenset[str]:
    """Strip tags and collapse duplicates."""
    if isinstance(tags, str):
        msg = "tags must be a collection of strings"
        raise LifecycleValidationError(msg, field="tags", value=tags, expected="set")
    return frozenset(require_text(tag, "tags") for tag in tags)


def require_non_negative[N: (int, float)](value: N | None, field: str) -> N | None:
    """Reject anything but a finite number >= 0; None passes through."""
    if value is None:
        return None
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, float))
        or not math.isfinite(value)
        or value < 0
    ):
        msg = f"{field} must be a finite non-negative number, got {value!r}"
        raise LifecycleValidationError(
            msg, field=field, value=value, expected="finite number >= 0"
        )
    return value
