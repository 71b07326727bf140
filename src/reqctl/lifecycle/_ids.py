"""Display identifier allocation.

Display identifiers look like ``REQ-0001`` and ``RFC-0001``: a per-kind prefix,
a dash and a zero-padded per-project sequence. Sequences only ever grow; a
number is consumed when the creating unit of work commits and is never handed
out again, even if the entity is later deleted.
"""

import re
from collections.abc import Iterator  # noqa: TC003
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from reqctl.config import NumberingConfiguration
from reqctl.exceptions import LifecycleValidationError
from reqctl.lifecycle._models import IdentifierKind

if TYPE_CHECKING:
    from reqctl.lifecycle._concurrency import LockRegistry
    from reqctl.lifecycle._unit_of_work import UnitOfWork
    from reqctl.repository import RepositoryProtocol

__all__ = [
    "AllocatedIdentifier",
    "IdentifierAllocator",
    "ParsedDisplayId",
    "display_sequence",
    "parse_display_id",
]

_DISPLAY_ID_PATTERN: Final = re.compile(r"^(?P<prefix>[A-Z][A-Z0-9]*)-(?P<number>\d+)$")


@dataclass(frozen=True, slots=True)
class ParsedDisplayId:
    """Components of a display identifier.

    Attributes:
        prefix: The kind prefix, e.g. ``REQ``.
        sequence: The per-project sequence number.
    """

    prefix: str
    sequence: int


@dataclass(frozen=True, slots=True)
class AllocatedIdentifier:
    """A reserved, not yet committed, display identifier.

    Attributes:
        kind: Identifier sequence it was drawn from.
        sequence: The reserved sequence number.
        display_id: The formatted identifier.
    """

    kind: IdentifierKind
    sequence: int
    display_id: str

    def stage(self, unit: "UnitOfWork") -> None:  # noqa: UP037
        """Add the counter advance for this identifier to ``unit``."""
        unit.bump_counter(self.kind, expected=self.sequence - 1, value=self.sequence)


def parse_display_id(display_id: str) -> ParsedDisplayId:
    """Parse a display identifier.

    Args:
        display_id: Identifier such as ``REQ-0001``.

    Returns:
        The parsed prefix and sequence.

    Raises:
        LifecycleValidationError: If the identifier is malformed.
    """
    match = _DISPLAY_ID_PATTERN.match(display_id)
    if match is None:
        msg = f"Malformed display ID: {display_id!r}"
        raise LifecycleValidationError(
            msg, field="display_id", value=display_id, expected="PREFIX-NNNN"
        )
    return ParsedDisplayId(prefix=match["prefix"], sequence=int(match["number"]))


def display_sequence(display_id: str) -> int:
    """Return the sequence number of a display identifier, for ordering."""
    return parse_display_id(display_id).sequence


class IdentifierAllocator:
    """Issues display identifiers per project and per entity kind.

    Reservations for the same project and kind are serialized by a lock held
    for the whole ``reserve`` block, so the creating operation can commit the
    counter advance together with the new entity. The repository still checks
    the expected counter value, which catches writers in other processes.
    """

    __slots__: Final = ("_locks", "_numbering", "_repository")

    _locks: "LockRegistry"  # noqa: UP037
    _numbering: NumberingConfiguration
    _repository: "RepositoryProtocol"  # noqa: UP037

    def __init__(
        self,
        repository: "RepositoryProtocol",  # noqa: UP037
        locks: "LockRegistry",  # noqa: UP037
        *,
        numbering: NumberingConfiguration | None = None,
    ) -> None:
        """Initialize the allocator.

        Args:
            repository: Source of the committed counter values.
            locks: Engine-scoped lock registry.
            numbering: Prefix and width settings.
        """
        self._repository = repository
        self._locks = locks
        self._numbering = (
            numbering if numbering is not None else NumberingConfiguration()
        )

    def prefix_for(self, kind: IdentifierKind) -> str:
        """Return the configured prefix of ``kind``."""
        if kind is IdentifierKind.REQUIREMENT:
            return self._numbering.requirement_prefix
        return self._numbering.change_request_prefix

    def format(self, kind: IdentifierKind, sequence: int) -> str:
        """Format a display identifier.

        Numbers wider than the configured digits are written in full rather
        than truncated.
        """
        return f"{self.prefix_for(kind)}-{sequence:0{self._numbering.digits}d}"

    def peek(self, project_id: str, kind: IdentifierKind) -> str:
        """Return the identifier the next reservation would get."""
        return self.format(kind, self._repository.get_counter(project_id, kind) + 1)

    @contextmanager
    def reserve(
        self, project_id: str, kind: IdentifierKind
    ) -> Iterator[AllocatedIdentifier]:
        """Reserve the next identifier for the duration of the block.

        The caller must stage the returned identifier into the unit of work it
        commits inside the block.

        Args:
            project_id: The project.
            kind: Which sequence to draw from.

        Yields:
            The reserved identifier.
        """
        with self._locks.lock_for("counter", project_id, kind):
            sequence = self._repository.get_counter(project_id, kind) + 1
            yield AllocatedIdentifier(
                kind=kind, sequence=sequence, display_id=self.format(kind, sequence)
            )
