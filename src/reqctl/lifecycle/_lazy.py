"""Restartable lazy sequences."""

from collections.abc import Callable, Iterator  # noqa: TC003
from typing import Final

__all__ = ["LazySequence"]


class LazySequence[T]:
    """An iterable that runs its producer afresh on every iteration.

    Nothing is computed until iteration starts, and abandoning an iteration
    part way stops the work. Iterating again restarts from the beginning.

    Example:
        >>> numbers = LazySequence(lambda: iter(range(3)))
        >>> list(numbers), list(numbers)
        ([0, 1, 2], [0, 1, 2])
    """

    __slots__: Final = ("_producer",)

    _producer: Callable[[], Iterator[T]]

    def __init__(self, producer: Callable[[], Iterator[T]]) -> None:
        """Initialize with a zero-argument callable returning a fresh iterator."""
        self._producer = producer

    def __iter__(self) -> Iterator[T]:
        """Start a new iteration."""
        return self._producer()

    def first(self) -> T | None:
        """Return the first item, or None if the sequence is empty."""
        return next(iter(self), None)

    def to_list(self) -> list[T]:
        """Materialize the sequence."""
        return list(self)
