# pyright: reportExplicitAny=false
"""Lazy, restartable views of the requirement tree."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Final

from reqctl.lifecycle._concurrency import CancellationToken, check_cancelled
from reqctl.lifecycle._models import Requirement

__all__ = ["HierarchyNode", "RequirementHierarchy"]

type ChildIndex = Mapping[str | None, tuple[Requirement, ...]]


@dataclass(frozen=True, slots=True)
class HierarchyNode:
    """One requirement in the tree.

    Attributes:
        requirement: The requirement at this node.
        depth: Distance from the root (roots have depth 0).
    """

    requirement: Requirement
    depth: int
    _index: ChildIndex = field(repr=False, compare=False)

    @property
    def children(self) -> "tuple[HierarchyNode, ...]":  # noqa: UP037
        """Return the child nodes, built on access."""
        return tuple(
            HierarchyNode(child, self.depth + 1, self._index)
            for child in self._index.get(self.requirement.id, ())
        )

    @property
    def is_leaf(self) -> bool:
        """Return True when the requirement has no live children."""
        return not self._index.get(self.requirement.id)


class RequirementHierarchy:
    """Requirement forest of one project, captured from a single snapshot.

    Iterating yields the root nodes; ``walk`` yields every node depth-first.
    Both may be repeated and always see the same snapshot. A cancellation
    token, when given, is checked before each node is produced.
    """

    __slots__: Final = ("_cancel", "_index", "project_id")

    project_id: str
    _cancel: CancellationToken | None
    _index: ChildIndex

    def __init__(
        self,
        project_id: str,
        index: ChildIndex,
        *,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Initialize from a parent-id index; roots are stored under None."""
        self.project_id = project_id
        self._index = index
        self._cancel = cancel

    def __iter__(self) -> Iterator[HierarchyNode]:
        """Yield root nodes in creation order."""
        for root in self._index.get(None, ()):
            check_cancelled(self._cancel, "get_hierarchy")
            yield HierarchyNode(root, 0, self._index)

    def __len__(self) -> int:
        """Return the number of requirements in the tree."""
        return sum(len(children) for children in self._index.values())

    def walk(self) -> Iterator[HierarchyNode]:
        """Yield every node in depth-first pre-order."""
        stack = [HierarchyNode(r, 0, self._index) for r in self._index.get(None, ())]
        stack.reverse()
        while stack:
            check_cancelled(self._cancel, "get_hierarchy")
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_dicts(self) -> list[dict[str, Any]]:
        """Return the tree as nested dictionaries (for serialization)."""

        def convert(node: HierarchyNode) -> dict[str, Any]:
            requirement = node.requirement
            return {
                "id": requirement.id,
                "display_id": requirement.display_id,
                "title": requirement.title,
                "status": requirement.status.value,
                "children": [convert(child) for child in node.children],
            }

        return [convert(root) for root in self]
