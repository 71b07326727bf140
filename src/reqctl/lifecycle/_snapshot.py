"""Immutable, internally consistent read view of one project."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Self

from reqctl.lifecycle._ids import display_sequence
from reqctl.lifecycle._models import (
    ArtifactType,
    ChangeRequest,
    IdentifierKind,
    Requirement,
    RequirementBaseline,
    TraceLink,
)

__all__ = ["ProjectSnapshot"]


@dataclass(frozen=True, slots=True)
class ProjectSnapshot:
    """Point-in-time view of a project's collections.

    Repositories build snapshots under their own lock, so a snapshot never
    mixes state from before and after a commit.

    Attributes:
        project_id: The project.
        requirements: Requirements (tombstones included) keyed by opaque id.
        change_requests: Change requests keyed by opaque id.
        baselines: Baselines per requirement id, version-ordered.
        links: Trace links in creation order.
        counters: Last issued identifier sequence per kind.
    """

    project_id: str
    requirements: MappingProxyType[str, Requirement]
    change_requests: MappingProxyType[str, ChangeRequest]
    baselines: MappingProxyType[str, tuple[RequirementBaseline, ...]]
    links: tuple[TraceLink, ...]
    counters: MappingProxyType[IdentifierKind, int]

    @classmethod
    def empty(cls, project_id: str) -> Self:
        """Return the snapshot of a project that has no data yet."""
        return cls(
            project_id=project_id,
            requirements=MappingProxyType({}),
            change_requests=MappingProxyType({}),
            baselines=MappingProxyType({}),
            links=(),
            counters=MappingProxyType({}),
        )

    def live_requirements(self) -> list[Requirement]:
        """Return non-deleted requirements in creation order."""
        return sorted(
            (r for r in self.requirements.values() if not r.is_deleted),
            key=lambda r: display_sequence(r.display_id),
        )

    def children_of(self, parent_id: str) -> list[Requirement]:
        """Return the live children of ``parent_id`` in creation order."""
        return [r for r in self.live_requirements() if r.parent_id == parent_id]

    def children_index(self) -> dict[str | None, list[Requirement]]:
        """Group live requirements by parent id; roots are under None."""
        index: dict[str | None, list[Requirement]] = {}
        for requirement in self.live_requirements():
            index.setdefault(requirement.parent_id, []).append(requirement)
        return index

    def links_for(self, requirement_id: str) -> tuple[TraceLink, ...]:
        """Return the links of one requirement in creation order."""
        return tuple(
            link for link in self.links if link.requirement_id == requirement_id
        )

    def artifacts_by_requirement(
        self,
    ) -> dict[str, dict[ArtifactType, list[str]]]:
        """Group linked artifact ids by requirement and artifact type."""
        grouped: dict[str, dict[ArtifactType, list[str]]] = {}
        for link in self.links:
            by_type = grouped.setdefault(link.requirement_id, {})
            by_type.setdefault(link.artifact_type, []).append(link.artifact_id)
        return grouped

    def change_requests_for(self, requirement_id: str) -> list[ChangeRequest]:
        """Return the change requests targeting one requirement, newest first."""
        return sorted(
            (
                cr
                for cr in self.change_requests.values()
                if cr.requirement_id == requirement_id
            ),
            key=lambda cr: display_sequence(cr.display_id),
            reverse=True,
        )
