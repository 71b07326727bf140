"""Unit tests for RequirementStore."""

from collections.abc import Callable

import pytest

from reqctl.exceptions import (
    ConflictError,
    InvalidTransitionError,
    LifecycleValidationError,
    OperationCancelledError,
    RequirementNotFoundError,
)
from reqctl.lifecycle import (
    CancellationToken,
    EntityType,
    HistoryAction,
    Priority,
    Requirement,
    RequirementKind,
    RequirementsEngine,
    RequirementStatus,
)


class TestCreateRequirement:
    def test_creates_draft_with_first_display_id(
        self, make_requirement: Callable[..., Requirement]
    ) -> None:
        requirement = make_requirement("Users can log in")

        assert requirement.display_id == "REQ-0001"
        assert requirement.status == RequirementStatus.DRAFT
        assert requirement.kind == RequirementKind.FUNCTIONAL
        assert requirement.priority == Priority.MEDIUM
        assert requirement.revision == 1
        assert requirement.is_baselined is False
        assert requirement.baseline_version == 0
        assert requirement.has_unbaselined_changes is False

    def test_assigns_sequential_display_ids(
        self, make_requirement: Callable[..., Requirement]
    ) -> None:
        ids = [make_requirement(f"Requirement {n}").display_id for n in range(3)]

        assert ids == ["REQ-0001", "REQ-0002", "REQ-0003"]

    def test_strips_title_and_collapses_tags(
        self, make_requirement: Callable[..., Requirement]
    ) -> None:
        requirement = make_requirement(
            "  Export reports  ", tags=["ui", " ui ", "export"]
        )

        assert requirement.title == "Export reports"
        assert requirement.tags == frozenset({"ui", "export"})

    def test_keeps_acceptance_criteria_order_and_duplicates(
        self, make_requirement: Callable[..., Requirement]
    ) -> None:
        requirement = make_requirement(
            acceptance_criteria=["second", "first", "second"]
        )

        assert requirement.acceptance_criteria == ("second", "first", "second")

    def test_blank_title_raises_validation_error(
        self, make_requirement: Callable[..., Requirement]
    ) -> None:
        with pytest.raises(LifecycleValidationError) as exc_info:
            make_requirement("   ")

        assert exc_info.value.field == "title"

    def test_unknown_kind_raises_validation_error(
        self, make_requirement: Callable[..., Requirement]
    ) -> None:
        with pytest.raises(LifecycleValidationError) as exc_info:
            make_requirement(kind="aesthetic")

        assert exc_info.value.field == "kind"

    def test_unknown_parent_raises_validation_error(
        self, make_requirement: Callable[..., Requirement]
    ) -> None:
        with pytest.raises(LifecycleValidationError) as exc_info:
            make_requirement(parent_id="missing")

        assert exc_info.value.field == "parent_id"

    def test_failed_create_does_not_consume_display_id(
        self, make_requirement: Callable[..., Requirement]
    ) -> None:
        with pytest.raises(LifecycleValidationError):
            make_requirement(parent_id="missing")

        assert make_requirement().display_id == "REQ-0001"

    def test_records_created_history(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()

        entries = engine.history.get_history(
            project_id, EntityType.REQUIREMENT, requirement.id
        ).to_list()

        assert [e.action for e in entries] == [HistoryAction.CREATED]
        assert entries[0].details["display_id"] == "REQ-0001"
        assert entries[0].actor_id == "alice"

    def test_projects_number_independently(
        self, engine: RequirementsEngine
    ) -> None:
        first = engine.requirements.create_requirement(
            "alpha", title="A", kind="business", priority="low", owner_id="o", actor="o"
        )
        second = engine.requirements.create_requirement(
            "beta", title="B", kind="business", priority="low", owner_id="o", actor="o"
        )

        assert first.display_id == second.display_id == "REQ-0001"


class TestGetRequirement:
    def test_resolve_accepts_display_id_and_opaque_id(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()

        by_display = engine.requirements.resolve(project_id, "REQ-0001")
        by_id = engine.requirements.resolve(project_id, requirement.id)

        assert by_display == by_id == requirement

    def test_missing_requirement_raises_not_found(
        self, engine: RequirementsEngine, project_id: str
    ) -> None:
        with pytest.raises(RequirementNotFoundError) as exc_info:
            engine.requirements.get_requirement(project_id, "nope")

        assert exc_info.value.requirement_id == "nope"
        assert str(exc_info.value) == "Requirement not found: nope"

    def test_requirement_exists(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()

        assert engine.requirements.requirement_exists(project_id, requirement.id)
        assert not engine.requirements.requirement_exists(project_id, "nope")


class TestListRequirements:
    def test_filters_by_kind_status_priority_and_tags(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        _ = make_requirement("A", kind="business", tags=["core"])
        b = make_requirement("B", priority="high", tags=["core", "ui"])
        _ = make_requirement("C", priority="high")

        store = engine.requirements
        assert [r.title for r in store.list_requirements(project_id)] == [
            "A",
            "B",
            "C",
        ]
        assert [
            r.title for r in store.list_requirements(project_id, filter_kind="business")
        ] == ["A"]
        assert [
            r.title
            for r in store.list_requirements(project_id, filter_priority=Priority.HIGH)
        ] == ["B", "C"]
        assert store.list_requirements(
            project_id, filter_tags=["core", "ui"]
        ) == [b]
        assert store.list_requirements(project_id, filter_status="review") == []

    def test_invalid_filter_raises_validation_error(
        self, engine: RequirementsEngine, project_id: str
    ) -> None:
        with pytest.raises(LifecycleValidationError):
            engine.requirements.list_requirements(project_id, filter_status="done")

    def test_excludes_deleted_unless_requested(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()
        _ = engine.requirements.delete_requirement(
            project_id, requirement.id, actor="alice"
        )

        assert engine.requirements.list_requirements(project_id) == []
        listed = engine.requirements.list_requirements(
            project_id, include_deleted=True
        )
        assert [r.id for r in listed] == [requirement.id]


class TestUpdateRequirement:
    def test_edits_fields_and_bumps_revision(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()

        updated = engine.requirements.update_requirement(
            project_id, requirement.id, actor="bob", title="Users can sign in"
        )

        assert updated.title == "Users can sign in"
        assert updated.revision == 2
        assert updated.updated_at >= requirement.updated_at

    def test_records_field_diff(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()

        _ = engine.requirements.update_requirement(
            project_id, requirement.id, actor="bob", priority="high"
        )

        entry = engine.history.latest(
            project_id, EntityType.REQUIREMENT, requirement.id
        )
        assert entry is not None
        assert entry.action == HistoryAction.EDITED
        assert entry.actor_id == "bob"
        assert entry.details["priority"] == {"old": "medium", "new": "high"}

    def test_noop_patch_changes_nothing(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()

        updated = engine.requirements.update_requirement(
            project_id,
            requirement.id,
            actor="bob",
            title=requirement.title,
            status=RequirementStatus.DRAFT,
        )

        assert updated == requirement
        trail = engine.history.get_history(
            project_id, EntityType.REQUIREMENT, requirement.id
        ).to_list()
        assert len(trail) == 1

    def test_allowed_status_change_records_status_entry(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()

        updated = engine.requirements.update_requirement(
            project_id, requirement.id, actor="bob", status="review"
        )

        assert updated.status == RequirementStatus.REVIEW
        entry = engine.history.latest(
            project_id, EntityType.REQUIREMENT, requirement.id
        )
        assert entry is not None
        assert entry.action == HistoryAction.STATUS_CHANGED
        assert entry.details["status"] == {"old": "draft", "new": "review"}

    def test_disallowed_status_change_raises_and_leaves_state(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()

        with pytest.raises(InvalidTransitionError) as exc_info:
            engine.requirements.update_requirement(
                project_id,
                requirement.id,
                actor="bob",
                title="Changed",
                status=RequirementStatus.APPROVED,
            )

        assert exc_info.value.current == RequirementStatus.DRAFT
        assert exc_info.value.requested == RequirementStatus.APPROVED
        current = engine.requirements.get_requirement(project_id, requirement.id)
        assert current == requirement

    def test_edit_after_baseline_flags_unbaselined_changes(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()
        _ = engine.baselines.create_baseline(project_id, requirement.id, actor="bob")

        updated = engine.requirements.update_requirement(
            project_id, requirement.id, actor="bob", description="More detail"
        )

        assert updated.has_unbaselined_changes is True
        assert updated.baseline_version == 1

    def test_empty_description_clears_field(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement(description="Details")

        updated = engine.requirements.update_requirement(
            project_id, requirement.id, actor="bob", description=""
        )

        assert updated.description is None

    def test_update_of_deleted_requirement_raises_not_found(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()
        _ = engine.requirements.delete_requirement(
            project_id, requirement.id, actor="bob"
        )

        with pytest.raises(RequirementNotFoundError):
            engine.requirements.update_requirement(
                project_id, requirement.id, actor="bob", title="Back"
            )


class TestHierarchy:
    def test_reparent_records_reparented_entry(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        parent = make_requirement("Parent")
        child = make_requirement("Child")

        moved = engine.requirements.update_requirement(
            project_id, child.id, actor="bob", parent_id=parent.id
        )

        assert moved.parent_id == parent.id
        assert engine.requirements.get_children(project_id, parent.id) == [moved]
        entry = engine.history.latest(project_id, EntityType.REQUIREMENT, child.id)
        assert entry is not None
        assert entry.action == HistoryAction.REPARENTED

    def test_detach_parent_makes_root(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        parent = make_requirement("Parent")
        child = make_requirement("Child", parent_id=parent.id)

        moved = engine.requirements.update_requirement(
            project_id, child.id, actor="bob", detach_parent=True
        )

        assert moved.parent_id is None

    def test_cycle_is_rejected(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        root = make_requirement("Root")
        middle = make_requirement("Middle", parent_id=root.id)
        leaf = make_requirement("Leaf", parent_id=middle.id)

        with pytest.raises(LifecycleValidationError, match="cycle"):
            engine.requirements.update_requirement(
                project_id, root.id, actor="bob", parent_id=leaf.id
            )

    def test_self_parent_is_rejected(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()

        with pytest.raises(LifecycleValidationError):
            engine.requirements.update_requirement(
                project_id, requirement.id, actor="bob", parent_id=requirement.id
            )

    def test_parent_and_detach_are_exclusive(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        parent = make_requirement("Parent")
        child = make_requirement("Child")

        with pytest.raises(LifecycleValidationError):
            engine.requirements.update_requirement(
                project_id,
                child.id,
                actor="bob",
                parent_id=parent.id,
                detach_parent=True,
            )

    def test_hierarchy_walks_depth_first(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        a = make_requirement("A")
        _ = make_requirement("B")
        _ = make_requirement("A1", parent_id=a.id)

        hierarchy = engine.requirements.get_hierarchy(project_id)

        assert [n.requirement.title for n in hierarchy] == ["A", "B"]
        walked = [(n.requirement.title, n.depth) for n in hierarchy.walk()]
        assert walked == [("A", 0), ("A1", 1), ("B", 0)]
        assert len(hierarchy) == 3
        assert [n.is_leaf for n in hierarchy] == [False, True]
        assert hierarchy.to_dicts()[0]["children"][0]["title"] == "A1"

    def test_hierarchy_honors_cancellation(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        _ = make_requirement()
        token = CancellationToken()
        token.cancel()

        hierarchy = engine.requirements.get_hierarchy(project_id, cancel=token)

        with pytest.raises(OperationCancelledError):
            list(hierarchy.walk())


class TestDeleteRequirement:
    def test_tombstone_keeps_display_id_reserved(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()

        tombstone = engine.requirements.delete_requirement(
            project_id, requirement.id, actor="bob"
        )

        assert tombstone.is_deleted
        assert make_requirement("Next").display_id == "REQ-0002"
        with pytest.raises(RequirementNotFoundError):
            engine.requirements.get_requirement(project_id, requirement.id)
        kept = engine.requirements.get_requirement(
            project_id, requirement.id, include_deleted=True
        )
        assert kept.deleted_at is not None

    def test_history_survives_delete(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()
        _ = engine.requirements.delete_requirement(
            project_id, requirement.id, actor="bob"
        )

        actions = [
            e.action
            for e in engine.history.get_history(
                project_id, EntityType.REQUIREMENT, requirement.id
            )
        ]

        assert actions == [HistoryAction.CREATED, HistoryAction.DELETED]

    def test_requirement_with_children_cannot_be_deleted(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        parent = make_requirement("Parent")
        _ = make_requirement("Child", parent_id=parent.id)

        with pytest.raises(ConflictError) as exc_info:
            engine.requirements.delete_requirement(project_id, parent.id, actor="bob")

        assert exc_info.value.reason == "has_children"

    def test_open_change_request_blocks_delete(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()
        _ = engine.change_requests.create_change_request(
            project_id,
            requirement_id=requirement.id,
            title="Change",
            reason="Because",
            requester_id="carol",
        )

        with pytest.raises(ConflictError) as exc_info:
            engine.requirements.delete_requirement(
                project_id, requirement.id, actor="bob"
            )

        assert exc_info.value.reason == "has_change_requests"

    def test_cancelled_change_request_does_not_block_delete(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()
        rfc = engine.change_requests.create_change_request(
            project_id,
            requirement_id=requirement.id,
            title="Change",
            reason="Because",
            requester_id="carol",
        )
        _ = engine.change_requests.transition_status(
            project_id, rfc.id, "cancelled", actor="carol"
        )

        tombstone = engine.requirements.delete_requirement(
            project_id, requirement.id, actor="bob"
        )

        assert tombstone.is_deleted


class TestAddComment:
    def test_comment_is_recorded(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()

        entry = engine.requirements.add_comment(
            project_id, requirement.id, actor="bob", content="  Looks good  "
        )

        assert entry.action == HistoryAction.COMMENTED
        assert entry.details["content"] == "Looks good"
        assert entry.sequence == 2

    def test_blank_comment_raises_validation_error(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: Callable[..., Requirement],
    ) -> None:
        requirement = make_requirement()

        with pytest.raises(LifecycleValidationError):
            engine.requirements.add_comment(
                project_id, requirement.id, actor="bob", content=" "
            )
