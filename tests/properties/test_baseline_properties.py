"""Property-based tests for baselines and their diffs."""

from hypothesis import given, settings, strategies as st

from reqctl.lifecycle import (
    RequirementBaseline,
    RequirementsEngine,
)

# =============================================================================
# Strategies
# =============================================================================

# Interleavings of content edits and baseline captures.
operations = st.lists(st.sampled_from(["edit", "baseline"]), min_size=1, max_size=12)

priorities = st.sampled_from(["low", "medium", "high", "critical"])

tag_sets = st.frozensets(
    st.text(alphabet="abcdefghij", min_size=1, max_size=6), max_size=4
)


def _create(engine: RequirementsEngine) -> str:
    return engine.requirements.create_requirement(
        "demo",
        title="Baselined requirement",
        kind="business",
        priority="low",
        owner_id="alice",
        actor="alice",
    ).id


def _apply(
    engine: RequirementsEngine, requirement_id: str, ops: list[str]
) -> list[RequirementBaseline]:
    captured: list[RequirementBaseline] = []
    for n, op in enumerate(ops):
        if op == "edit":
            _ = engine.requirements.update_requirement(
                "demo", requirement_id, actor="bob", title=f"Title {n}"
            )
        else:
            captured.append(
                engine.baselines.create_baseline("demo", requirement_id, actor="bob")
            )
    return captured


# =============================================================================
# Version Properties
# =============================================================================


@settings(max_examples=40, deadline=None)
@given(ops=operations)
def test_versions_are_contiguous(ops: list[str]) -> None:
    """Property: baseline versions run 1..N with no gaps."""
    with RequirementsEngine.in_memory() as engine:
        requirement_id = _create(engine)
        captured = _apply(engine, requirement_id, ops)

        stored = engine.baselines.get_baseline_history("demo", requirement_id)
        requirement = engine.requirements.get_requirement("demo", requirement_id)

        assert [b.version for b in stored] == list(range(1, len(captured) + 1))
        assert requirement.baseline_version == len(captured)
        assert requirement.is_baselined == bool(captured)


@settings(max_examples=40, deadline=None)
@given(ops=operations)
def test_unbaselined_flag_tracks_last_operation(ops: list[str]) -> None:
    """Property: the flag is set iff an edit followed the latest baseline."""
    with RequirementsEngine.in_memory() as engine:
        requirement_id = _create(engine)
        _ = _apply(engine, requirement_id, ops)

        requirement = engine.requirements.get_requirement("demo", requirement_id)
        last_baseline = max(
            (i for i, op in enumerate(ops) if op == "baseline"), default=-1
        )
        edited_after = "edit" in ops[last_baseline + 1 :]

        assert requirement.has_unbaselined_changes == (
            last_baseline >= 0 and edited_after
        )


# =============================================================================
# Immutability Properties
# =============================================================================


@settings(max_examples=40, deadline=None)
@given(ops=operations)
def test_baselines_never_change(ops: list[str]) -> None:
    """Property: later edits and baselines leave stored baselines untouched."""
    with RequirementsEngine.in_memory() as engine:
        requirement_id = _create(engine)
        captured = _apply(engine, requirement_id, ops)
        _ = engine.requirements.update_requirement(
            "demo", requirement_id, actor="bob", title="After everything"
        )

        for baseline in captured:
            stored = engine.baselines.get_baseline(
                "demo", requirement_id, baseline.version
            )
            assert stored == baseline


@settings(max_examples=30, deadline=None)
@given(priority=priorities, tags=tag_sets)
def test_diff_against_self_is_empty(priority: str, tags: frozenset[str]) -> None:
    """Property: diffing a version with itself reports nothing."""
    with RequirementsEngine.in_memory() as engine:
        requirement_id = _create(engine)
        _ = engine.requirements.update_requirement(
            "demo", requirement_id, actor="bob", priority=priority, tags=tags
        )
        _ = engine.baselines.create_baseline("demo", requirement_id, actor="bob")

        assert engine.baselines.diff_baselines("demo", requirement_id, 1, 1).is_empty
        assert engine.baselines.diff_against_current("demo", requirement_id).is_empty


@settings(max_examples=30, deadline=None)
@given(
    first=priorities, second=priorities, first_tags=tag_sets, second_tags=tag_sets
)
def test_diff_reports_exactly_the_changed_fields(
    first: str, second: str, first_tags: frozenset[str], second_tags: frozenset[str]
) -> None:
    """Property: a diff names a field iff its value differs between versions."""
    with RequirementsEngine.in_memory() as engine:
        requirement_id = _create(engine)
        for priority, tags in ((first, first_tags), (second, second_tags)):
            _ = engine.requirements.update_requirement(
                "demo", requirement_id, actor="bob", priority=priority, tags=tags
            )
            _ = engine.baselines.create_baseline("demo", requirement_id, actor="bob")

        forward = engine.baselines.diff_baselines("demo", requirement_id, 1, 2)
        backward = engine.baselines.diff_baselines("demo", requirement_id, 2, 1)

        expected = {
            name
            for name, changed in (
                ("priority", first != second),
                ("tags", first_tags != second_tags),
            )
            if changed
        }
        assert set(forward.changed_fields) == expected
        assert set(backward.changed_fields) == expected
