"""Shared test fixtures for reqctl tests."""

from collections.abc import Callable, Generator
from typing import Any

import pytest
from rich.console import Console

from reqctl.lifecycle import Requirement, RequirementsEngine

PROJECT = "demo"


@pytest.fixture
def console() -> Console:
    return Console(
        width=70,
        force_terminal=True,
        highlight=False,
        color_system=None,
        legacy_windows=False,
    )


@pytest.fixture
def project_id() -> str:
    """Project every engine fixture operates on."""
    return PROJECT


@pytest.fixture
def engine() -> Generator[RequirementsEngine]:
    """Create an engine over a fresh in-memory repository."""
    with RequirementsEngine.in_memory() as eng:
        yield eng


@pytest.fixture
def make_requirement(
    engine: RequirementsEngine, project_id: str
) -> Callable[..., Requirement]:
    """Return a factory creating requirements with sensible defaults."""

    def _make(title: str = "Users can log in", **overrides: Any) -> Requirement:
        values: dict[str, Any] = {
            "kind": "functional",
            "priority": "medium",
            "owner_id": "alice",
            "actor": "alice",
        }
        values.update(overrides)
        return engine.requirements.create_requirement(
            project_id, title=title, **values
        )

    return _make
