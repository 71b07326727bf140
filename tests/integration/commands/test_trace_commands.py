"""Integration tests for the trace command group."""

from collections.abc import Callable
from typing import Any

import pytest

from reqctl.cli._commands._shared import ExitCode
from reqctl.lifecycle import Requirement, RequirementsEngine

RunCli = Callable[..., None]
RunCliWithExitCode = Callable[..., int]
RunJson = Callable[..., dict[str, Any]]
MakeRequirement = Callable[..., Requirement]


class TestTraceLink:
    def test_link_and_list(
        self,
        reqctl_cli_with_exit_code: RunCliWithExitCode,
        reqctl_json: RunJson,
        capsys: pytest.CaptureFixture[str],
        make_requirement: MakeRequirement,
    ) -> None:
        requirement = make_requirement()

        exit_code = reqctl_cli_with_exit_code(
            "trace", "link", requirement.display_id, "test_case", "TC-1"
        )
        assert "Linked REQ-0001" in capsys.readouterr().err
        data = reqctl_json("trace", "links", requirement.display_id)

        assert exit_code == ExitCode.SUCCESS
        assert [(d["artifact_type"], d["artifact_id"]) for d in data["links"]] == [
            ("test_case", "TC-1")
        ]
        assert data["links"][0]["created_by"] == "cli-user"

    def test_link_twice_is_a_no_op(
        self,
        reqctl_cli: RunCli,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: MakeRequirement,
    ) -> None:
        requirement = make_requirement()

        reqctl_cli("trace", "link", requirement.display_id, "task", "T-1")
        reqctl_cli("trace", "link", requirement.display_id, "task", "T-1")

        assert len(engine.traceability.links_for(project_id, requirement.id)) == 1

    def test_links_type_filter(
        self,
        reqctl_json: RunJson,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: MakeRequirement,
    ) -> None:
        requirement = make_requirement()
        for artifact_type, artifact_id in (("task", "T-1"), ("meeting", "M-1")):
            _ = engine.traceability.link(
                project_id, requirement.id, artifact_type, artifact_id, actor="bob"
            )

        data = reqctl_json(
            "trace", "links", requirement.display_id, "--type", "meeting"
        )

        assert [d["artifact_id"] for d in data["links"]] == ["M-1"]

    def test_link_deleted_requirement_is_not_found(
        self,
        reqctl_cli_with_exit_code: RunCliWithExitCode,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: MakeRequirement,
    ) -> None:
        requirement = make_requirement()
        _ = engine.requirements.delete_requirement(
            project_id, requirement.id, actor="alice"
        )

        exit_code = reqctl_cli_with_exit_code(
            "trace", "link", requirement.display_id, "task", "T-1"
        )

        assert exit_code == ExitCode.NOT_FOUND


class TestTraceUnlink:
    def test_unlink_existing(
        self,
        reqctl_cli_with_exit_code: RunCliWithExitCode,
        capsys: pytest.CaptureFixture[str],
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: MakeRequirement,
    ) -> None:
        requirement = make_requirement()
        _ = engine.traceability.link(
            project_id, requirement.id, "task", "T-1", actor="bob"
        )

        exit_code = reqctl_cli_with_exit_code(
            "trace", "unlink", requirement.display_id, "task", "T-1"
        )

        assert exit_code == ExitCode.SUCCESS
        assert "Unlinked REQ-0001" in capsys.readouterr().err
        assert engine.traceability.links_for(project_id, requirement.id) == ()

    def test_unlink_missing_is_a_no_op(
        self,
        reqctl_cli_with_exit_code: RunCliWithExitCode,
        capsys: pytest.CaptureFixture[str],
        make_requirement: MakeRequirement,
    ) -> None:
        requirement = make_requirement()

        exit_code = reqctl_cli_with_exit_code(
            "trace", "unlink", requirement.display_id, "task", "T-9"
        )

        assert exit_code == ExitCode.SUCCESS
        assert "link to remove" in capsys.readouterr().err


class TestTraceReports:
    @pytest.fixture
    def linked_project(
        self,
        engine: RequirementsEngine,
        project_id: str,
        make_requirement: MakeRequirement,
    ) -> list[Requirement]:
        """Create four requirements, two of them covered by a task or test."""
        requirements = [
            make_requirement("Login"),
            make_requirement("Logout"),
            make_requirement("Audit", kind="non_functional"),
            make_requirement("Reports", kind="business"),
        ]
        link = engine.traceability.link
        _ = link(project_id, requirements[0].id, "task", "T-1", actor="bob")
        _ = link(project_id, requirements[0].id, "test_case", "TC-1", actor="bob")
        _ = link(project_id, requirements[1].id, "test_case", "TC-2", actor="bob")
        _ = link(project_id, requirements[2].id, "stakeholder", "Ops", actor="bob")
        return requirements

    def test_coverage_json(
        self, reqctl_json: RunJson, linked_project: list[Requirement]
    ) -> None:
        data = reqctl_json("trace", "coverage")

        assert data["total_requirements"] == len(linked_project)
        assert data["coverage_percent"] == 50
        assert data["fully_covered"] == 1
        assert data["partially_covered"] == 1
        assert data["uncovered"] == 2

    def test_coverage_table(
        self,
        reqctl_cli: RunCli,
        capsys: pytest.CaptureFixture[str],
        linked_project: list[Requirement],
    ) -> None:
        reqctl_cli("trace", "coverage")

        assert "Coverage:           50%" in capsys.readouterr().out

    def test_coverage_of_empty_project(self, reqctl_json: RunJson) -> None:
        data = reqctl_json("trace", "coverage")

        assert data["total_requirements"] == 0
        assert data["coverage_percent"] == 0

    def test_matrix(
        self, reqctl_json: RunJson, linked_project: list[Requirement]
    ) -> None:
        data = reqctl_json("trace", "matrix")

        rows = {row["display_id"]: row for row in data["rows"]}
        assert list(rows) == ["REQ-0001", "REQ-0002", "REQ-0003", "REQ-0004"]
        assert rows["REQ-0001"]["artifacts"]["task"] == ["T-1"]
        assert rows["REQ-0001"]["artifacts"]["test_case"] == ["TC-1"]
        assert rows["REQ-0003"]["artifacts"]["stakeholder"] == ["Ops"]

    def test_matrix_kind_filter(
        self, reqctl_json: RunJson, linked_project: list[Requirement]
    ) -> None:
        data = reqctl_json("trace", "matrix", "--kind", "business")

        assert [row["title"] for row in data["rows"]] == ["Reports"]
