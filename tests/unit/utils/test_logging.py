"""Unit tests for the structlog logger factories."""

import json
import logging
from pathlib import Path

import pytest

from reqctl.config import LoggingConfig
from reqctl.lifecycle import RequirementsEngine
from reqctl.utils import create_cli_logger, create_logger
from reqctl.utils._logging import _log_level_from_string


def _read_entries(path: Path) -> list[dict[str, object]]:
    return [json.loads(line) for line in path.read_text().splitlines() if line]


class TestLogLevelFromString:
    def test_known_levels(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("REQCTL_DEBUG", raising=False)
        monkeypatch.delenv("REQCTL_LOG_LEVEL", raising=False)

        assert _log_level_from_string("debug") == logging.DEBUG
        assert _log_level_from_string("WARNING") == logging.WARNING
        assert _log_level_from_string("nonsense") == logging.INFO

    def test_debug_variable_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REQCTL_DEBUG", "1")

        assert _log_level_from_string("error") == logging.DEBUG
        assert _log_level_from_string("error", respect_env=False) == logging.ERROR

    def test_level_variable_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("REQCTL_DEBUG", raising=False)
        monkeypatch.setenv("REQCTL_LOG_LEVEL", "error")

        assert _log_level_from_string("debug") == logging.ERROR


class TestCreateLogger:
    def test_writes_json_lines(self, tmp_path: Path) -> None:
        path = tmp_path / "logs" / "test.log"
        logger = create_logger(path)

        logger.info("requirement_created", display_id="REQ-0001")

        (entry,) = _read_entries(path)
        assert entry["event"] == "requirement_created"
        assert entry["display_id"] == "REQ-0001"
        assert entry["level"] == "info"
        assert "timestamp" in entry

    def test_filters_below_level(self, tmp_path: Path) -> None:
        path = tmp_path / "test.log"
        logger = create_logger(path, log_level=logging.WARNING)

        logger.info("ignored")
        logger.warning("kept")

        assert [e["event"] for e in _read_entries(path)] == ["kept"]

    def test_text_format(self, tmp_path: Path) -> None:
        path = tmp_path / "test.log"
        logger = create_logger(path, log_format="text")

        logger.info("baseline_created", version=2)

        content = path.read_text()
        assert "baseline_created" in content
        assert "version=2" in content


class TestCreateCliLogger:
    def test_binds_command_and_project(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("REQCTL_DEBUG", raising=False)
        monkeypatch.delenv("REQCTL_LOG_LEVEL", raising=False)
        path = tmp_path / "cli.log"
        logger = create_cli_logger(
            LoggingConfig(file=str(path)), command="req add", project_id="demo"
        )

        logger.info("started")

        (entry,) = _read_entries(path)
        assert entry["command"] == "req add"
        assert entry["project_id"] == "demo"

    def test_engine_logs_mutations(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("REQCTL_DEBUG", raising=False)
        monkeypatch.delenv("REQCTL_LOG_LEVEL", raising=False)
        path = tmp_path / "engine.log"
        logger = create_cli_logger(LoggingConfig(file=str(path)))
        engine = RequirementsEngine.in_memory(logger=logger)

        requirement = engine.requirements.create_requirement(
            "demo",
            title="Logged",
            kind="functional",
            priority="low",
            owner_id="alice",
            actor="alice",
        )
        _ = engine.baselines.create_baseline("demo", requirement.id, actor="alice")

        events = [e["event"] for e in _read_entries(path)]
        assert events == ["requirement_created", "baseline_created"]
