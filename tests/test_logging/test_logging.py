"""
Tests para el sistema de logging (nivel HUMAN, formatter, pipelines).

Cubre:
- Registro del nivel HUMAN (25)
- HumanFormatter: formato de cada evento del vault
- HumanLogHandler: filtra por nivel y lee el event dict de structlog
- configure_logging: archivo JSON, pipeline human, modo quiet
"""

import json
import logging
from pathlib import Path

import pytest
import structlog

from skillvault.config.schema import LoggingConfig
from skillvault.logging import HUMAN, HumanFormatter, HumanLog, HumanLogHandler, configure_logging
from skillvault.logging.setup import _console_level, _verbose_to_level


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logging.root.handlers.clear()
    structlog.reset_defaults()


@pytest.fixture
def formatter() -> HumanFormatter:
    return HumanFormatter()


# ── Tests: Nivel HUMAN ───────────────────────────────────────────────


class TestHumanLevel:
    def test_level_value(self):
        assert HUMAN == 25

    def test_stdlib_logger_has_human(self):
        assert logging.getLevelName(HUMAN) == "HUMAN"
        assert callable(logging.getLogger("skillvault.test").human)

    def test_unconfigured_structlog_accepts_human(self, capsys):
        """Sin configure_logging() el logger por defecto de structlog emite HUMAN."""
        structlog.reset_defaults()
        HumanLog(structlog.get_logger()).sync_start("acme/tools/a")
        assert "vault.sync.start" in capsys.readouterr().out
        assert logging.getLevelName(HUMAN) == "HUMAN"

    def test_between_info_and_warning(self):
        assert logging.INFO < HUMAN < logging.WARNING


# ── Tests: HumanFormatter ────────────────────────────────────────────


class TestHumanFormatter:
    def test_add_start(self, formatter: HumanFormatter):
        line = formatter.format_event("vault.add.start", url="https://github.com/acme/tools", kind="repo")
        assert line == "→ Adding https://github.com/acme/tools (repo)"

    def test_add_complete(self, formatter: HumanFormatter):
        line = formatter.format_event("vault.add.complete", label="acme/tools/a", status="valid_skill")
        assert line == "  + acme/tools/a (valid_skill)"

    def test_sync_complete(self, formatter: HumanFormatter):
        assert "no changes" in formatter.format_event("vault.sync.complete", label="x", changes=False)
        assert "updated" in formatter.format_event("vault.sync.complete", label="x", changes=True)

    def test_sync_failed(self, formatter: HumanFormatter):
        line = formatter.format_event("vault.sync.failed", label="x", error="Path does not exist: /p")
        assert line == "  ✗ x: Path does not exist: /p"

    def test_remove_with_files(self, formatter: HumanFormatter):
        assert formatter.format_event("vault.remove.complete", label="x", deleted_files=True).endswith(
            "(files deleted)"
        )

    def test_validate_summary(self, formatter: HumanFormatter):
        line = formatter.format_event("vault.validate.complete", valid=2, invalid=1, not_a_skill=0)
        assert line == "✓ Validated: 2 valid, 1 invalid, 0 not a skill"

    def test_import(self, formatter: HumanFormatter):
        line = formatter.format_event("vault.import.complete", path="m.json", replaced=1, appended=2)
        assert "1 replaced, 2 added" in line

    def test_unknown_event(self, formatter: HumanFormatter):
        assert formatter.format_event("catalog.saved", path="x") is None


# ── Tests: HumanLogHandler ───────────────────────────────────────────


class TestHumanLogHandler:
    def _record(self, level: int, msg) -> logging.LogRecord:
        return logging.LogRecord("test", level, __file__, 1, msg, (), None)

    def test_structlog_event_dict(self, capsys):
        handler = HumanLogHandler()
        handler.emit(self._record(HUMAN, {"event": "vault.sync.start", "label": "acme/tools/a"}))
        assert capsys.readouterr().err == "→ Syncing acme/tools/a\n"

    def test_ignores_other_levels(self, capsys):
        handler = HumanLogHandler()
        handler.emit(self._record(logging.INFO, {"event": "vault.sync.start", "label": "x"}))
        assert capsys.readouterr().err == ""

    def test_unformatted_event_silent(self, capsys):
        handler = HumanLogHandler()
        handler.emit(self._record(HUMAN, {"event": "something.else"}))
        assert capsys.readouterr().err == ""


# ── Tests: configure_logging ─────────────────────────────────────────


class TestConfigureLogging:
    def test_human_pipeline(self, capsys):
        configure_logging(LoggingConfig())
        HumanLog(structlog.get_logger()).resource_added("acme/tools/a", "valid_skill")
        assert "  + acme/tools/a (valid_skill)" in capsys.readouterr().err

    def test_quiet_silences_human(self, capsys):
        configure_logging(LoggingConfig(), quiet=True)
        HumanLog(structlog.get_logger()).resource_added("acme/tools/a", "valid_skill")
        assert capsys.readouterr().err == ""

    def test_json_file(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "vault.jsonl"
        configure_logging(LoggingConfig(file=log_file), quiet=True)
        structlog.get_logger().info("catalog.saved", resources=3)
        for handler in logging.root.handlers:
            handler.flush()
        lines = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert any(entry.get("event") == "catalog.saved" for entry in lines)

    def test_verbose_levels(self):
        assert _verbose_to_level(0) == logging.WARNING
        assert _verbose_to_level(1) == logging.INFO
        assert _verbose_to_level(5) == logging.DEBUG

    def test_console_level_follows_configured_level(self):
        assert _console_level(LoggingConfig(level="debug")) == logging.DEBUG
        assert _console_level(LoggingConfig(level="human", verbose=1)) == logging.INFO
        assert _console_level(LoggingConfig(level="error", verbose=2)) == logging.ERROR
