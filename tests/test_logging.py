"""
Tests for logging setup and operator confirmation prompts.
"""

import logging
from datetime import datetime
from io import StringIO

import pytest
from rich.console import Console

from sweeper.cleaners.confirmation import (
    AutoConfirm,
    ConfirmationChoice,
    RichConfirmationPort,
)
from sweeper.core.logging import SUCCESS, default_log_path, log_success, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


class TestSetupLogging:
    def test_audit_file_format(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "audit.log"
        setup_logging(level="INFO", log_file=str(log_file), console=Console(file=StringIO()))

        logger = logging.getLogger("sweeper.test")
        logger.info("Evaluating 3 role(s)")
        log_success(logger, "Deleted role stale-role")
        logger.debug("not written at INFO")

        lines = log_file.read_text().splitlines()
        assert len(lines) == 2
        assert lines[0].endswith("[INFO] Evaluating 3 role(s)")
        assert lines[1].endswith("[SUCCESS] Deleted role stale-role")
        assert lines[0].startswith("[")

    def test_success_level_between_info_and_warning(self):
        assert logging.INFO < SUCCESS < logging.WARNING
        assert logging.getLevelName(SUCCESS) == "SUCCESS"

    def test_unknown_level_falls_back_to_info(self, restore_root_logger):
        setup_logging(level="chatty", console=Console(file=StringIO()))
        assert logging.getLogger().level == logging.INFO

    def test_default_log_path(self):
        path = default_log_path(datetime(2024, 6, 1, 9, 5, 7))
        assert path.endswith("sweeper-20240601-090507.log")


class TestConfirmation:
    """Tests for confirmation ports."""

    def test_auto_confirm(self):
        assert AutoConfirm().ask("stale-role") is ConfirmationChoice.ACCEPT

    @pytest.mark.parametrize(
        "answer, expected",
        [
            ("y", ConfirmationChoice.ACCEPT),
            ("n", ConfirmationChoice.SKIP),
            ("a", ConfirmationChoice.ABORT_REMAINING),
        ],
    )
    def test_rich_prompt(self, monkeypatch, answer, expected):
        monkeypatch.setattr("sweeper.cleaners.confirmation.Prompt.ask", lambda *a, **kw: answer)
        assert RichConfirmationPort(Console(file=StringIO())).ask("stale-role") is expected
