"""
Tests for the command-line interface.
"""

import json
import logging

import pytest
from click.testing import CliRunner
from rich.console import Console

from sweeper import main as cli_module
from sweeper.core.exceptions import ProviderUnreachable
from sweeper.core.models import Classification, DeleteStatus, ExecutionResult, ResourceKind
from sweeper.core.region_manager import RegionManager
from sweeper.main import (
    EXIT_FATAL,
    EXIT_INTERRUPTED,
    EXIT_OK,
    EXIT_PARTIAL_FAILURE,
    cli,
    exit_code_for,
    make_interrupt_handler,
)
from sweeper.reporters.run_report import RunReportBuilder


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI reconfigures the root logger; put it back afterwards."""
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


class TestHelp:
    def test_top_level(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "sweep" in result.output
        assert "validate" in result.output

    def test_sweep_commands(self, runner):
        result = runner.invoke(cli, ["sweep", "--help"])
        assert result.exit_code == 0
        for command in ("roles", "policies", "security-groups"):
            assert command in result.output

    def test_sweep_options(self, runner):
        result = runner.invoke(cli, ["sweep", "roles", "--help"])
        for option in ("--dry-run", "--days-unused", "--exclude", "--log-path", "--confirm"):
            assert option in result.output

    def test_negative_days_rejected(self, runner):
        result = runner.invoke(cli, ["sweep", "roles", "--days-unused", "-1"])
        assert result.exit_code == 2


class TestSweepCommand:
    """Tests for ``sweeper sweep`` against moto."""

    def test_dry_run_roles(
        self, runner, mock_aws_environment, create_role, tmp_path, monkeypatch
    ):
        monkeypatch.setattr(RegionManager, "get_all_regions", lambda self: ["us-east-1"])
        create_role("stale-role")
        log_file = tmp_path / "audit.log"
        output = tmp_path / "report.json"

        result = runner.invoke(
            cli,
            [
                "sweep", "roles", "--dry-run",
                "--log-path", str(log_file),
                "--output", str(output),
                "--delay", "0",
            ],
        )

        assert result.exit_code == EXIT_OK, result.output
        assert "DRY-RUN MODE" in result.output
        assert "stale-role" in result.output

        data = json.loads(output.read_text())
        assert data["metadata"]["dry_run"] is True
        assert data["deleted"] == ["stale-role"]

        audit = log_file.read_text()
        assert "[DRY RUN] Step 1/1: would delete role stale-role" in audit
        assert "[INFO]" in audit

    def test_security_groups_empty_account(self, runner, mock_aws_environment, tmp_path):
        result = runner.invoke(
            cli,
            ["sweep", "security-groups", "--dry-run", "--log-path", str(tmp_path / "a.log")],
        )
        assert result.exit_code == EXIT_OK, result.output

    def test_fatal_error_exits_one(self, runner, aws_credentials, monkeypatch, tmp_path):
        def unreachable(self, kind):
            raise ProviderUnreachable("Failed to list IAM roles", service="iam")

        monkeypatch.setattr(cli_module.SweepEngine, "run", unreachable)

        result = runner.invoke(
            cli, ["sweep", "roles", "--log-path", str(tmp_path / "audit.log")]
        )

        assert result.exit_code == EXIT_FATAL
        assert "Failed to list IAM roles" in result.output

    def test_hard_stop_writes_partial_report(
        self, runner, aws_credentials, monkeypatch, make_role, tmp_path
    ):
        role = make_role("stale-role")
        builder = RunReportBuilder(ResourceKind.ROLE)
        builder.record(
            role,
            Classification.UNUSED,
            ExecutionResult(role, DeleteStatus.SUCCESS, deleted=True, steps_completed=1),
        )
        builder.mark_cancelled()
        partial = builder.finalize()

        def interrupted(self, kind):
            raise KeyboardInterrupt

        monkeypatch.setattr(cli_module.SweepEngine, "run", interrupted)
        monkeypatch.setattr(cli_module.SweepEngine, "partial_report", lambda self: partial)
        output = tmp_path / "report.json"

        result = runner.invoke(
            cli,
            [
                "sweep", "roles",
                "--log-path", str(tmp_path / "audit.log"),
                "--output", str(output),
            ],
        )

        assert result.exit_code == EXIT_INTERRUPTED
        assert "Sweep interrupted by user." in result.output
        assert "stale-role" in result.output
        data = json.loads(output.read_text())
        assert data["metadata"]["cancelled"] is True
        assert data["deleted"] == ["stale-role"]


class StubEngine:
    def __init__(self, cancelled=False, executing=False):
        self.cancelled = cancelled
        self.executing = executing

    def cancel(self):
        self.cancelled = True


class TestInterruptHandler:
    """Tests for Ctrl+C handling during a sweep."""

    @pytest.fixture
    def out(self):
        return Console(record=True, width=120)

    def test_first_interrupt_cancels(self, out):
        engine = StubEngine()
        make_interrupt_handler(engine, out)(2, None)

        assert engine.cancelled
        assert "Finishing the current resource" in out.export_text()

    def test_second_interrupt_waits_for_running_deletion(self, out):
        engine = StubEngine(cancelled=True, executing=True)
        make_interrupt_handler(engine, out)(2, None)

        assert "stopping as soon as it finishes" in out.export_text()

    def test_second_interrupt_when_idle_stops(self, out):
        handler = make_interrupt_handler(StubEngine(cancelled=True), out)

        with pytest.raises(KeyboardInterrupt):
            handler(2, None)


class TestValidate:
    def test_valid_credentials(self, runner, mock_aws_environment):
        result = runner.invoke(cli, ["validate"])
        assert result.exit_code == 0
        assert "123456789012" in result.output


class TestExitCodes:
    """Tests for mapping a finished run to an exit code."""

    def test_clean_run(self):
        assert exit_code_for(RunReportBuilder(ResourceKind.ROLE).finalize()) == EXIT_OK

    def test_partial_failure(self, make_role):
        builder = RunReportBuilder(ResourceKind.ROLE)
        role = make_role()
        builder.record(role, Classification.UNUSED, ExecutionResult.failed(role, "plan", "boom"))
        assert exit_code_for(builder.finalize()) == EXIT_PARTIAL_FAILURE

    def test_cancelled_wins(self, make_role):
        builder = RunReportBuilder(ResourceKind.ROLE)
        role = make_role()
        builder.record(role, Classification.UNUSED, ExecutionResult.failed(role, "plan", "boom"))
        builder.mark_cancelled()
        assert exit_code_for(builder.finalize()) == EXIT_INTERRUPTED
