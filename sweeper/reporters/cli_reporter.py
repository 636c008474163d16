"""
CLI Reporter Module
===================

Renders a :class:`RunReport` in the terminal using the Rich library.

The output always contains the summary counts and, when there were any,
the failed resources with their causing step, so a partial failure can be
acted on without reading the log.

Example
-------
>>> from sweeper.reporters import CLIReporter
>>>
>>> reporter = CLIReporter()
>>> reporter.report(run_report)

See Also
--------
JSONReporter : For programmatic access.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sweeper.core.models import Classification, DeleteStatus
from sweeper.reporters.run_report import ResourceOutcome, RunReport

# Module logger
logger = logging.getLogger(__name__)

STATUS_STYLES = {
    DeleteStatus.SUCCESS: ("Deleted", "green"),
    DeleteStatus.DRY_RUN: ("Would delete", "cyan"),
    DeleteStatus.FAILED: ("Failed", "red"),
    DeleteStatus.SKIPPED: ("Skipped", "yellow"),
}


class CLIReporter:
    """
    Reporter for displaying run reports in the terminal.

    Parameters
    ----------
    console : Console, optional
        Rich Console instance. If not provided, creates a new one.

    Examples
    --------
    >>> reporter = CLIReporter()
    >>> reporter.report(run_report)
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()
        logger.debug("Initialized CLIReporter")

    def report(self, report: RunReport) -> None:
        """
        Print the full run report.

        Parameters
        ----------
        report : RunReport
            Finalized report of one sweep.
        """
        self._print_header(report)
        self._print_summary(report)

        unused = [o for o in report.outcomes if o.classification is Classification.UNUSED]
        if unused:
            self._print_unused_table(unused, report.dry_run)
        else:
            self.console.print(f"\n[green]No unused {self._plural(report)} found.[/green]")

        if report.dry_run:
            self._print_plans(report)

        if report.unchecked:
            self._print_unchecked(report)

        if report.failures:
            self._print_failures(report)

    # =========================================================================
    # Private Methods: Output Formatting
    # =========================================================================

    @staticmethod
    def _plural(report: RunReport) -> str:
        return f"{report.kind.label.lower()}s"

    def _print_header(self, report: RunReport) -> None:
        header_text = Text()
        title = f"\n{report.kind.label} Sweep Report"
        if report.dry_run:
            title += " (dry run)"
        header_text.append(f"{title}\n", style="bold blue")
        if report.account:
            header_text.append(f"Account: {report.account}", style="dim")
            if report.principal:
                header_text.append(f"  Principal: {report.principal}", style="dim")

        self.console.print(Panel(header_text, border_style="blue"))

    def _print_summary(self, report: RunReport) -> None:
        counts = report.counts
        summary = Table(show_header=False, box=None, padding=(0, 2))
        summary.add_column("Metric", style="cyan")
        summary.add_column("Value", style="white")

        summary.add_row("Analyzed:", str(counts["analyzed"]))
        summary.add_row("Active:", str(counts["active"]))
        summary.add_row("Recent:", str(counts["recent"]))

        # Color-code unused count based on value
        unused_style = "yellow" if counts["unused"] > 0 else "green"
        summary.add_row("Unused:", f"[{unused_style}]{counts['unused']}[/]")

        deleted_label = "Would delete:" if report.dry_run else "Deleted:"
        summary.add_row(deleted_label, f"[green]{counts['deleted']}[/]")

        failed_style = "red" if counts["failed"] > 0 else "green"
        summary.add_row("Failed:", f"[{failed_style}]{counts['failed']}[/]")
        if counts["skipped"]:
            summary.add_row("Skipped:", f"[yellow]{counts['skipped']}[/]")

        summary.add_row(
            "Run Time:",
            report.started_at.strftime("%Y-%m-%d %H:%M:%S UTC")
            + f" ({report.duration:.1f}s)",
        )
        if report.cancelled:
            summary.add_row("Interrupted:", "[yellow]yes[/]")

        self.console.print("\n")
        self.console.print(summary)

    def _print_unused_table(self, outcomes: List[ResourceOutcome], dry_run: bool) -> None:
        table = Table(
            title=f"\nUnused {outcomes[0].resource.kind.label}s",
            title_style="bold",
            show_lines=False,
        )

        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Region", style="yellow")
        table.add_column("Last Used", style="dim")
        table.add_column("Status", style="white")

        for outcome in outcomes:
            if outcome.status in STATUS_STYLES:
                label, style = STATUS_STYLES[outcome.status]
                status = f"[{style}]{label}[/]"
            else:
                status = "[dim]Not attempted[/]"
            table.add_row(
                outcome.resource.name,
                outcome.resource.region or "global",
                outcome.activity.display if outcome.activity else "Unknown",
                status,
            )

        self.console.print(table)

    def _print_plans(self, report: RunReport) -> None:
        plans = report.plans
        if not plans:
            return

        self.console.print("\n[bold]Deletion plans (not executed):[/bold]")
        for plan in plans:
            self.console.print(f"\n[cyan]{plan.resource.display_name}[/cyan]")
            for index, line in enumerate(plan.describe(), 1):
                self.console.print(f"  {index}. {line}")

    def _print_unchecked(self, report: RunReport) -> None:
        self.console.print(
            "\n[yellow bold]Sources that could not be checked:[/yellow bold]"
        )
        for name, sources in report.unchecked.items():
            self.console.print(f"  [yellow]{name}:[/yellow] {', '.join(sources)}")

    def _print_failures(self, report: RunReport) -> None:
        table = Table(
            title="\nFailed Deletions",
            title_style="bold red",
            show_lines=False,
        )
        table.add_column("Resource", style="cyan", no_wrap=True)
        table.add_column("Step", style="white")
        table.add_column("Cause", style="red", max_width=60)

        for name, failure in report.failures:
            table.add_row(name, failure.label, self._truncate(failure.cause, 60))

        self.console.print(table)

    @staticmethod
    def _truncate(text: str, max_length: int) -> str:
        """Truncate text to maximum length with ellipsis."""
        if len(text) <= max_length:
            return text
        return text[:max_length - 3] + "..."

    # =========================================================================
    # Public Methods: Messages
    # =========================================================================

    def print_completion_message(
        self,
        output_file: Optional[str] = None,
        log_file: Optional[str] = None,
    ) -> None:
        """Print run completion message with output locations."""
        self.console.print("\n[green bold]Sweep complete![/green bold]")
        if output_file:
            self.console.print(f"[dim]Report saved to: {output_file}[/dim]")
        if log_file:
            self.console.print(f"[dim]Log written to: {log_file}[/dim]")

    def print_error(self, message: str) -> None:
        self.console.print(f"\n[red bold]Error:[/red bold] {message}")

    def print_warning(self, message: str) -> None:
        self.console.print(f"\n[yellow bold]Warning:[/yellow bold] {message}")

    def __repr__(self) -> str:
        return "CLIReporter()"
