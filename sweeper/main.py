"""
Account Sweeper CLI - unused IAM role, IAM policy and security group cleaner

Main entry point for the command-line interface.
"""

import logging
import signal
import sys
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel

from .cleaners.confirmation import AutoConfirm, RichConfirmationPort
from .cleaners.executor import DEFAULT_DELAY_SECONDS
from .core.aws_client import AWSClient
from .core.exceptions import SweeperError
from .core.logging import default_log_path, setup_logging
from .core.models import ResourceKind
from .core.region_manager import RegionManager
from .engine import DEFAULT_MAX_WORKERS, SweepConfig, SweepEngine
from .policy.staleness import DEFAULT_DAYS_UNUSED
from .reporters.cli_reporter import CLIReporter
from .reporters.json_reporter import JSONReporter
from .reporters.run_report import RunReport

# Module logger
logger = logging.getLogger(__name__)

console = Console()

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 3
EXIT_INTERRUPTED = 130


def exit_code_for(report: RunReport) -> int:
    """Map a finished run to the process exit code."""
    if report.cancelled:
        return EXIT_INTERRUPTED
    if report.has_failures:
        return EXIT_PARTIAL_FAILURE
    return EXIT_OK


def make_interrupt_handler(engine: SweepEngine, out: Console):
    """
    Build the SIGINT handler for a sweep.

    The first Ctrl+C cancels the run. A second one stops immediately,
    unless a deletion plan is executing: that plan is always allowed to
    finish so no resource is left half torn down.
    """

    def on_interrupt(signum, frame):
        if not engine.cancelled:
            out.print(
                "\n[yellow]Interrupt received. Finishing the current resource; "
                "press Ctrl+C again to stop immediately.[/yellow]"
            )
            engine.cancel()
            return
        if engine.executing:
            out.print(
                "\n[yellow]A deletion is in progress; stopping as soon as it "
                "finishes.[/yellow]"
            )
            return
        raise KeyboardInterrupt

    return on_interrupt


def _publish(
    report: RunReport,
    cli_reporter: CLIReporter,
    output: Optional[str],
    log_file: str,
) -> None:
    cli_reporter.report(report)

    output_file = None
    if output:
        try:
            output_file = JSONReporter(output_path=output).report(report)
        except OSError as e:
            cli_reporter.print_warning(f"Could not write report to {output}: {e}")

    cli_reporter.print_completion_message(output_file, log_file)


@click.group()
@click.version_option(version="0.1.0", prog_name="sweeper")
def cli():
    """
    Account Sweeper: unused AWS resource cleaner

    Finds IAM roles, customer-managed IAM policies and security groups that
    nothing references and that have not been used recently, and deletes
    them together with their attachments.
    """
    pass


@cli.group()
def sweep():
    """Find and delete unused resources (try --dry-run first)."""
    pass


def sweep_options(func):
    """Options shared by every ``sweep`` subcommand."""
    options = [
        click.option(
            "--dry-run",
            is_flag=True,
            default=False,
            help="Print deletion plans without deleting anything",
        ),
        click.option(
            "--days-unused",
            default=DEFAULT_DAYS_UNUSED,
            type=click.IntRange(min=0),
            show_default=True,
            help="Resources used within this many days are kept",
        ),
        click.option(
            "--exclude",
            "-e",
            multiple=True,
            help="Name (or security group id) never to delete; repeatable",
        ),
        click.option(
            "--region",
            "-r",
            default=None,
            help=(
                "Region, comma-separated regions, or 'all'. Security groups default "
                "to us-east-1; IAM usage is checked in every enabled region by default"
            ),
        ),
        click.option(
            "--profile",
            "-p",
            default=None,
            help="AWS profile name from ~/.aws/credentials",
        ),
        click.option(
            "--log-path",
            default=None,
            help="Audit log file (default: sweeper-YYYYmmdd-HHMMSS.log)",
        ),
        click.option(
            "--confirm",
            is_flag=True,
            default=False,
            help="Ask before each deletion (y = delete, n = skip, a = abort remaining)",
        ),
        click.option(
            "--max-workers",
            default=DEFAULT_MAX_WORKERS,
            type=click.IntRange(min=1),
            show_default=True,
            help="Resources evaluated in parallel",
        ),
        click.option(
            "--delay",
            default=DEFAULT_DELAY_SECONDS,
            type=click.FloatRange(min=0),
            show_default=True,
            help="Seconds to wait between successive deletions",
        ),
        click.option(
            "--output",
            "-o",
            default=None,
            help="Also write the run report as JSON to this path",
        ),
        click.option(
            "--verbose",
            "-v",
            is_flag=True,
            default=False,
            help="Log at DEBUG level",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@sweep.command("roles")
@sweep_options
def sweep_roles(**options):
    """
    Delete unused IAM roles.

    A role is in use if any EC2 instance, ECS task definition, Lambda
    function, CodeBuild project or Auto Scaling launch configuration
    references it. Service-linked and SSO roles are never touched.

    Examples:

        # Preview
        sweeper sweep roles --dry-run

        # Keep roles used in the last 30 days, ask before each deletion
        sweeper sweep roles --days-unused 30 --confirm

        # Only check usage in eu-west-1; other regions are listed as unchecked
        sweeper sweep roles --region eu-west-1 --exclude ci-runner
    """
    _run_sweep(ResourceKind.ROLE, **options)


@sweep.command("policies")
@sweep_options
def sweep_policies(**options):
    """
    Delete unused customer-managed IAM policies.

    A policy is in use if it is attached to a user, group or role, or
    serves as a permissions boundary.

    Examples:

        sweeper sweep policies --dry-run
        sweeper sweep policies --exclude legacy-readonly --output policies.json
    """
    _run_sweep(ResourceKind.POLICY, **options)


@sweep.command("security-groups")
@sweep_options
def sweep_security_groups(**options):
    """
    Delete unused security groups.

    A security group is in use if any of these reference it:
    - EC2 instances
    - Network interfaces (ENI)
    - Load balancers (ALB/NLB and classic)
    - RDS instances
    - Other security groups' rules

    Default VPC security groups are never touched.

    Examples:

        sweeper sweep security-groups --region eu-west-1 --dry-run
        sweeper sweep security-groups --region us-east-1,us-west-2 --confirm
    """
    _run_sweep(ResourceKind.SECURITY_GROUP, **options)


def _run_sweep(
    kind: ResourceKind,
    dry_run: bool,
    days_unused: int,
    exclude: Tuple[str, ...],
    region: Optional[str],
    profile: Optional[str],
    log_path: Optional[str],
    confirm: bool,
    max_workers: int,
    delay: float,
    output: Optional[str],
    verbose: bool,
) -> None:
    log_file = log_path or default_log_path()
    setup_logging(level="DEBUG" if verbose else "INFO", log_file=log_file)
    cli_reporter = CLIReporter(console)

    if dry_run:
        console.print(
            Panel(
                "[yellow bold]DRY-RUN MODE[/yellow bold]\n"
                f"No {kind.label.lower()}s will actually be deleted.",
                border_style="yellow",
            )
        )

    config = SweepConfig(
        days_unused=days_unused,
        dry_run=dry_run,
        exclude=exclude,
        regions=region,
        max_workers=max_workers,
        deletion_delay=delay,
        confirm=confirm,
    )
    region_manager = RegionManager(profile=profile)
    engine = SweepEngine(
        region_manager,
        config,
        confirmation=RichConfirmationPort(console) if confirm else AutoConfirm(),
    )

    previous_handler = signal.signal(signal.SIGINT, make_interrupt_handler(engine, console))
    try:
        report = engine.run(kind)
    except SweeperError as e:
        logger.error(f"Sweep aborted: {e}")
        cli_reporter.print_error(str(e))
        sys.exit(EXIT_FATAL)
    except KeyboardInterrupt:
        logger.warning("Sweep interrupted by user")
        console.print("\n[yellow]Sweep interrupted by user.[/yellow]")
        partial = engine.partial_report()
        if partial is not None:
            _publish(partial, cli_reporter, output, log_file)
        sys.exit(EXIT_INTERRUPTED)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    _publish(report, cli_reporter, output, log_file)

    code = exit_code_for(report)
    if code == EXIT_PARTIAL_FAILURE:
        cli_reporter.print_warning(
            f"{len(report.failed)} deletion(s) failed; see the failures above."
        )
    sys.exit(code)


@cli.command("regions")
@click.option(
    "--profile",
    "-p",
    default=None,
    help="AWS profile name from ~/.aws/credentials",
)
def list_regions(profile: Optional[str]):
    """List all available AWS regions."""
    try:
        region_manager = RegionManager(profile=profile)
        regions = region_manager.get_all_regions()

        console.print(f"\n[bold]Available AWS Regions ({len(regions)} total):[/bold]\n")
        for region in regions:
            console.print(f"  • {region}")
        console.print()

    except SweeperError as e:
        console.print(f"\n[red bold]Error:[/red bold] {str(e)}")
        sys.exit(EXIT_FATAL)


@cli.command("validate")
@click.option(
    "--profile",
    "-p",
    default=None,
    help="AWS profile name from ~/.aws/credentials",
)
@click.option(
    "--region",
    "-r",
    default="us-east-1",
    help="AWS region to use for validation",
)
def validate_credentials(profile: Optional[str], region: str):
    """Validate AWS credentials and show the calling identity."""
    try:
        client = AWSClient(region=region, profile=profile)
        identity = client.who_am_i()

        console.print("\n[green bold]AWS credentials are valid![/green bold]")
        console.print(f"\n  Account ID: {identity.account}")
        console.print(f"  Principal: {identity.principal}")
        console.print(f"  Region: {region}")
        if profile:
            console.print(f"  Profile: {profile}")
        console.print()

    except SweeperError as e:
        console.print(f"\n[red bold]Validation Failed:[/red bold] {str(e)}")
        sys.exit(EXIT_FATAL)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
