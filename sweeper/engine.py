"""
Sweep Engine
============

Wires the pipeline stages together for one run:

1. ``who_am_i`` once; failure aborts the run.
2. Inventory listing; failure aborts the run.
3. Evaluation of every candidate (liveness, activity, classification and,
   for unused resources, the deletion plan) in a bounded thread pool.
4. Deletion of unused resources on the calling thread, in inventory order,
   with optional confirmation and the executor's inter-resource delay.
5. Finalization of the run report.

No error from one resource stops the run; it is logged and folded into
the report. Only a failed identity check, region lookup or inventory
listing propagates.

Example
-------
>>> from sweeper.core import RegionManager, ResourceKind
>>> from sweeper.engine import SweepConfig, SweepEngine
>>>
>>> engine = SweepEngine(RegionManager(), SweepConfig(dry_run=True))
>>> report = engine.run(ResourceKind.ROLE)
>>> report.counts["unused"]
3
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple, Union

from sweeper.cleaners.confirmation import AutoConfirm, ConfirmationChoice, ConfirmationPort
from sweeper.cleaners.dependency_resolver import DependencyResolver
from sweeper.cleaners.executor import DEFAULT_DELAY_SECONDS, DeletionExecutor
from sweeper.core.exceptions import (
    AWSClientError,
    PlanningError,
    ReportFinalizedError,
    SourceUnavailable,
    UserCancelled,
)
from sweeper.core.models import (
    ActivityRecord,
    Classification,
    DeletionPlan,
    ExecutionResult,
    LivenessVerdict,
    Resource,
    ResourceKind,
    StepFailure,
)
from sweeper.core.region_manager import RegionManager
from sweeper.inventory import COLLECTORS, list_candidates
from sweeper.liveness.activity import ActivityTracker
from sweeper.liveness.oracle import LivenessOracle
from sweeper.liveness.sources import sources_for
from sweeper.policy.staleness import DEFAULT_DAYS_UNUSED, classify, cutoff_for
from sweeper.reporters.run_report import RunReport, RunReportBuilder

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 5


@dataclass
class SweepConfig:
    """
    Options of one sweep, usually built from CLI flags.

    Attributes:
        days_unused: Staleness threshold in days
        dry_run: Print plans instead of executing them
        exclude: Resource names (or security group ids) never to touch
        regions: None for the default scope, "all", or region names. The
            default is the home region for security groups and every
            enabled region for the usage sources of IAM resources.
        max_workers: Size of the evaluation pool
        deletion_delay: Seconds between successive deletions
        confirm: Ask before each deletion
    """

    days_unused: int = DEFAULT_DAYS_UNUSED
    dry_run: bool = False
    exclude: Tuple[str, ...] = ()
    regions: Union[None, str, Sequence[str]] = None
    max_workers: int = DEFAULT_MAX_WORKERS
    deletion_delay: float = DEFAULT_DELAY_SECONDS
    confirm: bool = False

    def __post_init__(self) -> None:
        if self.days_unused < 0:
            raise ValueError("days_unused must not be negative")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.deletion_delay < 0:
            raise ValueError("deletion_delay must not be negative")
        self.exclude = tuple(self.exclude)


@dataclass(frozen=True)
class Assessment:
    """Evaluation outcome of one candidate, before any deletion."""

    resource: Resource
    classification: Classification
    verdict: Optional[LivenessVerdict] = None
    activity: Optional[ActivityRecord] = None
    plan: Optional[DeletionPlan] = None
    failure: Optional[StepFailure] = None


class SweepEngine:
    """
    Runs one sweep of a resource kind.

    Parameters
    ----------
    region_manager : RegionManager
        Provider access.
    config : SweepConfig, optional
        Run options.
    oracle : LivenessOracle, optional
        Built for the usage scope of the swept kind when not given.
    activity : ActivityTracker, optional
    resolver : DependencyResolver, optional
    executor : DeletionExecutor, optional
        Built with ``config.deletion_delay`` when not given.
    confirmation : ConfirmationPort, optional
        Asked before each live deletion when ``config.confirm`` is set.
    clock : callable, optional
        Returns the reference time for the staleness cutoff.
    """

    def __init__(
        self,
        region_manager: RegionManager,
        config: Optional[SweepConfig] = None,
        oracle: Optional[LivenessOracle] = None,
        activity: Optional[ActivityTracker] = None,
        resolver: Optional[DependencyResolver] = None,
        executor: Optional[DeletionExecutor] = None,
        confirmation: Optional[ConfirmationPort] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.region_manager = region_manager
        self.config = config or SweepConfig()
        self.oracle = oracle
        self.activity = activity or ActivityTracker(region_manager.base_client)
        self.resolver = resolver or DependencyResolver(region_manager)
        self.executor = executor or DeletionExecutor(
            region_manager, delay=self.config.deletion_delay
        )
        self.confirmation = confirmation or AutoConfirm()
        self._clock = clock
        self._cancelled = threading.Event()
        self._executing = threading.Event()
        self._builder: Optional[RunReportBuilder] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def executing(self) -> bool:
        """True while a deletion plan is running."""
        return self._executing.is_set()

    def cancel(self) -> None:
        """
        Stop issuing new deletions.

        A plan that is already executing runs to completion; every resource
        after it is recorded as skipped.
        """
        if not self._cancelled.is_set():
            logger.warning("Cancellation requested; no further deletions will be started")
        self._cancelled.set()

    def partial_report(self) -> Optional[RunReport]:
        """
        Snapshot of the outcomes recorded so far, flagged as cancelled.

        Used when a run is stopped without returning. None if the run never
        got as far as creating its report.
        """
        builder = self._builder
        if builder is None:
            return None
        try:
            builder.mark_cancelled()
        except ReportFinalizedError:
            pass
        return builder.finalize()

    def run(self, kind: ResourceKind) -> RunReport:
        """
        Sweep every candidate of ``kind``.

        Raises
        ------
        ProviderUnreachable
            If the identity check or the inventory listing fails.
        RegionError
            If the region scope cannot be resolved.
        """
        config = self.config
        identity = self.region_manager.base_client.who_am_i()
        logger.info(f"Running as {identity.principal} in account {identity.account}")

        regions = self.region_manager.resolve_scope(config.regions)
        report = RunReportBuilder(kind, dry_run=config.dry_run, identity=identity)
        self._builder = report

        candidates = list_candidates(kind, self.region_manager, regions, config.exclude)
        logger.info(f"Evaluating {len(candidates)} {kind.label.lower()}(s)")

        oracle = self.oracle or self._build_oracle(kind, regions)
        cutoff = cutoff_for(config.days_unused, self._clock() if self._clock else None)

        assessments = self._assess_all(candidates, oracle, cutoff)
        self._delete_all(assessments, report)

        if self.cancelled:
            report.mark_cancelled()
        final = report.finalize()
        logger.info(
            "Sweep finished: "
            + ", ".join(f"{name} {count}" for name, count in final.counts.items())
        )
        return final

    # =========================================================================
    # Evaluation
    # =========================================================================

    def _build_oracle(self, kind: ResourceKind, regions: List[str]) -> LivenessOracle:
        """
        Oracle for the usage scope of ``kind``.

        Security groups are checked in their own region. IAM resources are
        global, so their regional usage sources are checked in every enabled
        region unless a scope was given; enabled regions outside an explicit
        scope are reported as unchecked.
        """
        if COLLECTORS[kind].regional or not any(s.regional for s in sources_for(kind)):
            return LivenessOracle(self.region_manager, regions)

        try:
            enabled = self.region_manager.get_all_regions()
        except AWSClientError as e:
            logger.warning(f"Could not list enabled regions; usage elsewhere is unchecked: {e}")
            return LivenessOracle(
                self.region_manager, regions, unscanned_regions=["other regions"]
            )

        if self.config.regions is None:
            logger.info(f"Checking {kind.label.lower()} usage in {len(enabled)} region(s)")
            return LivenessOracle(self.region_manager, enabled)
        return LivenessOracle(self.region_manager, regions, unscanned_regions=enabled)

    def _assess_all(
        self,
        candidates: List[Resource],
        oracle: LivenessOracle,
        cutoff: datetime,
    ) -> List[Assessment]:
        if not candidates:
            return []

        workers = min(self.config.max_workers, len(candidates))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda r: self._assess(r, oracle, cutoff), candidates))

        assessments = [a for a in results if a is not None]
        if len(assessments) < len(candidates):
            logger.warning(
                f"{len(candidates) - len(assessments)} resource(s) were not evaluated "
                f"because the run was cancelled"
            )
        return assessments

    def _assess(
        self,
        resource: Resource,
        oracle: LivenessOracle,
        cutoff: datetime,
    ) -> Optional[Assessment]:
        if self.cancelled:
            return None
        try:
            return self._evaluate(resource, oracle, cutoff)
        except Exception as e:
            logger.exception(f"Unexpected error while evaluating {resource.display_name}")
            # Treated as in use so it is never deleted
            return Assessment(
                resource=resource,
                classification=Classification.ACTIVE,
                failure=StepFailure("evaluate", str(e)),
            )

    def _evaluate(
        self,
        resource: Resource,
        oracle: LivenessOracle,
        cutoff: datetime,
    ) -> Assessment:
        verdict = oracle.evaluate(resource)

        try:
            activity = self.activity.lookup(resource)
        except SourceUnavailable as e:
            logger.warning(f"Activity record unavailable for {resource.display_name}: {e}")
            activity = ActivityRecord.not_tracked()
            verdict = replace(
                verdict, unchecked_sources=verdict.unchecked_sources + (e.source,)
            )

        classification = classify(verdict, activity, cutoff)
        logger.info(
            f"{resource.kind.label} {resource.display_name}: {classification.value} "
            f"(last used: {activity.display})"
        )

        plan = None
        failure = None
        if classification is Classification.UNUSED:
            try:
                plan = self.resolver.plan(resource)
            except PlanningError as e:
                failure = StepFailure("plan", e.message)

        return Assessment(resource, classification, verdict, activity, plan, failure)

    # =========================================================================
    # Deletion
    # =========================================================================

    def _delete_all(self, assessments: List[Assessment], report: RunReportBuilder) -> None:
        aborted = False

        for assessment in assessments:
            resource = assessment.resource
            record = dict(
                verdict=assessment.verdict,
                activity=assessment.activity,
                plan=assessment.plan,
            )

            if assessment.failure is not None:
                failure = assessment.failure
                report.record(
                    resource,
                    assessment.classification,
                    ExecutionResult.failed(resource, failure.label, failure.cause),
                    **record,
                )
                continue

            if assessment.classification is not Classification.UNUSED:
                report.record(resource, assessment.classification, **record)
                continue

            if aborted or self.cancelled:
                report.record(
                    resource, Classification.UNUSED, ExecutionResult.skipped(resource), **record
                )
                continue

            try:
                self._confirm(resource)
            except UserCancelled as e:
                logger.warning(f"Skipped {resource.display_name}: {e.message}")
                aborted = aborted or e.abort_remaining
                report.record(
                    resource, Classification.UNUSED, ExecutionResult.skipped(resource), **record
                )
                continue

            report.record(
                resource, Classification.UNUSED, self._execute(assessment), **record
            )

    def _confirm(self, resource: Resource) -> None:
        if not self.config.confirm or self.config.dry_run:
            return
        choice = self.confirmation.ask(resource.display_name)
        if choice is ConfirmationChoice.SKIP:
            raise UserCancelled("declined by operator")
        if choice is ConfirmationChoice.ABORT_REMAINING:
            raise UserCancelled("operator aborted the remaining deletions", abort_remaining=True)

    def _execute(self, assessment: Assessment) -> ExecutionResult:
        resource = assessment.resource
        self._executing.set()
        try:
            return self.executor.execute(
                assessment.plan,
                dry_run=self.config.dry_run,
                should_stop=lambda: self.cancelled,
            )
        except Exception as e:
            logger.exception(f"Unexpected error while deleting {resource.display_name}")
            return ExecutionResult.failed(resource, "execute", str(e))
        finally:
            self._executing.clear()

    def __repr__(self) -> str:
        return f"SweepEngine(dry_run={self.config.dry_run}, max_workers={self.config.max_workers})"
