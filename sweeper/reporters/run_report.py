"""
Run Report Module
=================

Collects per-resource outcomes of one sweep and freezes them into a
:class:`RunReport`.

The builder is append-only: evaluation and deletion code call
:meth:`RunReportBuilder.record` as each resource is settled, and the
reporters only ever see the snapshot returned by
:meth:`RunReportBuilder.finalize`.

Buckets
-------
analyzed
    Every recorded resource.
active / recent / unused
    Staleness classification. ``unused`` includes resources that were
    later deleted, skipped or failed.
deleted
    Unused resources whose plan ran to completion (or would have, in dry run).
failed
    Unused resources whose plan could not be built or stopped at a step.
skipped
    Unused resources the operator declined, or that were left over after an
    abort or an interrupt.

Example
-------
>>> builder = RunReportBuilder(ResourceKind.ROLE, dry_run=True)
>>> builder.record(role, Classification.ACTIVE, verdict=verdict)
>>> report = builder.finalize()
>>> report.counts["active"]
1
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from sweeper.core.aws_client import Identity
from sweeper.core.exceptions import ReportFinalizedError
from sweeper.core.models import (
    ActivityRecord,
    Classification,
    DeleteStatus,
    DeletionPlan,
    ExecutionResult,
    LivenessVerdict,
    Resource,
    ResourceKind,
    StepFailure,
    utc_now,
)

# Module logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceOutcome:
    """Everything the run learned about one resource."""

    resource: Resource
    classification: Classification
    result: Optional[ExecutionResult] = None
    verdict: Optional[LivenessVerdict] = None
    activity: Optional[ActivityRecord] = None
    plan: Optional[DeletionPlan] = None

    @property
    def status(self) -> Optional[DeleteStatus]:
        return self.result.status if self.result else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = self.resource.to_dict()
        data["classification"] = self.classification.value
        if self.verdict is not None:
            data["reasons"] = list(self.verdict.reasons)
            data["unchecked_sources"] = list(self.verdict.unchecked_sources)
        if self.activity is not None:
            data["last_used"] = (
                self.activity.last_used.isoformat() if self.activity.last_used else None
            )
            data["activity_tracking"] = self.activity.tracking.value
        if self.plan is not None:
            data["plan"] = self.plan.describe()
        if self.result is not None:
            data["result"] = self.result.to_dict()
        return data


@dataclass(frozen=True)
class RunReport:
    """
    Immutable summary of one sweep.

    Name lists keep the order in which resources were recorded. Counts are
    derived from them.
    """

    kind: ResourceKind
    dry_run: bool
    started_at: datetime
    finished_at: datetime
    outcomes: Tuple[ResourceOutcome, ...] = ()
    account: Optional[str] = None
    principal: Optional[str] = None
    cancelled: bool = False
    active: Tuple[str, ...] = ()
    recent: Tuple[str, ...] = ()
    unused: Tuple[str, ...] = ()
    deleted: Tuple[str, ...] = ()
    failed: Tuple[str, ...] = ()
    skipped: Tuple[str, ...] = ()
    failures: Tuple[Tuple[str, StepFailure], ...] = ()
    unchecked: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({}), hash=False
    )

    @property
    def analyzed(self) -> Tuple[str, ...]:
        return tuple(o.resource.display_name for o in self.outcomes)

    @property
    def counts(self) -> Dict[str, int]:
        """Bucket sizes, in report order."""
        return {
            "analyzed": len(self.outcomes),
            "active": len(self.active),
            "recent": len(self.recent),
            "unused": len(self.unused),
            "deleted": len(self.deleted),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
        }

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    @property
    def plans(self) -> List[DeletionPlan]:
        """Plans of the resources that were (or would be) deleted."""
        return [
            o.plan for o in self.outcomes
            if o.plan is not None and o.result is not None and o.result.deleted
        ]

    @property
    def duration(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "metadata": {
                "resource_type": self.kind.value,
                "dry_run": self.dry_run,
                "cancelled": self.cancelled,
                "account": self.account,
                "principal": self.principal,
                "started_at": self.started_at.isoformat(),
                "finished_at": self.finished_at.isoformat(),
                "duration_seconds": round(self.duration, 2),
            },
            "counts": self.counts,
            "active": list(self.active),
            "recent": list(self.recent),
            "unused": list(self.unused),
            "deleted": list(self.deleted),
            "failed": list(self.failed),
            "skipped": list(self.skipped),
            "failures": [
                {"resource": name, **failure.to_dict()} for name, failure in self.failures
            ],
            "unchecked_sources": {
                name: list(sources) for name, sources in self.unchecked.items()
            },
            "resources": [o.to_dict() for o in self.outcomes],
        }


class RunReportBuilder:
    """
    Thread-safe, append-only aggregator for one run.

    Parameters
    ----------
    kind : ResourceKind
        Resource kind being swept.
    dry_run : bool, default=False
        Whether deletions are simulated.
    identity : Identity, optional
        Caller identity, shown in the report header.
    clock : callable, optional
        Returns the current time (injectable for tests).
    """

    def __init__(
        self,
        kind: ResourceKind,
        dry_run: bool = False,
        identity: Optional[Identity] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.kind = kind
        self.dry_run = dry_run
        self.identity = identity
        self._clock = clock
        self._started_at = clock()
        self._outcomes: List[ResourceOutcome] = []
        self._cancelled = False
        self._report: Optional[RunReport] = None
        self._lock = threading.Lock()

    def record(
        self,
        resource: Resource,
        classification: Classification,
        result: Optional[ExecutionResult] = None,
        verdict: Optional[LivenessVerdict] = None,
        activity: Optional[ActivityRecord] = None,
        plan: Optional[DeletionPlan] = None,
    ) -> None:
        """
        Append the outcome of one resource.

        Raises
        ------
        ReportFinalizedError
            If the report was already finalized.
        """
        outcome = ResourceOutcome(resource, classification, result, verdict, activity, plan)
        with self._lock:
            self._ensure_open()
            self._outcomes.append(outcome)

    def mark_cancelled(self) -> None:
        """Flag the run as interrupted by the operator."""
        with self._lock:
            self._ensure_open()
            self._cancelled = True

    def finalize(self) -> RunReport:
        """
        Freeze the collected outcomes.

        Calling this again returns the same snapshot.
        """
        with self._lock:
            if self._report is None:
                self._report = self._build()
                logger.debug(f"Finalized run report: {self._report.counts}")
            return self._report

    def _ensure_open(self) -> None:
        if self._report is not None:
            raise ReportFinalizedError("Run report is already finalized")

    def _build(self) -> RunReport:
        buckets: Dict[str, List[str]] = {
            "active": [], "recent": [], "unused": [],
            "deleted": [], "failed": [], "skipped": [],
        }
        failures: List[Tuple[str, StepFailure]] = []
        unchecked: Dict[str, Tuple[str, ...]] = {}

        for outcome in self._outcomes:
            name = outcome.resource.display_name
            buckets[outcome.classification.value].append(name)

            if outcome.verdict is not None and outcome.verdict.unchecked_sources:
                unchecked[name] = outcome.verdict.unchecked_sources

            result = outcome.result
            if result is None:
                continue
            if result.deleted:
                buckets["deleted"].append(name)
            elif result.status is DeleteStatus.FAILED:
                buckets["failed"].append(name)
                failures.extend((name, failure) for failure in result.failures)
            elif result.status is DeleteStatus.SKIPPED:
                buckets["skipped"].append(name)

        return RunReport(
            kind=self.kind,
            dry_run=self.dry_run,
            started_at=self._started_at,
            finished_at=self._clock(),
            outcomes=tuple(self._outcomes),
            account=self.identity.account if self.identity else None,
            principal=self.identity.principal if self.identity else None,
            cancelled=self._cancelled,
            failures=tuple(failures),
            unchecked=MappingProxyType(unchecked),
            **{key: tuple(names) for key, names in buckets.items()},
        )

    def __repr__(self) -> str:
        return f"RunReportBuilder(kind={self.kind.value}, recorded={len(self._outcomes)})"
