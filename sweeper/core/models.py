"""
Sweep Data Model
================

Value types passed between the stages of the sweep pipeline.

Every instance is built from live provider queries during one run and
discarded at the end of it. Nothing here performs I/O.

Classes
-------
ResourceKind
    The kinds of resources the sweeper can retire.
Resource
    A deletion candidate.
UsageSignal
    One finding from one usage source.
LivenessVerdict
    Aggregation of all usage signals for one resource.
ActivityRecord
    Provider-maintained last-used timestamp.
Classification
    ACTIVE, RECENT or UNUSED.
DeletionStep / DeletionPlan
    Ordered teardown steps for one unused resource.
ExecutionResult
    Outcome of executing a deletion plan.

Example
-------
>>> from sweeper.core.models import LivenessVerdict, UsageSignal
>>>
>>> verdict = LivenessVerdict.from_signals(
...     [UsageSignal("serverless-function", True, "Lambda function 'ingest'")],
...     unchecked_sources=["build-project"],
... )
>>> verdict.in_use
True
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class ResourceKind(Enum):
    """Kinds of resources handled by the sweeper."""

    ROLE = "role"
    POLICY = "policy"
    SECURITY_GROUP = "security_group"

    @property
    def label(self) -> str:
        """Human-readable name (e.g. 'Security Group')."""
        return self.value.replace("_", " ").title()


@dataclass(frozen=True)
class Resource:
    """
    A resource eligible for evaluation.

    Parameters
    ----------
    id : str
        Provider-assigned immutable identifier (role id, policy ARN, group id).
    name : str
        Resource name, used for exclusion matching and reporting.
    kind : ResourceKind
        Resource kind.
    creation_time : datetime, optional
        When the provider created the resource.
    excluded : bool, default=False
        True if the caller's exclusion list names this resource.
    arn : str, optional
        Resource ARN, when the kind has one.
    region : str, optional
        Region for regional resources, None for global (IAM) resources.
    path : str, default="/"
        IAM path.
    metadata : dict
        Kind-specific extras (attachment counts, VPC id, description, tags).
    """

    id: str
    name: str
    kind: ResourceKind
    creation_time: Optional[datetime] = None
    excluded: bool = False
    arn: Optional[str] = None
    region: Optional[str] = None
    path: str = "/"
    metadata: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def display_name(self) -> str:
        """Name plus region for regional resources."""
        if self.region:
            return f"{self.name} ({self.id}, {self.region})"
        return self.name

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "arn": self.arn,
            "region": self.region,
            "creation_time": (
                self.creation_time.isoformat() if self.creation_time else None
            ),
        }


@dataclass(frozen=True)
class UsageSignal:
    """
    One finding from one usage source.

    Attributes:
        source: Usage source name (e.g. 'compute-instance')
        matched: True if the source found a reference to the resource
        detail: Human-readable reference (usually the referencing entity)
    """

    source: str
    matched: bool
    detail: str = ""


@dataclass(frozen=True)
class LivenessVerdict:
    """
    Aggregated liveness of one resource.

    ``in_use`` is the OR of all matched signals. Sources that could not be
    queried are listed in ``unchecked_sources`` and never count as a
    "not in use" vote.
    """

    in_use: bool
    reasons: Tuple[str, ...] = ()
    unchecked_sources: Tuple[str, ...] = ()

    @classmethod
    def from_signals(
        cls,
        signals: Iterable[UsageSignal],
        unchecked_sources: Iterable[str] = (),
    ) -> LivenessVerdict:
        """Fold signals into a verdict, keeping the order they arrived in."""
        reasons = tuple(
            f"{signal.source}: {signal.detail}" if signal.detail else signal.source
            for signal in signals
            if signal.matched
        )
        return cls(
            in_use=bool(reasons),
            reasons=reasons,
            unchecked_sources=tuple(unchecked_sources),
        )

    @property
    def is_complete(self) -> bool:
        """True if every usage source answered."""
        return not self.unchecked_sources


class ActivityTracking(Enum):
    """How a resource's last-used timestamp was obtained."""

    RECORDED = "recorded"
    NEVER_RECORDED = "never_recorded"
    NOT_TRACKED = "not_tracked"


@dataclass(frozen=True)
class ActivityRecord:
    """
    Provider-maintained last-used information.

    ``last_used`` is None both when the provider never recorded any activity
    and when it does not track activity for this kind; ``tracking`` tells the
    two apart.
    """

    last_used: Optional[datetime] = None
    tracking: ActivityTracking = ActivityTracking.NOT_TRACKED
    region: Optional[str] = None

    @classmethod
    def not_tracked(cls) -> ActivityRecord:
        return cls(None, ActivityTracking.NOT_TRACKED)

    @classmethod
    def never_recorded(cls) -> ActivityRecord:
        return cls(None, ActivityTracking.NEVER_RECORDED)

    @property
    def display(self) -> str:
        """Last-used date for reports; 'Unknown' when there is none."""
        if self.last_used is None:
            return "Unknown"
        return self.last_used.strftime("%Y-%m-%d %H:%M:%S UTC")


class Classification(Enum):
    """Staleness classification of one resource."""

    ACTIVE = "active"
    RECENT = "recent"
    UNUSED = "unused"


class StepAction(Enum):
    """Teardown actions a deletion plan can contain."""

    DETACH_MANAGED_POLICY = "detach-managed-policy"
    DELETE_INLINE_POLICY = "delete-inline-policy"
    REMOVE_FROM_INSTANCE_PROFILE = "remove-from-instance-profile"
    DELETE_NON_DEFAULT_VERSION = "delete-non-default-version"
    DELETE_RESOURCE = "delete-resource"


@dataclass(frozen=True)
class DeletionStep:
    """
    One teardown step.

    Attributes:
        action: What to do
        resource: The resource being torn down
        target: What the step operates on (policy ARN, inline policy name,
            instance profile name, version id); empty for delete-resource
        principal_type: 'user', 'group' or 'role' for policy detaches
        principal_name: Principal the policy is detached from
    """

    action: StepAction
    resource: Resource
    target: str = ""
    principal_type: Optional[str] = None
    principal_name: Optional[str] = None

    def describe(self) -> str:
        """Human-readable description, e.g. for dry-run output."""
        kind = self.resource.kind.label.lower()
        name = self.resource.name
        if self.action is StepAction.DETACH_MANAGED_POLICY:
            if self.principal_type:
                return (
                    f"detach policy {name} from {self.principal_type} "
                    f"{self.principal_name}"
                )
            return f"detach managed policy {self.target} from {kind} {name}"
        if self.action is StepAction.DELETE_INLINE_POLICY:
            return f"delete inline policy {self.target} of {kind} {name}"
        if self.action is StepAction.REMOVE_FROM_INSTANCE_PROFILE:
            return f"remove {kind} {name} from instance profile {self.target}"
        if self.action is StepAction.DELETE_NON_DEFAULT_VERSION:
            return f"delete version {self.target} of policy {name}"
        return f"delete {kind} {self.resource.display_name}"

    def __str__(self) -> str:
        return f"{self.action.value}({self.target or self.resource.name})"


@dataclass(frozen=True)
class DeletionPlan:
    """Ordered teardown steps for one resource; the last one deletes it."""

    resource: Resource
    steps: Tuple[DeletionStep, ...]

    def __post_init__(self) -> None:
        deletes = [s for s in self.steps if s.action is StepAction.DELETE_RESOURCE]
        if len(deletes) != 1 or self.steps[-1].action is not StepAction.DELETE_RESOURCE:
            raise ValueError(
                f"Deletion plan for {self.resource.name} must end with exactly "
                f"one delete-resource step"
            )

    @property
    def dependent_steps(self) -> Tuple[DeletionStep, ...]:
        """All steps before the final delete."""
        return self.steps[:-1]

    def describe(self) -> List[str]:
        return [step.describe() for step in self.steps]


class DeleteStatus(Enum):
    """Status of a plan execution."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    DRY_RUN = "dry_run"


@dataclass(frozen=True)
class StepFailure:
    """
    A failed step and the provider's reason.

    ``step`` is None when the failure happened while building the plan.
    """

    label: str
    cause: str
    step: Optional[DeletionStep] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"step": self.label, "cause": self.cause}

    def __str__(self) -> str:
        return f"{self.label}: {self.cause}"


@dataclass(frozen=True)
class ExecutionResult:
    """
    Outcome of executing one deletion plan.

    Attributes:
        resource: The resource the plan was for
        status: Result status
        deleted: True if the resource is gone (or would be, in dry run)
        failures: Failed steps with causes
        steps_completed: Number of steps that ran (or would run) successfully
        timestamp: When the execution finished
    """

    resource: Resource
    status: DeleteStatus
    deleted: bool
    failures: Tuple[StepFailure, ...] = ()
    steps_completed: int = 0
    timestamp: datetime = field(default_factory=utc_now)

    @classmethod
    def skipped(cls, resource: Resource) -> ExecutionResult:
        return cls(resource=resource, status=DeleteStatus.SKIPPED, deleted=False)

    @classmethod
    def failed(
        cls,
        resource: Resource,
        label: str,
        cause: str,
        step: Optional[DeletionStep] = None,
        steps_completed: int = 0,
    ) -> ExecutionResult:
        return cls(
            resource=resource,
            status=DeleteStatus.FAILED,
            deleted=False,
            failures=(StepFailure(label, cause, step),),
            steps_completed=steps_completed,
        )

    @property
    def failure(self) -> Optional[StepFailure]:
        """The first failure, if any."""
        return self.failures[0] if self.failures else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "resource": self.resource.name,
            "status": self.status.value,
            "deleted": self.deleted,
            "failures": [f.to_dict() for f in self.failures],
            "steps_completed": self.steps_completed,
            "timestamp": self.timestamp.isoformat(),
        }
