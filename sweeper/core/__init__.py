"""
Core Infrastructure Components
==============================

This module provides the foundational components for Account Sweeper:

- :class:`AWSClient` - Manages AWS connections and client creation
- :class:`RegionManager` - Resolves region scope and parallel region calls
- The sweep data model (resources, verdicts, plans, results)
- Exception hierarchy for error handling

Exceptions
----------
SweeperError
    Base exception for all Account Sweeper errors.
AWSClientError
    Base exception for AWS client errors.
ProviderUnreachable
    Identity check or inventory listing failed; aborts the run.
CredentialsError
    Raised when credentials are invalid or missing.
RegionError
    Raised when the region scope cannot be resolved.
SourceUnavailable
    A usage source could not be queried.
PlanningError / DependencyStepFailed
    Deletion planning or a teardown step failed.
UserCancelled
    The operator declined a deletion.

Example
-------
>>> from sweeper.core import AWSClient, RegionManager
>>>
>>> client = AWSClient(region="us-east-1", profile="production")
>>> client.who_am_i().account
'123456789012'
>>>
>>> manager = RegionManager(profile="production", max_workers=10)
>>> regions = manager.resolve_scope("all")
"""

from sweeper.core.aws_client import AWSClient, Identity
from sweeper.core.exceptions import (
    AWSClientError,
    CleanerError,
    CredentialsError,
    DependencyStepFailed,
    PlanningError,
    ProviderUnreachable,
    RegionError,
    ReportFinalizedError,
    ServiceError,
    SourceUnavailable,
    SweeperError,
    UserCancelled,
)
from sweeper.core.models import (
    ActivityRecord,
    Classification,
    DeleteStatus,
    DeletionPlan,
    DeletionStep,
    ExecutionResult,
    LivenessVerdict,
    Resource,
    ResourceKind,
    StepAction,
    UsageSignal,
)
from sweeper.core.region_manager import RegionManager

__all__ = [
    # Client
    "AWSClient",
    "Identity",
    # Region management
    "RegionManager",
    # Data model
    "ActivityRecord",
    "Classification",
    "DeleteStatus",
    "DeletionPlan",
    "DeletionStep",
    "ExecutionResult",
    "LivenessVerdict",
    "Resource",
    "ResourceKind",
    "StepAction",
    "UsageSignal",
    # Exceptions - Base
    "SweeperError",
    # Exceptions - AWS Client
    "AWSClientError",
    "ProviderUnreachable",
    "CredentialsError",
    "RegionError",
    "ServiceError",
    # Exceptions - Sweep
    "SourceUnavailable",
    "CleanerError",
    "PlanningError",
    "DependencyStepFailed",
    "UserCancelled",
    "ReportFinalizedError",
]
