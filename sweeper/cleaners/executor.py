"""
Deletion Executor
=================

Runs deletion plans.

Safety Features
---------------
1. **Dry-run mode**: every step is logged as "would ..." and no mutating
   call is issued. The result still looks like a completed deletion so
   reporting code needs no special case.
2. **Stop on first failure**: when a step fails, the remaining steps of that
   plan (including the final delete) are not attempted.
3. **Rate limiting**: a fixed delay separates successive resources. It is
   never applied between steps of one plan, nor in dry run.
4. **Cancellation**: ``should_stop`` is checked once the delay has elapsed,
   so a run cancelled during the wait starts no further teardown.
5. **Audit logging**: each attempt is logged at SUCCESS or ERROR level.

Example
-------
>>> executor = DeletionExecutor(region_manager, delay=1.0)
>>> result = executor.execute(plan, dry_run=True)
>>> result.status
<DeleteStatus.DRY_RUN: 'dry_run'>
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from sweeper.core.exceptions import DependencyStepFailed
from sweeper.core.logging import log_success
from sweeper.core.models import (
    DeleteStatus,
    DeletionPlan,
    DeletionStep,
    ExecutionResult,
    ResourceKind,
    StepAction,
)
from sweeper.core.region_manager import RegionManager

# Module logger
logger = logging.getLogger(__name__)

DEFAULT_DELAY_SECONDS = 1.0

# Error codes meaning a dependent is already gone
ALREADY_GONE_CODES = ("NoSuchEntity", "NoSuchEntityException")


class DeletionExecutor:
    """
    Executes deletion plans with dry-run support and failure isolation.

    Parameters
    ----------
    region_manager : RegionManager
        Supplies IAM (home region) and EC2 (per region) clients.
    delay : float, default=1.0
        Seconds between the start of one resource's teardown and the end of
        the previous one.
    sleep : callable, optional
        Sleep function (injectable for tests).
    clock : callable, optional
        Monotonic clock (injectable for tests).
    """

    # Common error codes and user-friendly messages
    ERROR_MESSAGES = {
        "DeleteConflict": "Resource still has attached dependents",
        "DependencyViolation": "Security group is still in use by another resource",
        "InvalidGroup.NotFound": "Security group no longer exists",
        "InvalidGroup.InUse": "Security group is referenced by another security group",
        "NoSuchEntity": "Resource no longer exists",
        "UnmodifiableEntity": "Resource is protected and cannot be modified",
        "AccessDenied": "Insufficient permissions",
        "UnauthorizedOperation": "Insufficient permissions",
        "Throttling": "Request throttled by AWS",
    }

    def __init__(
        self,
        region_manager: RegionManager,
        delay: float = DEFAULT_DELAY_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.region_manager = region_manager
        self.delay = delay
        self._sleep = sleep
        self._clock = clock
        self._last_finished: Optional[float] = None
        self._lock = threading.Lock()

        self._handlers: Dict[StepAction, Callable[[DeletionStep], None]] = {
            StepAction.DETACH_MANAGED_POLICY: self._detach_managed_policy,
            StepAction.DELETE_INLINE_POLICY: self._delete_inline_policy,
            StepAction.REMOVE_FROM_INSTANCE_PROFILE: self._remove_from_instance_profile,
            StepAction.DELETE_NON_DEFAULT_VERSION: self._delete_policy_version,
            StepAction.DELETE_RESOURCE: self._delete_resource,
        }

    @property
    def iam(self):
        return self.region_manager.base_client.get_iam_client()

    def execute(
        self,
        plan: DeletionPlan,
        dry_run: bool = False,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> ExecutionResult:
        """
        Execute ``plan``.

        Parameters
        ----------
        plan : DeletionPlan
            Steps to run, in order.
        dry_run : bool, default=False
            If True, only log what would be done.
        should_stop : callable, optional
            Checked after the inter-resource delay. If it returns True no
            step is run and the result is SKIPPED.

        Returns
        -------
        ExecutionResult
            SUCCESS or DRY_RUN with ``deleted=True``, FAILED with the
            failing step and cause, or SKIPPED.
        """
        resource = plan.resource
        total = len(plan.steps)

        if dry_run:
            for index, step in enumerate(plan.steps, 1):
                logger.info(f"[DRY RUN] Step {index}/{total}: would {step.describe()}")
            return ExecutionResult(
                resource=resource,
                status=DeleteStatus.DRY_RUN,
                deleted=True,
                steps_completed=total,
            )

        with self._lock:
            self._wait_for_slot()
            if should_stop is not None and should_stop():
                logger.warning(f"Not deleting {resource.display_name}: run was cancelled")
                return ExecutionResult.skipped(resource)
            try:
                completed = self._run_steps(plan)
            except DependencyStepFailed as e:
                index = next(i for i, s in enumerate(plan.steps, 1) if s is e.step)
                label = f"step {index}/{total} {e.step.describe()}"
                logger.error(
                    f"Failed to delete {resource.display_name}: {label} failed: {e.cause}"
                )
                if index < total:
                    logger.error(
                        f"Skipped the remaining {total - index} step(s) for "
                        f"{resource.display_name}"
                    )
                return ExecutionResult.failed(
                    resource, label, e.cause, step=e.step, steps_completed=index - 1
                )
            finally:
                self._last_finished = self._clock()

        log_success(logger, f"Deleted {resource.kind.label.lower()} {resource.display_name}")
        return ExecutionResult(
            resource=resource,
            status=DeleteStatus.SUCCESS,
            deleted=True,
            steps_completed=completed,
        )

    def _wait_for_slot(self) -> None:
        if self._last_finished is None or self.delay <= 0:
            return
        remaining = self.delay - (self._clock() - self._last_finished)
        if remaining > 0:
            self._sleep(remaining)

    def _run_steps(self, plan: DeletionPlan) -> int:
        total = len(plan.steps)
        for index, step in enumerate(plan.steps, 1):
            try:
                self._handlers[step.action](step)
            except ClientError as e:
                code = e.response.get("Error", {}).get("Code", "Unknown")
                if code in ALREADY_GONE_CODES and step.action is not StepAction.DELETE_RESOURCE:
                    logger.info(f"Step {index}/{total}: {step.describe()} (already done)")
                    continue
                raise DependencyStepFailed(
                    f"Step {index} of {total} failed",
                    step=step,
                    cause=self._error_message(e),
                    resource_id=plan.resource.id,
                    resource_type=plan.resource.kind.value,
                )
            except (BotoCoreError, ValueError) as e:
                raise DependencyStepFailed(
                    f"Step {index} of {total} failed",
                    step=step,
                    cause=str(e),
                    resource_id=plan.resource.id,
                    resource_type=plan.resource.kind.value,
                )
            logger.info(f"Step {index}/{total}: {step.describe()}")
        return total

    def _error_message(self, error: ClientError) -> str:
        details = error.response.get("Error", {})
        code = details.get("Code", "Unknown")
        message = details.get("Message", str(error))
        friendly = self.ERROR_MESSAGES.get(code)
        if friendly:
            return f"{friendly} ({code}: {message})"
        return f"{code}: {message}"

    # =========================================================================
    # Step handlers
    # =========================================================================

    def _detach_managed_policy(self, step: DeletionStep) -> None:
        resource = step.resource
        if resource.kind is ResourceKind.ROLE:
            self.iam.detach_role_policy(RoleName=resource.name, PolicyArn=step.target)
        elif step.principal_type == "user":
            self.iam.detach_user_policy(UserName=step.principal_name, PolicyArn=step.target)
        elif step.principal_type == "group":
            self.iam.detach_group_policy(GroupName=step.principal_name, PolicyArn=step.target)
        elif step.principal_type == "role":
            self.iam.detach_role_policy(RoleName=step.principal_name, PolicyArn=step.target)
        else:
            raise ValueError(f"Cannot detach policy for step {step}")

    def _delete_inline_policy(self, step: DeletionStep) -> None:
        self.iam.delete_role_policy(RoleName=step.resource.name, PolicyName=step.target)

    def _remove_from_instance_profile(self, step: DeletionStep) -> None:
        self.iam.remove_role_from_instance_profile(
            InstanceProfileName=step.target, RoleName=step.resource.name
        )

    def _delete_policy_version(self, step: DeletionStep) -> None:
        self.iam.delete_policy_version(PolicyArn=step.resource.arn, VersionId=step.target)

    def _delete_resource(self, step: DeletionStep) -> None:
        resource = step.resource
        if resource.kind is ResourceKind.ROLE:
            self.iam.delete_role(RoleName=resource.name)
        elif resource.kind is ResourceKind.POLICY:
            self.iam.delete_policy(PolicyArn=resource.arn)
        else:
            client = self.region_manager.get_client_for_region(
                resource.region or self.region_manager.home_region
            )
            client.get_ec2_client().delete_security_group(GroupId=resource.id)

    def __repr__(self) -> str:
        return f"DeletionExecutor(delay={self.delay})"
