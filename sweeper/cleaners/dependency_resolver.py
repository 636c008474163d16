"""
Dependency Resolver
===================

Builds the ordered teardown plan for an unused resource.

AWS refuses to delete a role that still has policies or instance-profile
memberships, and a policy that still has attachments or non-default
versions. The resolver enumerates those dependents and puts every detach
or delete before the final delete of the resource itself.

Plan Layout
-----------
Role
    detach-managed-policy*, delete-inline-policy*,
    remove-from-instance-profile*, delete-resource
Policy
    detach-managed-policy* (one per remaining user, group or role),
    delete-non-default-version*, delete-resource
Security group
    delete-resource

Example
-------
>>> resolver = DependencyResolver(region_manager)
>>> plan = resolver.plan(role)
>>> for line in plan.describe():
...     print(line)
detach managed policy arn:aws:iam::123456789012:policy/ci-read from role ci-runner
delete role ci-runner
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List

from botocore.exceptions import BotoCoreError, ClientError

from sweeper.core.exceptions import PlanningError
from sweeper.core.models import (
    DeletionPlan,
    DeletionStep,
    Resource,
    ResourceKind,
    StepAction,
)
from sweeper.core.region_manager import RegionManager

# Module logger
logger = logging.getLogger(__name__)


class DependencyResolver:
    """
    Enumerates sub-resources and orders their teardown.

    Parameters
    ----------
    region_manager : RegionManager
        Supplies the IAM client (home region).
    """

    def __init__(self, region_manager: RegionManager) -> None:
        self.region_manager = region_manager
        self._planners: Dict[ResourceKind, Callable[[Resource], List[DeletionStep]]] = {
            ResourceKind.ROLE: self._role_steps,
            ResourceKind.POLICY: self._policy_steps,
            ResourceKind.SECURITY_GROUP: lambda resource: [],
        }

    @property
    def iam(self):
        return self.region_manager.base_client.get_iam_client()

    def plan(self, resource: Resource) -> DeletionPlan:
        """
        Build the deletion plan for ``resource``.

        Returns
        -------
        DeletionPlan
            Dependent steps first, the delete of ``resource`` last.

        Raises
        ------
        PlanningError
            If the dependents could not be enumerated.
        """
        try:
            steps = self._planners[resource.kind](resource)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Could not enumerate dependents of {resource.display_name}: {e}")
            raise PlanningError(
                f"Failed to enumerate dependents of {resource.name}: {e}",
                resource_id=resource.id,
                resource_type=resource.kind.value,
            )

        steps.append(DeletionStep(StepAction.DELETE_RESOURCE, resource))
        plan = DeletionPlan(resource=resource, steps=tuple(steps))
        logger.debug(
            f"Planned {len(plan.steps)} step(s) for {resource.display_name}"
        )
        return plan

    def _role_steps(self, role: Resource) -> List[DeletionStep]:
        steps: List[DeletionStep] = []

        paginator = self.iam.get_paginator("list_attached_role_policies")
        for page in paginator.paginate(RoleName=role.name):
            for policy in page["AttachedPolicies"]:
                steps.append(
                    DeletionStep(StepAction.DETACH_MANAGED_POLICY, role, policy["PolicyArn"])
                )

        paginator = self.iam.get_paginator("list_role_policies")
        for page in paginator.paginate(RoleName=role.name):
            for policy_name in page["PolicyNames"]:
                steps.append(
                    DeletionStep(StepAction.DELETE_INLINE_POLICY, role, policy_name)
                )

        paginator = self.iam.get_paginator("list_instance_profiles_for_role")
        for page in paginator.paginate(RoleName=role.name):
            for profile in page["InstanceProfiles"]:
                steps.append(
                    DeletionStep(
                        StepAction.REMOVE_FROM_INSTANCE_PROFILE,
                        role,
                        profile["InstanceProfileName"],
                    )
                )

        return steps

    def _policy_steps(self, policy: Resource) -> List[DeletionStep]:
        steps: List[DeletionStep] = []

        paginator = self.iam.get_paginator("list_entities_for_policy")
        for page in paginator.paginate(PolicyArn=policy.arn):
            for principal_type, key, name_key in (
                ("user", "PolicyUsers", "UserName"),
                ("group", "PolicyGroups", "GroupName"),
                ("role", "PolicyRoles", "RoleName"),
            ):
                for entity in page.get(key, []):
                    steps.append(
                        DeletionStep(
                            StepAction.DETACH_MANAGED_POLICY,
                            policy,
                            policy.arn or policy.id,
                            principal_type=principal_type,
                            principal_name=entity[name_key],
                        )
                    )

        paginator = self.iam.get_paginator("list_policy_versions")
        for page in paginator.paginate(PolicyArn=policy.arn):
            for version in page["Versions"]:
                if not version.get("IsDefaultVersion"):
                    steps.append(
                        DeletionStep(
                            StepAction.DELETE_NON_DEFAULT_VERSION,
                            policy,
                            version["VersionId"],
                        )
                    )

        return steps

    def __repr__(self) -> str:
        return "DependencyResolver()"
