"""
Usage Sources
=============

Registry of the independent systems queried to decide whether a resource
is still referenced.

Each :class:`UsageSource` has a ``check(resource, context)`` callable that
returns the matching :class:`UsageSignal` objects (an empty list means "this
source found no reference"). A check that cannot query its system raises;
the oracle records the source as unchecked and moves on.

Most sources work from an inventory-wide listing (all instances, all
functions, ...) that is loaded once per region and cached for the run.
Those sources are split into a ``_load_*`` function that talks to AWS and a
pure ``match_*`` function, so matching can be tested with fabricated data.

Sources by kind
---------------
Roles
    compute-instance, container-service, serverless-function,
    build-project, scaling-group
Security groups
    compute-instance, network-interface, load-balancer,
    classic-load-balancer, managed-database, cross-reference
Policies
    user-attachment, group-attachment, role-attachment, permissions-boundary

Notes
-----
Role references that only expose an instance profile (EC2 instances,
launch configurations) are matched two ways: membership of the role in the
profile, and the role name appearing anywhere in the profile's name or ARN
(case-insensitive). The second test can flag a role as in use because its
name is a substring of another profile's ARN. That false positive is
accepted; a false negative is not.

Example
-------
>>> from sweeper.liveness.sources import register_source, UsageSource
>>>
>>> def check_step_functions(resource, context):
...     ...
>>> register_source(ResourceKind.ROLE, UsageSource("state-machine", check_step_functions))
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sweeper.core.aws_client import AWSClient
from sweeper.core.exceptions import SourceUnavailable
from sweeper.core.models import Resource, ResourceKind, UsageSignal
from sweeper.liveness.cache import UsageCache

# Module logger
logger = logging.getLogger(__name__)

# Mapping of referenced id -> details of the entities referencing it
ReferenceIndex = Dict[str, List[str]]

# (entity description, role reference as ARN or name)
RoleReferences = List[Tuple[str, str]]

# instance profile name/arn (lowercase) -> role names in the profile
ProfileIndex = Dict[str, List[str]]

CODEBUILD_BATCH_SIZE = 100


@dataclass
class SourceContext:
    """
    What a source check gets to work with.

    Attributes:
        client: AWSClient for the region being checked
        region: Region being checked, None for global sources
        cache: Run-scoped listing cache
        home_client: AWSClient for global calls (IAM)
    """

    client: AWSClient
    region: Optional[str]
    cache: UsageCache
    home_client: AWSClient

    def cached(self, name: str, loader: Callable[[], Any], regional: bool = True) -> Any:
        """Load ``name`` once per run (per region when ``regional``)."""
        key = (name, self.region if regional else None)
        return self.cache.get_or_load(key, loader)


@dataclass(frozen=True)
class UsageSource:
    """
    One usage source.

    Attributes:
        name: Source name reported in signals and unchecked lists
        check: ``check(resource, context) -> list of UsageSignal``
        regional: True if the source must be queried in every scoped region
    """

    name: str
    check: Callable[[Resource, SourceContext], List[UsageSignal]] = field(compare=False)
    regional: bool = True


# =============================================================================
# Matching helpers
# =============================================================================


def role_reference_matches(resource: Resource, reference: Optional[str]) -> bool:
    """
    True if ``reference`` (a role ARN or bare role name) names ``resource``.

    Comparison is case-insensitive; an ARN matches on its full value or on
    its final path segment.
    """
    if not reference:
        return False
    value = reference.strip().lower()
    name = resource.name.lower()
    if resource.arn and value == resource.arn.lower():
        return True
    return value == name or value.endswith(f"/{name}")


def profile_references_role(
    resource: Resource,
    profile_ref: Optional[str],
    profiles: ProfileIndex,
) -> bool:
    """
    True if the instance profile ``profile_ref`` (name or ARN) may carry the role.

    Exact membership is checked first; otherwise the role name is looked
    for anywhere in ``profile_ref``.
    """
    if not profile_ref:
        return False
    ref = profile_ref.lower()
    members = profiles.get(ref) or profiles.get(ref.rsplit("/", 1)[-1], [])
    if resource.name in members:
        return True
    return resource.name.lower() in ref


def match_role_references(
    source: str,
    resource: Resource,
    references: RoleReferences,
) -> List[UsageSignal]:
    """Signals for every entity whose role reference names ``resource``."""
    return [
        UsageSignal(source, True, entity)
        for entity, reference in references
        if role_reference_matches(resource, reference)
    ]


def match_profile_references(
    source: str,
    resource: Resource,
    references: RoleReferences,
    profiles: ProfileIndex,
) -> List[UsageSignal]:
    """Signals for every entity whose instance profile may carry ``resource``."""
    return [
        UsageSignal(source, True, entity)
        for entity, profile_ref in references
        if profile_references_role(resource, profile_ref, profiles)
    ]


def match_reference_index(
    source: str,
    resource: Resource,
    index: ReferenceIndex,
) -> List[UsageSignal]:
    """Signals for every entity listed against ``resource.id`` in ``index``."""
    return [UsageSignal(source, True, detail) for detail in index.get(resource.id, [])]


def _add_reference(index: ReferenceIndex, key: str, detail: str) -> None:
    index.setdefault(key, []).append(detail)


def _region_suffix(context: SourceContext) -> str:
    return f" in {context.region}" if context.region else ""


# =============================================================================
# Shared listings
# =============================================================================


def load_instance_profiles(aws_client: AWSClient) -> ProfileIndex:
    """Index every instance profile by lowercase name and ARN."""
    profiles: ProfileIndex = {}
    paginator = aws_client.get_iam_client().get_paginator("list_instance_profiles")
    for page in paginator.paginate():
        for profile in page["InstanceProfiles"]:
            roles = [role["RoleName"] for role in profile.get("Roles", [])]
            profiles[profile["InstanceProfileName"].lower()] = roles
            profiles[profile["Arn"].lower()] = roles
    return profiles


def _instance_profiles(context: SourceContext) -> ProfileIndex:
    return context.cached(
        "instance-profiles",
        lambda: load_instance_profiles(context.home_client),
        regional=False,
    )


def _live_instances(context: SourceContext) -> List[Dict[str, Any]]:
    """All instances that are not terminated, shared by role and SG checks."""

    def load() -> List[Dict[str, Any]]:
        instances: List[Dict[str, Any]] = []
        paginator = context.client.get_ec2_client().get_paginator("describe_instances")
        for page in paginator.paginate():
            for reservation in page["Reservations"]:
                for instance in reservation["Instances"]:
                    state = instance.get("State", {}).get("Name")
                    if state not in ("terminated", "shutting-down"):
                        instances.append(instance)
        return instances

    return context.cached("ec2-instances", load)


# =============================================================================
# Role sources
# =============================================================================


def check_role_compute_instances(resource: Resource, context: SourceContext) -> List[UsageSignal]:
    """EC2 instances whose instance profile carries the role."""
    references = [
        (
            f"EC2 instance {instance['InstanceId']}{_region_suffix(context)}",
            instance.get("IamInstanceProfile", {}).get("Arn"),
        )
        for instance in _live_instances(context)
        if instance.get("IamInstanceProfile")
    ]
    if not references:
        return []
    return match_profile_references(
        "compute-instance", resource, references, _instance_profiles(context)
    )


def _load_task_definition_roles(context: SourceContext) -> RoleReferences:
    ecs = context.client.get_ecs_client()
    references: RoleReferences = []
    paginator = ecs.get_paginator("list_task_definitions")
    for page in paginator.paginate(status="ACTIVE"):
        for arn in page["taskDefinitionArns"]:
            definition = ecs.describe_task_definition(taskDefinition=arn)["taskDefinition"]
            label = (
                f"ECS task definition {definition['family']}:{definition['revision']}"
                f"{_region_suffix(context)}"
            )
            for key in ("taskRoleArn", "executionRoleArn"):
                if definition.get(key):
                    references.append((label, definition[key]))
    return references


def check_role_container_service(resource: Resource, context: SourceContext) -> List[UsageSignal]:
    """Active ECS task definitions using the role as task or execution role."""
    references = context.cached(
        "ecs-task-definitions", lambda: _load_task_definition_roles(context)
    )
    return match_role_references("container-service", resource, references)


def _load_function_roles(context: SourceContext) -> RoleReferences:
    references: RoleReferences = []
    paginator = context.client.get_lambda_client().get_paginator("list_functions")
    for page in paginator.paginate():
        for function in page["Functions"]:
            references.append(
                (
                    f"Lambda function {function['FunctionName']}{_region_suffix(context)}",
                    function.get("Role"),
                )
            )
    return references


def check_role_serverless_function(resource: Resource, context: SourceContext) -> List[UsageSignal]:
    """Lambda functions executing as the role."""
    references = context.cached("lambda-functions", lambda: _load_function_roles(context))
    return match_role_references("serverless-function", resource, references)


def _load_build_project_roles(context: SourceContext) -> RoleReferences:
    codebuild = context.client.get_codebuild_client()
    names: List[str] = []
    paginator = codebuild.get_paginator("list_projects")
    for page in paginator.paginate():
        names.extend(page["projects"])

    references: RoleReferences = []
    for start in range(0, len(names), CODEBUILD_BATCH_SIZE):
        batch = names[start:start + CODEBUILD_BATCH_SIZE]
        for project in codebuild.batch_get_projects(names=batch)["projects"]:
            references.append(
                (
                    f"CodeBuild project {project['name']}{_region_suffix(context)}",
                    project.get("serviceRole"),
                )
            )
    return references


def check_role_build_project(resource: Resource, context: SourceContext) -> List[UsageSignal]:
    """CodeBuild projects using the role as service role."""
    references = context.cached(
        "codebuild-projects", lambda: _load_build_project_roles(context)
    )
    return match_role_references("build-project", resource, references)


def _load_launch_configuration_profiles(context: SourceContext) -> RoleReferences:
    references: RoleReferences = []
    paginator = context.client.get_autoscaling_client().get_paginator(
        "describe_launch_configurations"
    )
    for page in paginator.paginate():
        for config in page["LaunchConfigurations"]:
            if config.get("IamInstanceProfile"):
                references.append(
                    (
                        f"launch configuration {config['LaunchConfigurationName']}"
                        f"{_region_suffix(context)}",
                        config["IamInstanceProfile"],
                    )
                )
    return references


def check_role_scaling_group(resource: Resource, context: SourceContext) -> List[UsageSignal]:
    """Auto Scaling launch configurations whose instance profile carries the role."""
    references = context.cached(
        "launch-configurations", lambda: _load_launch_configuration_profiles(context)
    )
    if not references:
        return []
    return match_profile_references(
        "scaling-group", resource, references, _instance_profiles(context)
    )


# =============================================================================
# Security group sources
# =============================================================================


def _load_instance_groups(context: SourceContext) -> ReferenceIndex:
    index: ReferenceIndex = {}
    for instance in _live_instances(context):
        for sg in instance.get("SecurityGroups", []):
            _add_reference(index, sg["GroupId"], f"EC2 instance {instance['InstanceId']}")
    return index


def check_sg_compute_instances(resource: Resource, context: SourceContext) -> List[UsageSignal]:
    """EC2 instances carrying the group."""
    index = context.cached("sg-instances", lambda: _load_instance_groups(context))
    return match_reference_index("compute-instance", resource, index)


def _load_network_interface_groups(context: SourceContext) -> ReferenceIndex:
    """
    ENIs cover Lambda functions in a VPC, ECS awsvpc tasks, VPC endpoints,
    NAT gateways and most other managed services that place interfaces.
    """
    index: ReferenceIndex = {}
    paginator = context.client.get_ec2_client().get_paginator("describe_network_interfaces")
    for page in paginator.paginate():
        for eni in page["NetworkInterfaces"]:
            label = f"network interface {eni['NetworkInterfaceId']}"
            if eni.get("Description"):
                label += f" ({eni['Description']})"
            for sg in eni.get("Groups", []):
                _add_reference(index, sg["GroupId"], label)
    return index


def check_sg_network_interfaces(resource: Resource, context: SourceContext) -> List[UsageSignal]:
    """Network interfaces carrying the group."""
    index = context.cached("sg-enis", lambda: _load_network_interface_groups(context))
    return match_reference_index("network-interface", resource, index)


def _load_elbv2_groups(context: SourceContext) -> ReferenceIndex:
    index: ReferenceIndex = {}
    paginator = context.client.get_elbv2_client().get_paginator("describe_load_balancers")
    for page in paginator.paginate():
        for lb in page["LoadBalancers"]:
            for sg_id in lb.get("SecurityGroups", []):
                _add_reference(index, sg_id, f"load balancer {lb['LoadBalancerName']}")
    return index


def check_sg_load_balancer(resource: Resource, context: SourceContext) -> List[UsageSignal]:
    """Application and network load balancers carrying the group."""
    index = context.cached("sg-elbv2", lambda: _load_elbv2_groups(context))
    return match_reference_index("load-balancer", resource, index)


def _load_classic_elb_groups(context: SourceContext) -> ReferenceIndex:
    index: ReferenceIndex = {}
    paginator = context.client.get_elb_client().get_paginator("describe_load_balancers")
    for page in paginator.paginate():
        for elb in page["LoadBalancerDescriptions"]:
            for sg_id in elb.get("SecurityGroups", []):
                _add_reference(
                    index, sg_id, f"classic load balancer {elb['LoadBalancerName']}"
                )
    return index


def check_sg_classic_load_balancer(resource: Resource, context: SourceContext) -> List[UsageSignal]:
    """Classic load balancers carrying the group."""
    index = context.cached("sg-elb", lambda: _load_classic_elb_groups(context))
    return match_reference_index("classic-load-balancer", resource, index)


def _load_database_groups(context: SourceContext) -> ReferenceIndex:
    index: ReferenceIndex = {}
    paginator = context.client.get_rds_client().get_paginator("describe_db_instances")
    for page in paginator.paginate():
        for db in page["DBInstances"]:
            for sg in db.get("VpcSecurityGroups", []):
                _add_reference(
                    index,
                    sg["VpcSecurityGroupId"],
                    f"RDS instance {db['DBInstanceIdentifier']}",
                )
    return index


def check_sg_managed_database(resource: Resource, context: SourceContext) -> List[UsageSignal]:
    """RDS instances carrying the group."""
    index = context.cached("sg-rds", lambda: _load_database_groups(context))
    return match_reference_index("managed-database", resource, index)


def build_rule_reference_index(security_groups: Iterable[Dict[str, Any]]) -> ReferenceIndex:
    """
    Index which groups are named in other groups' rules.

    Rules a group holds about itself are ignored: they do not keep it alive.
    """
    index: ReferenceIndex = {}
    for sg in security_groups:
        owner = sg["GroupId"]
        for direction, key in (("ingress", "IpPermissions"), ("egress", "IpPermissionsEgress")):
            for rule in sg.get(key, []):
                for pair in rule.get("UserIdGroupPairs", []):
                    referenced = pair.get("GroupId")
                    if referenced and referenced != owner:
                        detail = f"{direction} rule of {owner} ({sg.get('GroupName', '')})"
                        if detail not in index.get(referenced, []):
                            _add_reference(index, referenced, detail)
    return index


def _load_rule_references(context: SourceContext) -> ReferenceIndex:
    groups: List[Dict[str, Any]] = []
    paginator = context.client.get_ec2_client().get_paginator("describe_security_groups")
    for page in paginator.paginate():
        groups.extend(page["SecurityGroups"])
    return build_rule_reference_index(groups)


def check_sg_cross_reference(resource: Resource, context: SourceContext) -> List[UsageSignal]:
    """Other groups whose ingress or egress rules name the group."""
    index = context.cached("sg-rule-references", lambda: _load_rule_references(context))
    return match_reference_index("cross-reference", resource, index)


# =============================================================================
# Policy sources
# =============================================================================

_ENTITY_KEYS = {
    "User": ("PolicyUsers", "UserName", "user"),
    "Group": ("PolicyGroups", "GroupName", "group"),
    "Role": ("PolicyRoles", "RoleName", "role"),
}


def _policy_attachment_check(entity_filter: str) -> Callable[[Resource, SourceContext], List[UsageSignal]]:
    response_key, name_key, label = _ENTITY_KEYS[entity_filter]
    source = f"{label}-attachment"

    def check(resource: Resource, context: SourceContext) -> List[UsageSignal]:
        signals: List[UsageSignal] = []
        paginator = context.home_client.get_iam_client().get_paginator(
            "list_entities_for_policy"
        )
        for page in paginator.paginate(
            PolicyArn=resource.arn, EntityFilter=entity_filter
        ):
            for entity in page.get(response_key, []):
                signals.append(UsageSignal(source, True, f"{label} {entity[name_key]}"))
        return signals

    check.__name__ = f"check_policy_{label}_attachment"
    check.__doc__ = f"IAM {label}s the policy is attached to."
    return check


check_policy_user_attachment = _policy_attachment_check("User")
check_policy_group_attachment = _policy_attachment_check("Group")
check_policy_role_attachment = _policy_attachment_check("Role")


def check_policy_permissions_boundary(resource: Resource, context: SourceContext) -> List[UsageSignal]:
    """The policy is used as a permissions boundary by some principal."""
    if "boundary_usage_count" not in resource.metadata:
        raise SourceUnavailable(
            "Permissions boundary usage count not reported",
            source="permissions-boundary",
        )
    count = resource.metadata["boundary_usage_count"] or 0
    if count > 0:
        return [UsageSignal("permissions-boundary", True, f"boundary of {count} principal(s)")]
    return []


# =============================================================================
# Registry
# =============================================================================

DEFAULT_SOURCES: Dict[ResourceKind, List[UsageSource]] = {
    ResourceKind.ROLE: [
        UsageSource("compute-instance", check_role_compute_instances),
        UsageSource("container-service", check_role_container_service),
        UsageSource("serverless-function", check_role_serverless_function),
        UsageSource("build-project", check_role_build_project),
        UsageSource("scaling-group", check_role_scaling_group),
    ],
    ResourceKind.SECURITY_GROUP: [
        UsageSource("compute-instance", check_sg_compute_instances),
        UsageSource("network-interface", check_sg_network_interfaces),
        UsageSource("load-balancer", check_sg_load_balancer),
        UsageSource("classic-load-balancer", check_sg_classic_load_balancer),
        UsageSource("managed-database", check_sg_managed_database),
        UsageSource("cross-reference", check_sg_cross_reference),
    ],
    ResourceKind.POLICY: [
        UsageSource("user-attachment", check_policy_user_attachment, regional=False),
        UsageSource("group-attachment", check_policy_group_attachment, regional=False),
        UsageSource("role-attachment", check_policy_role_attachment, regional=False),
        UsageSource("permissions-boundary", check_policy_permissions_boundary, regional=False),
    ],
}


def register_source(kind: ResourceKind, source: UsageSource) -> None:
    """Add a usage source to the default registry for ``kind``."""
    DEFAULT_SOURCES.setdefault(kind, []).append(source)
    logger.debug(f"Registered usage source {source.name} for {kind.value}")


def sources_for(kind: ResourceKind) -> List[UsageSource]:
    """Copy of the registered sources for ``kind``."""
    return list(DEFAULT_SOURCES.get(kind, []))
