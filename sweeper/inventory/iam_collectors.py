"""
IAM Inventory Collectors
========================

Lists IAM roles and customer-managed policies.

Provider-owned filter
---------------------
Roles under the ``/aws-service-role/`` path (service-linked roles) and the
``/aws-reserved/`` path (IAM Identity Center roles) belong to AWS, as do
roles named ``AWSServiceRoleFor*`` or ``AWSReservedSSO_*``. AWS-managed
policies are never listed because only ``Scope="Local"`` is requested.
"""

from __future__ import annotations

import logging
from typing import List

from sweeper.core.aws_client import AWSClient
from sweeper.core.models import Resource, ResourceKind
from sweeper.inventory.base_collector import BaseCollector

logger = logging.getLogger(__name__)

PROVIDER_PATH_PREFIXES = ("/aws-service-role/", "/aws-reserved/")
PROVIDER_NAME_PREFIXES = ("AWSServiceRoleFor", "AWSReservedSSO_")


class RoleCollector(BaseCollector):
    """Collects IAM roles."""

    kind = ResourceKind.ROLE
    regional = False

    def fetch_resources(self, aws_client: AWSClient) -> List[Resource]:
        roles: List[Resource] = []
        paginator = aws_client.get_iam_client().get_paginator("list_roles")

        for page in paginator.paginate():
            for role in page["Roles"]:
                roles.append(
                    Resource(
                        id=role["RoleId"],
                        name=role["RoleName"],
                        kind=self.kind,
                        creation_time=role.get("CreateDate"),
                        arn=role["Arn"],
                        path=role.get("Path", "/"),
                        metadata={"description": role.get("Description", "")},
                    )
                )

        logger.debug(f"Listed {len(roles)} IAM roles")
        return roles

    def is_provider_owned(self, resource: Resource) -> bool:
        return resource.path.startswith(PROVIDER_PATH_PREFIXES) or (
            resource.name.startswith(PROVIDER_NAME_PREFIXES)
        )


class PolicyCollector(BaseCollector):
    """Collects customer-managed IAM policies."""

    kind = ResourceKind.POLICY
    regional = False

    def fetch_resources(self, aws_client: AWSClient) -> List[Resource]:
        policies: List[Resource] = []
        paginator = aws_client.get_iam_client().get_paginator("list_policies")

        for page in paginator.paginate(Scope="Local"):
            for policy in page["Policies"]:
                policies.append(
                    Resource(
                        id=policy["Arn"],
                        name=policy["PolicyName"],
                        kind=self.kind,
                        creation_time=policy.get("CreateDate"),
                        arn=policy["Arn"],
                        path=policy.get("Path", "/"),
                        metadata={
                            "attachment_count": policy.get("AttachmentCount", 0),
                            "boundary_usage_count": policy.get(
                                "PermissionsBoundaryUsageCount", 0
                            ),
                            "default_version_id": policy.get("DefaultVersionId"),
                        },
                    )
                )

        logger.debug(f"Listed {len(policies)} customer-managed IAM policies")
        return policies

    def is_provider_owned(self, resource: Resource) -> bool:
        # Local scope never returns AWS-managed policies; the ARN check guards
        # against callers feeding resources from elsewhere.
        return resource.arn is not None and resource.arn.startswith(
            "arn:aws:iam::aws:policy/"
        )
