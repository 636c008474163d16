"""
Security Group Collector
========================

Lists EC2 security groups in every scoped region.

The VPC ``default`` group is provider-owned: AWS creates it with the VPC
and refuses to delete it, so it is never a candidate.
"""

from __future__ import annotations

import logging
from typing import List

from sweeper.core.aws_client import AWSClient
from sweeper.core.models import Resource, ResourceKind
from sweeper.inventory.base_collector import BaseCollector

# Module logger
logger = logging.getLogger(__name__)


class SecurityGroupCollector(BaseCollector):
    """
    Collects EC2 security groups.

    Each resource carries its region and, in ``metadata``, the VPC id,
    description and tags.
    """

    kind = ResourceKind.SECURITY_GROUP
    regional = True

    def fetch_resources(self, aws_client: AWSClient) -> List[Resource]:
        """List the security groups of one region."""
        security_groups: List[Resource] = []
        paginator = aws_client.get_ec2_client().get_paginator(
            "describe_security_groups"
        )

        logger.debug(f"Fetching all security groups in {aws_client.region}")

        for page in paginator.paginate():
            for sg in page["SecurityGroups"]:
                security_groups.append(
                    Resource(
                        id=sg["GroupId"],
                        name=sg["GroupName"],
                        kind=self.kind,
                        arn=(
                            f"arn:aws:ec2:{aws_client.region}:{sg['OwnerId']}:"
                            f"security-group/{sg['GroupId']}"
                            if sg.get("OwnerId")
                            else None
                        ),
                        region=aws_client.region,
                        metadata={
                            "description": sg.get("Description", ""),
                            "vpc_id": sg.get("VpcId", "N/A"),
                            "tags": {
                                tag["Key"]: tag["Value"] for tag in sg.get("Tags", [])
                            },
                        },
                    )
                )

        logger.debug(
            f"Found {len(security_groups)} security groups in {aws_client.region}"
        )
        return security_groups

    def is_provider_owned(self, resource: Resource) -> bool:
        return resource.name == "default"
