"""
Last-used lookup for candidates.

IAM records a last-used timestamp (and region) for each role. Policies and
security groups have no provider-side activity record.
"""

from __future__ import annotations

import logging

from botocore.exceptions import BotoCoreError, ClientError

from sweeper.core.aws_client import AWSClient
from sweeper.core.exceptions import SourceUnavailable
from sweeper.core.models import ActivityRecord, ActivityTracking, Resource, ResourceKind

logger = logging.getLogger(__name__)

ACTIVITY_SOURCE = "activity-record"


class ActivityTracker:
    """
    Looks up :class:`ActivityRecord` objects.

    Parameters
    ----------
    aws_client : AWSClient
        Client used for the global IAM calls.
    """

    def __init__(self, aws_client: AWSClient) -> None:
        self.aws_client = aws_client

    def lookup(self, resource: Resource) -> ActivityRecord:
        """
        Return the activity record of ``resource``.

        Raises
        ------
        SourceUnavailable
            If the provider could not be asked.
        """
        if resource.kind is not ResourceKind.ROLE:
            logger.debug(f"Activity tracking not available for {resource.display_name}")
            return ActivityRecord.not_tracked()

        try:
            role = self.aws_client.get_iam_client().get_role(RoleName=resource.name)["Role"]
        except (ClientError, BotoCoreError) as e:
            raise SourceUnavailable(
                f"Failed to read last-used data of role {resource.name}: {e}",
                source=ACTIVITY_SOURCE,
            )

        last_used = role.get("RoleLastUsed", {})
        if not last_used.get("LastUsedDate"):
            logger.info(f"Role {resource.name} has no recorded activity")
            return ActivityRecord.never_recorded()

        record = ActivityRecord(
            last_used=last_used["LastUsedDate"],
            tracking=ActivityTracking.RECORDED,
            region=last_used.get("Region"),
        )
        logger.debug(
            f"Role {resource.name} last used {record.display}"
            f"{' in ' + record.region if record.region else ''}"
        )
        return record
