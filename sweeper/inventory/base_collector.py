"""
Base Collector Module
=====================

Provides the abstract base class for inventory collectors.

A collector lists every resource of one kind in the sweep's scope and drops
those that must never be deleted: provider-owned resources (a hard-coded
safety filter that no option can turn off) and names on the caller's
exclusion list.

Classes
-------
BaseCollector
    Abstract base class for inventory collectors.

Example
-------
>>> class QueueCollector(BaseCollector):
...     kind = ResourceKind.ROLE
...     regional = False
...
...     def fetch_resources(self, aws_client):
...         return [...]
...
...     def is_provider_owned(self, resource):
...         return resource.path.startswith("/aws-service-role/")

Notes
-----
Listing is all-or-nothing. If any region's listing fails the collector
raises ProviderUnreachable, because a partial inventory could hide a
reference that keeps another resource alive.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from sweeper.core.aws_client import AWSClient
from sweeper.core.exceptions import AWSClientError, ProviderUnreachable
from sweeper.core.models import Resource, ResourceKind
from sweeper.core.region_manager import RegionManager

# Module logger
logger = logging.getLogger(__name__)


class BaseCollector(ABC):
    """
    Abstract base class for all inventory collectors.

    Parameters
    ----------
    region_manager : RegionManager
        Supplies per-region clients.

    Attributes
    ----------
    kind : ResourceKind
        Kind of resource this collector lists.
    regional : bool
        True if the kind lives in regions (security groups); False for
        global IAM resources, which are listed once from the home region.
    """

    kind: ResourceKind
    regional: bool = False

    def __init__(self, region_manager: RegionManager) -> None:
        self.region_manager = region_manager
        logger.debug(f"Initialized {self.__class__.__name__}")

    @abstractmethod
    def fetch_resources(self, aws_client: AWSClient) -> List[Resource]:
        """
        List every resource of this kind visible through ``aws_client``.

        Provider errors propagate; :meth:`list_candidates` turns them into
        ProviderUnreachable.
        """

    @abstractmethod
    def is_provider_owned(self, resource: Resource) -> bool:
        """Return True for resources the provider manages itself."""

    def list_all(self, regions: Optional[Sequence[str]] = None) -> List[Resource]:
        """
        List all resources of this kind, provider-owned ones included.

        Raises
        ------
        ProviderUnreachable
            If any listing call fails.
        """
        if self.regional:
            target_regions = list(regions or [self.region_manager.home_region])
        else:
            target_regions = [self.region_manager.home_region]

        try:
            by_region = self.region_manager.map_regions(
                self.fetch_resources, target_regions
            )
        except ProviderUnreachable:
            raise
        except (ClientError, BotoCoreError, AWSClientError) as e:
            logger.error(f"Failed to list {self.kind.label.lower()}s: {e}")
            raise ProviderUnreachable(
                f"Failed to list {self.kind.label.lower()}s: {e}",
                details={"kind": self.kind.value, "regions": target_regions},
            )

        resources: List[Resource] = []
        for region_resources in by_region.values():
            resources.extend(region_resources)
        return resources

    def list_candidates(
        self,
        regions: Optional[Sequence[str]] = None,
        exclude_names: Iterable[str] = (),
    ) -> List[Resource]:
        """
        List deletion candidates.

        Parameters
        ----------
        regions : list of str, optional
            Region scope (ignored for global kinds).
        exclude_names : iterable of str
            Names (or ids) the caller never wants touched.

        Returns
        -------
        list of Resource
            Resources that are neither provider-owned nor excluded.
        """
        excluded = set(exclude_names)
        all_resources = [
            replace(r, excluded=True) if r.name in excluded or r.id in excluded else r
            for r in self.list_all(regions)
        ]

        candidates: List[Resource] = []
        for resource in all_resources:
            if self.is_provider_owned(resource):
                logger.debug(f"Skipping provider-owned {resource.display_name}")
            elif resource.excluded:
                logger.info(f"Excluded by request: {resource.display_name}")
            else:
                candidates.append(resource)

        logger.info(
            f"Found {len(candidates)} candidate {self.kind.label.lower()}s "
            f"out of {len(all_resources)} total"
        )
        return candidates

    def __repr__(self) -> str:
        """Return string representation."""
        return f"{self.__class__.__name__}(kind='{self.kind.value}')"
