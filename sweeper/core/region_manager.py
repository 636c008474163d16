"""
Region Manager Module
=====================

Resolves the region scope of a sweep and hands out per-region clients.

IAM roles and policies are global, but most of their usage sources
(instances, functions, task definitions, build projects) are regional, so a
single sweep may need clients for many regions. The manager creates each
regional client once and reuses it for the rest of the run.

Classes
-------
RegionManager
    Region discovery, scope resolution and client cache.

Example
-------
>>> from sweeper.core.region_manager import RegionManager
>>>
>>> manager = RegionManager(profile="production")
>>> regions = manager.resolve_scope("all")
>>> clients = [manager.get_client_for_region(r) for r in regions]

See Also
--------
AWSClient : Client created for each region.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence, TypeVar, Union

from sweeper.core.aws_client import AWSClient
from sweeper.core.exceptions import AWSClientError, RegionError

# Module logger
logger = logging.getLogger(__name__)

ALL_REGIONS = "all"

T = TypeVar("T")


class RegionManager:
    """
    Manages the regions a sweep covers.

    Parameters
    ----------
    profile : str, optional
        AWS profile name from ~/.aws/credentials.
    home_region : str, default="us-east-1"
        Region used for global calls (IAM, STS, region discovery).
    max_workers : int, default=10
        Maximum number of regions queried in parallel.
    max_retries : int, default=3
        Maximum retries for failed API calls.
    timeout : int, default=30
        Request timeout in seconds.
    base_client : AWSClient, optional
        Pre-built client for the home region.

    Examples
    --------
    >>> manager = RegionManager(profile="production")
    >>> manager.resolve_scope(["eu-west-1", "us-east-1"])
    ['eu-west-1', 'us-east-1']
    """

    def __init__(
        self,
        profile: Optional[str] = None,
        home_region: str = "us-east-1",
        max_workers: int = 10,
        max_retries: int = 3,
        timeout: int = 30,
        base_client: Optional[AWSClient] = None,
    ) -> None:
        """Initialize region manager with the specified configuration."""
        self.profile = profile
        self.max_workers = max_workers
        self.max_retries = max_retries
        self.timeout = timeout

        self._base_client = base_client or AWSClient(
            region=home_region,
            profile=profile,
            max_retries=max_retries,
            timeout=timeout,
        )
        self.home_region = self._base_client.region
        self._clients: Dict[str, AWSClient] = {self.home_region: self._base_client}
        self._lock = threading.Lock()

        logger.debug(f"Initialized RegionManager with max_workers={max_workers}")

    @property
    def base_client(self) -> AWSClient:
        """Client for the home region."""
        return self._base_client

    def get_all_regions(self) -> List[str]:
        """
        Fetch all regions enabled for the account.

        Returns
        -------
        list of str
            Sorted list of region names.

        Raises
        ------
        RegionError
            If unable to fetch the region list.
        """
        try:
            ec2 = self._base_client.get_ec2_client()
            response = ec2.describe_regions(AllRegions=False)
            regions = sorted(r["RegionName"] for r in response["Regions"])
            logger.info(f"Discovered {len(regions)} available AWS regions")
            return regions
        except AWSClientError:
            raise
        except Exception as e:
            logger.exception("Failed to fetch AWS regions")
            raise RegionError(f"Failed to fetch AWS regions: {e}")

    def resolve_scope(
        self,
        scope: Union[None, str, Sequence[str]],
    ) -> List[str]:
        """
        Turn a user-supplied scope into a concrete region list.

        Parameters
        ----------
        scope : None, str or list of str
            ``None`` for the home region, ``"all"`` for every enabled region,
            a comma-separated string or a list of region names.

        Returns
        -------
        list of str
            Region names, duplicates removed, order preserved.
        """
        if scope is None:
            return [self.home_region]
        if isinstance(scope, str):
            scope = [part.strip() for part in scope.split(",")]

        regions: List[str] = []
        for region in scope:
            if not region:
                continue
            if region.lower() == ALL_REGIONS:
                return self.get_all_regions()
            if region not in regions:
                regions.append(region)

        if not regions:
            raise RegionError("No valid regions specified")
        return regions

    def get_client_for_region(self, region: str) -> AWSClient:
        """
        Return the (cached) AWSClient for ``region``.

        Example
        -------
        >>> manager.get_client_for_region("eu-west-1").region
        'eu-west-1'
        """
        with self._lock:
            client = self._clients.get(region)
            if client is None:
                client = self._base_client.with_region(region)
                self._clients[region] = client
            return client

    def map_regions(
        self,
        func: Callable[[AWSClient], T],
        regions: Sequence[str],
    ) -> Dict[str, T]:
        """
        Call ``func`` with each region's client in parallel.

        The first exception raised by ``func`` propagates once all calls
        have finished.

        Returns
        -------
        dict
            Mapping of region name to ``func``'s return value, in the order
            of ``regions``.
        """
        if len(regions) == 1:
            region = regions[0]
            return {region: func(self.get_client_for_region(region))}

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                region: executor.submit(func, self.get_client_for_region(region))
                for region in regions
            }
        return {region: future.result() for region, future in futures.items()}

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"RegionManager(profile={self.profile!r}, "
            f"home_region='{self.home_region}', "
            f"max_workers={self.max_workers})"
        )
