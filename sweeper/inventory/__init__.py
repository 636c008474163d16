"""
Inventory Collectors
====================

Lists deletion candidates of each resource kind.

Available Collectors
--------------------
RoleCollector
    IAM roles, minus service-linked and Identity Center roles.
PolicyCollector
    Customer-managed IAM policies.
SecurityGroupCollector
    EC2 security groups, minus VPC default groups.

Example
-------
>>> from sweeper.core import RegionManager
>>> from sweeper.core.models import ResourceKind
>>> from sweeper.inventory import list_candidates
>>>
>>> manager = RegionManager()
>>> roles = list_candidates(ResourceKind.ROLE, manager, exclude_names=["ci-deployer"])
"""

from typing import Dict, Iterable, List, Optional, Sequence, Type

from sweeper.core.models import Resource, ResourceKind
from sweeper.core.region_manager import RegionManager
from sweeper.inventory.base_collector import BaseCollector
from sweeper.inventory.iam_collectors import PolicyCollector, RoleCollector
from sweeper.inventory.security_group_collector import SecurityGroupCollector

COLLECTORS: Dict[ResourceKind, Type[BaseCollector]] = {
    ResourceKind.ROLE: RoleCollector,
    ResourceKind.POLICY: PolicyCollector,
    ResourceKind.SECURITY_GROUP: SecurityGroupCollector,
}


def get_collector(kind: ResourceKind, region_manager: RegionManager) -> BaseCollector:
    """Instantiate the collector for ``kind``."""
    return COLLECTORS[kind](region_manager)


def list_candidates(
    kind: ResourceKind,
    region_manager: RegionManager,
    regions: Optional[Sequence[str]] = None,
    exclude_names: Iterable[str] = (),
) -> List[Resource]:
    """List the deletion candidates of ``kind`` in ``regions``."""
    collector = get_collector(kind, region_manager)
    return collector.list_candidates(regions=regions, exclude_names=exclude_names)


__all__ = [
    "BaseCollector",
    "COLLECTORS",
    "PolicyCollector",
    "RoleCollector",
    "SecurityGroupCollector",
    "get_collector",
    "list_candidates",
]
