"""
Liveness Oracle Module
======================

Decides whether a resource is still referenced by querying every usage
source registered for its kind.

Classes
-------
LivenessOracle
    Evaluates resources against the usage-source registry.

Example
-------
>>> from sweeper.core import RegionManager
>>> from sweeper.liveness import LivenessOracle
>>>
>>> oracle = LivenessOracle(RegionManager(), regions=["us-east-1", "eu-west-1"])
>>> verdict = oracle.evaluate(role)
>>> if verdict.in_use:
...     print("; ".join(verdict.reasons))
>>> if verdict.unchecked_sources:
...     print("Could not check:", ", ".join(verdict.unchecked_sources))

Isolation Rules
---------------
1. Every source (and every region of a regional source) is queried
   independently; one failure never stops the others.
2. A failed source is listed in ``unchecked_sources``. It contributes no
   signal, and in particular never a "not in use" one.
3. ``in_use`` is the OR of all matched signals.
4. Enabled regions outside the scope are never silently ignored for a
   global resource: each one is reported as unchecked.

Notes
-----
The oracle is safe to call from several threads at once. Inventory-wide
listings go through the shared :class:`UsageCache`, so each is fetched once
per run regardless of how many resources are evaluated.

See Also
--------
sweeper.liveness.sources : The source registry.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

from sweeper.core.models import LivenessVerdict, Resource, ResourceKind, UsageSignal
from sweeper.core.region_manager import RegionManager
from sweeper.liveness.cache import UsageCache
from sweeper.liveness.sources import SourceContext, UsageSource, sources_for

# Module logger
logger = logging.getLogger(__name__)


class LivenessOracle:
    """
    Aggregates usage signals into a liveness verdict.

    Parameters
    ----------
    region_manager : RegionManager
        Supplies per-region clients.
    regions : list of str, optional
        Regions in scope for regional sources when the resource itself is
        global (IAM). Defaults to the home region.
    unscanned_regions : list of str, optional
        Enabled regions left out of ``regions``. A global resource with
        regional sources lists each of them as ``regional sources (<region>)``
        in its unchecked sources.
    sources : dict, optional
        Mapping of ResourceKind to usage sources. Defaults to the registry.
    cache : UsageCache, optional
        Listing cache shared for the run. A new one is created if omitted.

    Examples
    --------
    Evaluating with a custom source set:

    >>> oracle = LivenessOracle(
    ...     manager,
    ...     sources={ResourceKind.ROLE: [UsageSource("compute-instance", check)]},
    ... )
    """

    def __init__(
        self,
        region_manager: RegionManager,
        regions: Optional[Sequence[str]] = None,
        sources: Optional[Dict[ResourceKind, List[UsageSource]]] = None,
        cache: Optional[UsageCache] = None,
        unscanned_regions: Sequence[str] = (),
    ) -> None:
        self.region_manager = region_manager
        self.regions = list(regions or [region_manager.home_region])
        self.unscanned_regions = [r for r in unscanned_regions if r not in self.regions]
        self._sources = sources
        self.cache = cache or UsageCache()

        logger.debug(f"Initialized LivenessOracle for regions {self.regions}")

    def sources_for(self, kind: ResourceKind) -> List[UsageSource]:
        """Usage sources queried for ``kind``."""
        if self._sources is not None:
            return list(self._sources.get(kind, []))
        return sources_for(kind)

    def _regions_for(self, source: UsageSource, resource: Resource) -> List[Optional[str]]:
        if not source.regional:
            return [None]
        if resource.region:
            return [resource.region]
        return list(self.regions)

    def _context(self, region: Optional[str]) -> SourceContext:
        home = self.region_manager.base_client
        client = self.region_manager.get_client_for_region(region) if region else home
        return SourceContext(
            client=client,
            region=region,
            cache=self.cache,
            home_client=home,
        )

    def evaluate(self, resource: Resource) -> LivenessVerdict:
        """
        Evaluate ``resource`` against every usage source for its kind.

        Parameters
        ----------
        resource : Resource
            The candidate to evaluate.

        Returns
        -------
        LivenessVerdict
            ``in_use`` with the matching details, plus any sources that
            could not be checked.
        """
        signals: List[UsageSignal] = []
        unchecked: List[str] = []
        sources = self.sources_for(resource.kind)

        for source in sources:
            for region in self._regions_for(source, resource):
                label = f"{source.name} ({region})" if region else source.name
                try:
                    found = source.check(resource, self._context(region))
                except Exception as e:
                    logger.warning(
                        f"Could not check {label} for {resource.display_name}: {e}"
                    )
                    unchecked.append(label)
                    continue
                signals.extend(signal for signal in found if signal.matched)

        if resource.region is None and any(source.regional for source in sources):
            unchecked.extend(f"regional sources ({r})" for r in self.unscanned_regions)

        verdict = LivenessVerdict.from_signals(signals, unchecked)

        if verdict.in_use:
            logger.debug(
                f"{resource.display_name} is in use: {'; '.join(verdict.reasons)}"
            )
        elif unchecked:
            logger.warning(
                f"No usage found for {resource.display_name}, but "
                f"{len(unchecked)} source(s) could not be checked: {', '.join(unchecked)}"
            )
        return verdict

    def __repr__(self) -> str:
        """Return string representation."""
        return f"LivenessOracle(regions={self.regions!r})"
