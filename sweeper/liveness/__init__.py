"""
Liveness Detection
==================

Multi-source usage checks and last-used lookups.

Classes
-------
LivenessOracle
    Aggregates usage signals into a verdict.
UsageSource
    One registered usage source.
UsageCache
    Run-scoped cache of inventory-wide listings.
ActivityTracker
    Provider last-used lookups.
"""

from sweeper.liveness.activity import ActivityTracker
from sweeper.liveness.cache import UsageCache
from sweeper.liveness.oracle import LivenessOracle
from sweeper.liveness.sources import (
    DEFAULT_SOURCES,
    SourceContext,
    UsageSource,
    register_source,
    sources_for,
)

__all__ = [
    "ActivityTracker",
    "DEFAULT_SOURCES",
    "LivenessOracle",
    "SourceContext",
    "UsageCache",
    "UsageSource",
    "register_source",
    "sources_for",
]
