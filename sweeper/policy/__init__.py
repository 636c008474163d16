"""Staleness policy."""

from sweeper.policy.staleness import DEFAULT_DAYS_UNUSED, classify, cutoff_for

__all__ = ["DEFAULT_DAYS_UNUSED", "classify", "cutoff_for"]
