"""
Staleness Policy
================

Pure classification of a resource from its liveness verdict and last-used
timestamp. No I/O.

Rules
-----
1. ``ACTIVE`` if any usage source found a reference.
2. ``RECENT`` if the resource was last used strictly after the cutoff.
3. ``UNUSED`` otherwise, including when there is no activity record.

Example
-------
>>> from sweeper.policy import classify, cutoff_for
>>>
>>> cutoff = cutoff_for(days=90)
>>> classify(verdict, activity, cutoff)
<Classification.UNUSED: 'unused'>
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from sweeper.core.models import ActivityRecord, Classification, LivenessVerdict

DEFAULT_DAYS_UNUSED = 90


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC, as botocore reports them.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def cutoff_for(days: int = DEFAULT_DAYS_UNUSED, now: Optional[datetime] = None) -> datetime:
    """
    Compute the staleness cutoff ``now - days``.

    Parameters
    ----------
    days : int, default=90
        Age threshold in days. Must not be negative.
    now : datetime, optional
        Reference time (defaults to the current UTC time).

    Returns
    -------
    datetime
        Timezone-aware cutoff in UTC.
    """
    if days < 0:
        raise ValueError(f"days must not be negative, got {days}")
    reference = _as_utc(now) if now else datetime.now(timezone.utc)
    return reference - timedelta(days=days)


def classify(
    verdict: LivenessVerdict,
    activity: Optional[ActivityRecord],
    cutoff: datetime,
) -> Classification:
    """
    Classify a resource.

    Parameters
    ----------
    verdict : LivenessVerdict
        Result of the liveness oracle.
    activity : ActivityRecord or None
        Provider last-used data; None is treated like an empty record.
    cutoff : datetime
        Staleness cutoff; activity must be strictly newer to count.

    Returns
    -------
    Classification
    """
    if verdict.in_use:
        return Classification.ACTIVE
    if (
        activity is not None
        and activity.last_used is not None
        and _as_utc(activity.last_used) > _as_utc(cutoff)
    ):
        return Classification.RECENT
    return Classification.UNUSED
