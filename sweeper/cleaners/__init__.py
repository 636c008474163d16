"""
Resource Cleaners
=================

Plans and executes the teardown of unused resources.

Safety Features
---------------
1. **Dependency ordering**: attached policies, inline policies, instance
   profile memberships and old policy versions are removed before the
   resource itself.
2. **Dry-run mode**: plans are printed, never executed.
3. **Stop on first failure**: a failed step ends that resource's plan.
4. **Confirmation**: optional per-resource prompt with accept, skip or
   abort-remaining.
5. **Rate limiting**: fixed delay between successive resources.

Example
-------
>>> from sweeper.cleaners import DependencyResolver, DeletionExecutor
>>>
>>> plan = DependencyResolver(manager).plan(role)
>>> result = DeletionExecutor(manager).execute(plan, dry_run=True)
"""

from sweeper.cleaners.confirmation import (
    AutoConfirm,
    ConfirmationChoice,
    ConfirmationPort,
    RichConfirmationPort,
)
from sweeper.cleaners.dependency_resolver import DependencyResolver
from sweeper.cleaners.executor import DEFAULT_DELAY_SECONDS, DeletionExecutor

__all__ = [
    "AutoConfirm",
    "ConfirmationChoice",
    "ConfirmationPort",
    "DEFAULT_DELAY_SECONDS",
    "DeletionExecutor",
    "DependencyResolver",
    "RichConfirmationPort",
]
