"""
Run-scoped cache for inventory-wide usage listings.

Listings such as "every Lambda function in eu-west-1" are needed by every
role evaluation. They are fetched once per run and shared read-only by the
evaluation workers. A failed load is remembered too, so every resource sees
the same gap instead of retrying a call that is already known to fail.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Hashable, Optional, Tuple

from sweeper.core.exceptions import SourceUnavailable

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, Optional[str]]


class UsageCache:
    """
    Thread-safe memo of ``(name, region) -> listing``.

    Concurrent requests for the same key wait for the first loader instead
    of issuing duplicate calls.
    """

    def __init__(self) -> None:
        self._values: Dict[CacheKey, Any] = {}
        self._failures: Dict[CacheKey, str] = {}
        self._key_locks: Dict[Hashable, threading.Lock] = {}
        self._lock = threading.Lock()

    def get_or_load(self, key: CacheKey, loader: Callable[[], Any]) -> Any:
        """
        Return the cached value for ``key``, loading it on first use.

        Raises
        ------
        SourceUnavailable
            If the loader failed, now or earlier in the run.
        """
        with self._lock:
            key_lock = self._key_locks.setdefault(key, threading.Lock())

        with key_lock:
            if key not in self._values and key not in self._failures:
                try:
                    self._values[key] = loader()
                except SourceUnavailable as e:
                    self._failures[key] = e.message
                except Exception as e:
                    self._failures[key] = str(e)
                    logger.debug(f"Loading {key[0]} failed: {e}")

        if key in self._failures:
            name, region = key
            raise SourceUnavailable(
                f"{name} unavailable: {self._failures[key]}",
                source=name,
                region=region,
            )
        return self._values[key]

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)
