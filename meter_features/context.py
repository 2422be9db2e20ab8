"""Shared, mutable state for one iteration run.

A RunContext is created by the caller before a run, handed by reference to
every feature function, and discarded afterwards. Besides plain key/value
settings (``feature_fns``, ``date_filter``, ``strict_merge``) it offers a
memoizing cache keyed by ``(category, key)`` so expensive values, such as
weather features for a geocode, are computed once and read by every later
unit in the run.
"""

import logging
import threading
from collections.abc import MutableMapping
from typing import Any, Callable, Hashable, Iterator, Optional

from meter_features.errors import ConfigurationError

logger = logging.getLogger(__name__)

CacheKey = tuple[str, Hashable]


class RunContext(MutableMapping):
    """Mutable mapping shared across all units of a run.

    The cache is not safe for concurrent writers; use
    :class:`LockingRunContext` when units run on a thread pool.

    Example:
        >>> ctx = RunContext(feature_fns=[consumption_features])
        >>> ctx.get_or_compute("weather", "94305", lambda: load_weather("94305"))
    """

    thread_safe = False

    def __init__(self, data: Optional[dict[str, Any]] = None, **settings: Any) -> None:
        self._data: dict[str, Any] = dict(data or {})
        self._data.update(settings)
        self._cache: dict[CacheKey, Any] = {}
        self.cache_hits = 0
        self.cache_misses = 0

    # MutableMapping interface

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(keys={sorted(self._data)}, "
            f"cached={len(self._cache)})"
        )

    # Cache interface

    def has_cached(self, category: str, key: Hashable) -> bool:
        return (category, key) in self._cache

    def get_cached(self, category: str, key: Hashable, default: Any = None) -> Any:
        return self._cache.get((category, key), default)

    def put_cached(self, category: str, key: Hashable, value: Any) -> None:
        self._cache[(category, key)] = value

    def cached_keys(self, category: str) -> list[Hashable]:
        """Keys cached under a category, in insertion order."""
        return [key for cat, key in self._cache if cat == category]

    def get_or_compute(
        self, category: str, key: Hashable, compute: Callable[[], Any]
    ) -> Any:
        """Return the cached value, computing and storing it if absent.

        If ``compute`` raises, nothing is stored and the error propagates
        to the caller.
        """
        cache_key = (category, key)
        if cache_key in self._cache:
            self._count(hit=True)
            return self._cache[cache_key]
        self._count(hit=False)
        value = compute()
        self._cache[cache_key] = value
        logger.debug("Cached %s for %r", category, key)
        return value

    def _count(self, hit: bool) -> None:
        if hit:
            self.cache_hits += 1
        else:
            self.cache_misses += 1

    # Run settings

    @property
    def feature_fns(self) -> list[Callable[..., Any]]:
        """Configured feature functions.

        Raises:
            ConfigurationError: If the list is missing, empty or holds
                non-callables
        """
        fns = self._data.get("feature_fns")
        if fns is None:
            raise ConfigurationError("RunContext has no 'feature_fns' configured")
        fns = list(fns)
        if not fns:
            raise ConfigurationError("'feature_fns' must not be empty")
        for fn in fns:
            if not callable(fn):
                raise ConfigurationError(
                    f"'feature_fns' entry {fn!r} is not callable"
                )
        return fns


class LockingRunContext(RunContext):
    """RunContext whose cache is safe for concurrent units.

    ``get_or_compute`` holds one reentrant lock per ``(category, key)``
    while computing, so two units in the same geocode never compute the
    same entry twice and readers never see a partial write. A compute
    function may itself read or write its own key. Computations for
    different keys proceed in parallel. Hit and miss counters share one
    lock.
    """

    thread_safe = True

    def __init__(self, data: Optional[dict[str, Any]] = None, **settings: Any) -> None:
        super().__init__(data, **settings)
        self._registry_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._key_locks: dict[CacheKey, threading.RLock] = {}

    def _lock_for(self, cache_key: CacheKey) -> threading.RLock:
        with self._registry_lock:
            lock = self._key_locks.get(cache_key)
            if lock is None:
                lock = self._key_locks[cache_key] = threading.RLock()
            return lock

    def _count(self, hit: bool) -> None:
        with self._stats_lock:
            super()._count(hit)

    def put_cached(self, category: str, key: Hashable, value: Any) -> None:
        with self._lock_for((category, key)):
            self._cache[(category, key)] = value

    def get_or_compute(
        self, category: str, key: Hashable, compute: Callable[[], Any]
    ) -> Any:
        cache_key = (category, key)
        with self._lock_for(cache_key):
            return super().get_or_compute(category, key, compute)
