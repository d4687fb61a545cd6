"""Capacity-bounded, single-flight cache of per-tenant experiment sets.

``ExperimentCache`` keeps one ``ExperimentSet`` per tenant in least
recently used order.  A miss starts exactly one load task per tenant; every
caller that arrives while it runs awaits the same task, so the repository
sees one query burst no matter how many requests race on a cold key.

All bookkeeping happens on the event loop between ``await`` points, so the
pending-task map doubles as the per-key lock: checking for an entry,
checking for a pending load and registering a new one is a single atomic
step.  Nothing is held across a load, so ``invalidate()`` and ``stats()``
never wait for unrelated tenants.
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from pico_ioc import cleanup, component

from .config import CacheSettings, ExperimentSet
from .exceptions import CacheClosedError, LoadFailure, ReloadError
from .interfaces import ExperimentRepository
from .logging import get_logger
from .transformer import ConfigTransformer

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time counters of an ``ExperimentCache``.

    Attributes:
        hits: ``get`` calls answered without starting a load, including
            callers that joined a load already in flight.
        misses: Loads started by ``get`` (one per load, not per waiter).
        invalidations: ``invalidate`` / ``invalidate_all`` calls.
        current_size: Resident tenants.
        capacity: Maximum resident tenants.
        pending: Loads currently in flight.
        evictions: Entries dropped to make room.
        enabled: Whether caching is switched on.
    """

    hits: int
    misses: int
    invalidations: int
    current_size: int
    capacity: int
    pending: int = 0
    evictions: int = 0
    enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Counters keyed the way the stats endpoint reports them."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "invalidations": self.invalidations,
            "cacheSize": self.current_size,
            "cacheEnabled": self.enabled,
            "capacity": self.capacity,
            "pending": self.pending,
            "evictions": self.evictions,
        }


@component(scope="singleton")
class ExperimentCache:
    """Per-tenant ``ExperimentSet`` cache with LRU eviction.

    Example:
        >>> cache = container.get(ExperimentCache)
        >>> experiment_set = await cache.get("shop")
        >>> cache.invalidate("shop")
    """

    def __init__(self, transformer: ConfigTransformer, repository: ExperimentRepository, settings: CacheSettings):
        if settings.capacity < 1:
            raise ValueError(f"Cache capacity must be at least 1, got {settings.capacity}")
        self.transformer = transformer
        self.repository = repository
        self.settings = settings
        self.capacity = settings.capacity
        self._entries: "OrderedDict[str, ExperimentSet]" = OrderedDict()
        self._pending: Dict[str, "asyncio.Task[ExperimentSet]"] = {}
        self._hits = 0
        self._misses = 0
        self._invalidations = 0
        self._evictions = 0
        self._closed = False

    async def get(self, tenant: str) -> ExperimentSet:
        """Return the tenant's experiment set, loading it on a miss.

        Raises:
            LoadFailure: If the load failed; nothing is cached and the next
                call retries.
            CacheClosedError: If the cache has been closed.
        """
        self._ensure_open()

        entry = self._entries.get(tenant)
        if entry is not None:
            self._entries.move_to_end(tenant)
            self._hits += 1
            return entry

        task = self._pending.get(tenant)
        if task is None:
            self._misses += 1
            return await asyncio.shield(self._start_load(tenant))

        result = await asyncio.shield(task)
        self._hits += 1
        return result

    def invalidate(self, tenant: str) -> None:
        """Drop a tenant's entry. A load already in flight is not cancelled."""
        removed = self._entries.pop(tenant, None) is not None
        self._invalidations += 1
        logger.info("Invalidated tenant '%s' (resident=%s)", tenant, removed)

    def invalidate_all(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        self._invalidations += 1
        logger.info("Invalidated all %d cached tenants", count)

    async def reload(self) -> List[str]:
        """Reload every tenant known to the repository, one at a time.

        Entries are replaced only when their fresh load succeeds and stay
        readable meanwhile.

        Returns:
            Tenants reloaded successfully.

        Raises:
            ReloadError: After all tenants were tried, if any of them failed.
        """
        reloaded, failures = await self._refresh_all()
        if failures:
            raise ReloadError(failures)
        return reloaded

    async def initialize(self) -> int:
        """Preload every known tenant. Failed tenants are logged and skipped."""
        reloaded, failures = await self._refresh_all()
        for tenant, error in failures.items():
            logger.warning("Preload skipped tenant '%s': %s", tenant, error)
        logger.info("Experiment cache preloaded %d tenants", len(reloaded))
        return len(reloaded)

    def stats(self) -> CacheStats:
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            invalidations=self._invalidations,
            current_size=len(self._entries),
            capacity=self.capacity,
            pending=len(self._pending),
            evictions=self._evictions,
            enabled=True,
        )

    def contains(self, tenant: str) -> bool:
        return tenant in self._entries

    def keys(self) -> List[str]:
        """Resident tenants, least recently used first."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def closed(self) -> bool:
        return self._closed

    @cleanup
    def close(self) -> None:
        """Cancel in-flight loads and drop every entry."""
        if self._closed:
            return
        self._closed = True
        for task in list(self._pending.values()):
            task.cancel()
        self._pending.clear()
        self._entries.clear()
        logger.debug("Experiment cache closed")

    async def _refresh_all(self) -> Tuple[List[str], Dict[str, BaseException]]:
        self._ensure_open()
        tenants = list(await self.repository.list_all_tenants())
        logger.info("Refreshing %d tenants", len(tenants))

        reloaded: List[str] = []
        failures: Dict[str, BaseException] = {}
        for tenant in tenants:
            self._ensure_open()
            task = self._pending.get(tenant) or self._start_load(tenant)
            try:
                await asyncio.shield(task)
            except LoadFailure as e:
                failures[tenant] = e
            else:
                reloaded.append(tenant)
        return reloaded, failures

    def _start_load(self, tenant: str) -> "asyncio.Task[ExperimentSet]":
        task = asyncio.get_running_loop().create_task(self._load(tenant))
        task.add_done_callback(self._retrieve_result)
        self._pending[tenant] = task
        return task

    async def _load(self, tenant: str) -> ExperimentSet:
        try:
            result = await self.transformer.fetch(tenant)
        finally:
            if self._pending.get(tenant) is asyncio.current_task():
                del self._pending[tenant]

        if not self._closed:
            self._store(tenant, result)
        return result

    def _store(self, tenant: str, result: ExperimentSet) -> None:
        if tenant in self._entries:
            self._entries[tenant] = result
            self._entries.move_to_end(tenant)
            return

        while len(self._entries) >= self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            self._evictions += 1
            logger.info("Evicted tenant '%s' (capacity %d)", evicted, self.capacity)
        self._entries[tenant] = result

    def _ensure_open(self) -> None:
        if self._closed:
            raise CacheClosedError()

    @staticmethod
    def _retrieve_result(task: "asyncio.Task[Any]") -> None:
        # Marks the exception as retrieved when every waiter was cancelled.
        if not task.cancelled():
            task.exception()
