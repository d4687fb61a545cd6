"""Start-up warm-up and shutdown of the experiment cache.

``ABTestSystem`` preloads every known tenant before traffic is served and
closes the cache when the container shuts down.  Each step is published as
a ``LifecycleEvent`` on pico-ioc's ``EventBus`` so hosts can hold back
traffic until ``RUNNING``.
"""

from dataclasses import dataclass
from enum import Enum

from pico_ioc import Event, EventBus, PicoContainer, cleanup, component, configure

from .cache import ExperimentCache
from .config import CacheSettings
from .logging import get_logger

logger = get_logger(__name__)


class LifecyclePhase(str, Enum):
    """Phases of the experiment platform.

    Attributes:
        INITIALIZING: Container is being built.
        READY: Components are wired; the cache is still cold.
        WARMING: ``start()`` is preloading tenants.
        RUNNING: Serving experiment lookups.
        SHUTTING_DOWN: Cache teardown in progress.
        STOPPED: Cache closed.
    """

    INITIALIZING = "initializing"
    READY = "ready"
    WARMING = "warming"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


@dataclass
class LifecycleEvent(Event):
    """Event published on every lifecycle transition.

    Args:
        phase: The new ``LifecyclePhase``.
        detail: Optional human-readable detail string.
    """

    phase: LifecyclePhase
    detail: str = ""


@component(scope="singleton")
class ABTestSystem:
    """Drives the cache through warm-up and teardown.

    Example:
        >>> system = container.get(ABTestSystem)
        >>> await system.start()         # preloads every tenant
        >>> await container.ashutdown()  # closes the cache
    """

    def __init__(self, cache: ExperimentCache, settings: CacheSettings):
        self.cache = cache
        self.settings = settings
        self.preloaded = 0
        self._phase = LifecyclePhase.INITIALIZING
        self._event_bus: EventBus | None = None

    @property
    def phase(self) -> LifecyclePhase:
        return self._phase

    def _transition(self, phase: LifecyclePhase, detail: str = ""):
        logger.debug("Lifecycle %s -> %s %s", self._phase.value, phase.value, detail)
        self._phase = phase
        if self._event_bus:
            self._event_bus.publish_sync(LifecycleEvent(phase=phase, detail=detail))

    @configure
    def _on_ready(self, container: PicoContainer):
        if container.has(EventBus):
            self._event_bus = container.get(EventBus)
        if self.settings.cache_enabled:
            detail = f"cache enabled, capacity={self.settings.capacity}"
        else:
            detail = "cache disabled, direct loads"
        self._transition(LifecyclePhase.READY, detail)

    async def start(self) -> int:
        """Preload every tenant the repository knows and enter ``RUNNING``.

        Tenants that fail to load are skipped and fetched again on first
        use. With caching disabled nothing is preloaded.

        Returns:
            Number of tenants preloaded.
        """
        if self._phase == LifecyclePhase.RUNNING:
            return self.preloaded
        if not self.settings.cache_enabled:
            self._transition(LifecyclePhase.RUNNING, "cache disabled, nothing preloaded")
            return 0

        self._transition(LifecyclePhase.WARMING)
        self.preloaded = await self.cache.initialize()
        self._transition(LifecyclePhase.RUNNING, f"preloaded {self.preloaded} tenants")
        return self.preloaded

    @cleanup
    def _on_shutdown(self):
        if self._phase == LifecyclePhase.STOPPED:
            return
        self._transition(LifecyclePhase.SHUTTING_DOWN)
        stats = self.cache.stats()
        self.cache.close()
        self._transition(LifecyclePhase.STOPPED, f"hits={stats.hits}, misses={stats.misses}")
