"""Read API consumed by calling layers (HTTP handlers, workers, ...).

``ExperimentService`` answers experiment and bucketing queries for a
tenant.  With ``CacheSettings.cache_enabled`` it reads through
``ExperimentCache``; otherwise every call performs a direct load through
the same ``ConfigTransformer``.  Bucketing is identical on both paths.
"""

from datetime import datetime
from typing import Any, List, Optional

from pico_ioc import component

from .bucketing import assign_variant, mee_score
from .cache import CacheStats, ExperimentCache
from .config import CacheSettings, Experiment, ExperimentSet, Variant
from .logging import get_logger
from .transformer import ConfigTransformer

logger = get_logger(__name__)


@component(scope="singleton")
class ExperimentService:
    def __init__(self, cache: ExperimentCache, transformer: ConfigTransformer, settings: CacheSettings):
        self.cache = cache
        self.transformer = transformer
        self.settings = settings

    @property
    def cache_enabled(self) -> bool:
        return self.settings.cache_enabled

    async def get_experiment_set(self, tenant: str) -> ExperimentSet:
        """Return the full, unfiltered experiment set of a tenant.

        Raises:
            LoadFailure: If the tenant could not be loaded.
        """
        if self.cache_enabled:
            return await self.cache.get(tenant)
        return await self.transformer.fetch(tenant)

    async def get_active_experiments(self, tenant: str, now: Optional[datetime] = None) -> List[Experiment]:
        """Experiments that are ``ACTIVE`` and whose window contains *now*.

        Args:
            tenant: The tenant code.
            now: Reference time, defaults to the current UTC time. Naive
                values are taken as UTC.
        """
        experiment_set = await self.get_experiment_set(tenant)
        return list(experiment_set.active(now))

    async def get_variant_for_user(self, tenant: str, user_id: Any, experiment_id: Any) -> Optional[Variant]:
        """Bucket a user into one of an experiment's variants.

        Returns:
            The assigned variant, or ``None`` when the experiment is unknown
            or no variant range covers the user's score.
        """
        experiment_set = await self.get_experiment_set(tenant)
        experiment = experiment_set.find(experiment_id)
        if experiment is None:
            logger.debug("Tenant '%s' has no experiment %s", tenant, experiment_id)
            return None
        return assign_variant(user_id, experiment.id, experiment.variants)

    async def get_mee_group_id(self, tenant: str) -> Optional[str]:
        experiment_set = await self.get_experiment_set(tenant)
        return experiment_set.mee_group_id

    async def get_mee_score(self, tenant: str, user_id: Any) -> Optional[float]:
        mee_group_id = await self.get_mee_group_id(tenant)
        if mee_group_id is None:
            return None
        return mee_score(user_id, mee_group_id)

    def invalidate(self, tenant: str) -> None:
        if self.cache_enabled:
            self.cache.invalidate(tenant)

    def invalidate_all(self) -> None:
        if self.cache_enabled:
            self.cache.invalidate_all()

    async def reload(self) -> List[str]:
        if not self.cache_enabled:
            return []
        return await self.cache.reload()

    def stats(self) -> CacheStats:
        if self.cache_enabled:
            return self.cache.stats()
        return CacheStats(
            hits=0,
            misses=0,
            invalidations=0,
            current_size=0,
            capacity=self.settings.capacity,
            enabled=False,
        )
