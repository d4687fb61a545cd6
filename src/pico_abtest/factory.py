from typing import Any, Mapping, Optional, Sequence

from pico_ioc import factory, provides

from .config import CacheSettings
from .interfaces import ExperimentRepository


class NoOpExperimentRepository(ExperimentRepository):
    async def get_mee_group_id(self, tenant: str) -> Optional[str]: return None
    async def get_experiments_by_tenant(self, tenant: str) -> Sequence[Mapping[str, Any]]: return []
    async def get_variants_by_experiment_ids(self, experiment_ids: Sequence[Any]) -> Sequence[Mapping[str, Any]]: return []
    async def list_all_tenants(self) -> Sequence[str]: return []


@factory
class ABTestInfrastructureFactory:
    @provides(CacheSettings, scope="singleton")
    def provide_settings(self) -> CacheSettings:
        return CacheSettings.from_env()

    @provides(ExperimentRepository, scope="singleton")
    def provide_repository(self) -> ExperimentRepository:
        return NoOpExperimentRepository()
