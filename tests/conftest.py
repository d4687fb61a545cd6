import asyncio
import json
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

import pytest

from pico_abtest.cache import ExperimentCache
from pico_abtest.config import CacheSettings
from pico_abtest.service import ExperimentService
from pico_abtest.transformer import ConfigTransformer

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def experiment_row(
    experiment_id: Any,
    name: str = "Checkout button",
    kind: str = "RANDOM",
    status: str = "ACTIVE",
    attribute_filter: Any = '{"country": ["KR", "US"]}',
    start: Optional[datetime] = NOW - timedelta(days=30),
    end: Optional[datetime] = NOW + timedelta(days=30),
) -> Dict[str, Any]:
    """Build an experiment row using storage column names."""
    return {
        "ab_test_id": experiment_id,
        "ab_test_nm": name,
        "ab_test_type": kind,
        "ab_test_status": status,
        "ab_test_atrb_fltr": attribute_filter,
        "strt_dtm": start,
        "end_dtm": end,
    }


def variant_row(
    variant_id: Any,
    experiment_id: Any,
    key: str,
    start: float,
    end: float,
    payload: Any = None,
) -> Dict[str, Any]:
    return {
        "ab_test_vrt_id": variant_id,
        "ab_test_id": experiment_id,
        "vrt_key": key,
        "vrt_vl": payload if payload is not None else json.dumps({"color": key.lower()}),
        "vrt_rng_strt": start,
        "vrt_rng_end": end,
    }


class FakeRepository:
    """In-memory ``ExperimentRepository`` with call counting and fault injection."""

    def __init__(self):
        self.groups: Dict[str, str] = {}
        self.experiments: Dict[str, List[Dict[str, Any]]] = {}
        self.variants: List[Dict[str, Any]] = []
        self.calls: Counter = Counter()
        self.delay = 0.0
        self.fail_with: Optional[BaseException] = None
        self.fail_tenants: Dict[str, BaseException] = {}
        self.gate: Optional[asyncio.Event] = None

    def add_tenant(self, tenant: str, group_id: Optional[str] = None, experiments=(), variants=()):
        if group_id is not None:
            self.groups[tenant] = group_id
        self.experiments[tenant] = list(experiments)
        self.variants.extend(variants)

    @property
    def loads(self) -> int:
        return self.calls["get_experiments_by_tenant"]

    async def _pause(self, tenant: Optional[str] = None):
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        if tenant in self.fail_tenants:
            raise self.fail_tenants[tenant]

    async def get_mee_group_id(self, tenant: str) -> Optional[str]:
        self.calls["get_mee_group_id"] += 1
        await self._pause(tenant)
        return self.groups.get(tenant)

    async def get_experiments_by_tenant(self, tenant: str) -> Sequence[Dict[str, Any]]:
        self.calls["get_experiments_by_tenant"] += 1
        await self._pause(tenant)
        return [dict(r) for r in self.experiments.get(tenant, [])]

    async def get_variants_by_experiment_ids(self, experiment_ids: Sequence[Any]) -> Sequence[Dict[str, Any]]:
        self.calls["get_variants_by_experiment_ids"] += 1
        await self._pause()
        wanted = set(experiment_ids)
        return [dict(v) for v in self.variants if v["ab_test_id"] in wanted]

    async def list_all_tenants(self) -> Sequence[str]:
        self.calls["list_all_tenants"] += 1
        return sorted(set(self.groups) | set(self.experiments))


@pytest.fixture
def repository():
    """A repository holding two tenants with one 50/50 experiment each."""
    repo = FakeRepository()
    repo.add_tenant(
        "shop",
        group_id="mee_group_shop",
        experiments=[experiment_row(42, name="Checkout button")],
        variants=[variant_row(1, 42, "A", 0, 50), variant_row(2, 42, "B", 50, 100)],
    )
    repo.add_tenant(
        "news",
        group_id="mee_group_news",
        experiments=[
            experiment_row(7, name="Headline", kind="SEGMENT"),
            experiment_row(8, name="Old layout", status="COMPLETED"),
        ],
        variants=[
            variant_row(10, 7, "A", 0, 100 / 3),
            variant_row(11, 7, "B", 100 / 3, 200 / 3),
            variant_row(12, 7, "C", 200 / 3, 100),
            variant_row(13, 8, "A", 0, 100),
        ],
    )
    return repo


@pytest.fixture
def settings():
    return CacheSettings(cache_enabled=True, capacity=100)


@pytest.fixture
def transformer(repository, settings):
    return ConfigTransformer(repository, settings)


@pytest.fixture
def cache(transformer, repository, settings):
    c = ExperimentCache(transformer, repository, settings)
    yield c
    c.close()


@pytest.fixture
def service(cache, transformer, settings):
    return ExperimentService(cache, transformer, settings)
