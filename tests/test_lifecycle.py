from unittest.mock import MagicMock

import pytest
from pico_ioc import Event, EventBus

from pico_abtest.cache import ExperimentCache
from pico_abtest.config import CacheSettings
from pico_abtest.lifecycle import ABTestSystem, LifecycleEvent, LifecyclePhase
from pico_abtest.transformer import ConfigTransformer


def make_system(repository, **settings_kwargs):
    settings = CacheSettings(**settings_kwargs)
    cache = ExperimentCache(ConfigTransformer(repository, settings), repository, settings)
    return ABTestSystem(cache, settings)


def bus_container():
    bus = MagicMock(spec=EventBus)
    container = MagicMock()
    container.has.return_value = True
    container.get.return_value = bus
    return bus, container


def published(bus):
    return [c.args[0] for c in bus.publish_sync.call_args_list]


class TestLifecyclePhase:
    def test_phases_are_strings(self):
        assert LifecyclePhase.INITIALIZING == "initializing"
        assert LifecyclePhase.WARMING == "warming"
        assert LifecyclePhase.STOPPED == "stopped"


class TestLifecycleEvent:
    def test_event_default_detail(self):
        event = LifecycleEvent(phase=LifecyclePhase.RUNNING)
        assert event.detail == ""

    def test_is_event_subclass(self):
        assert issubclass(LifecycleEvent, Event)


class TestABTestSystem:
    def test_initial_phase(self, repository):
        assert make_system(repository).phase == LifecyclePhase.INITIALIZING

    def test_ready_keeps_cache_cold(self, repository):
        bus, container = bus_container()
        system = make_system(repository, capacity=7)

        system._on_ready(container)

        assert system.phase == LifecyclePhase.READY
        assert "capacity=7" in published(bus)[0].detail
        assert len(system.cache) == 0
        assert repository.calls["list_all_tenants"] == 0

    @pytest.mark.asyncio
    async def test_start_preloads_every_tenant(self, repository):
        bus, container = bus_container()
        system = make_system(repository)
        system._on_ready(container)

        assert await system.start() == 2

        assert system.phase == LifecyclePhase.RUNNING
        assert sorted(system.cache.keys()) == ["news", "shop"]
        assert system.cache.stats().misses == 0
        events = published(bus)
        assert [e.phase for e in events] == [LifecyclePhase.READY, LifecyclePhase.WARMING, LifecyclePhase.RUNNING]
        assert events[-1].detail == "preloaded 2 tenants"

    @pytest.mark.asyncio
    async def test_start_skips_failed_tenants(self, repository):
        repository.fail_tenants["news"] = ConnectionError("db down")
        system = make_system(repository)

        assert await system.start() == 1
        assert system.cache.keys() == ["shop"]
        assert system.phase == LifecyclePhase.RUNNING

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, repository):
        system = make_system(repository)
        await system.start()
        await system.start()
        assert repository.calls["list_all_tenants"] == 1

    @pytest.mark.asyncio
    async def test_start_with_cache_disabled_preloads_nothing(self, repository):
        system = make_system(repository, cache_enabled=False)

        assert await system.start() == 0
        assert system.phase == LifecyclePhase.RUNNING
        assert repository.calls["list_all_tenants"] == 0

    @pytest.mark.asyncio
    async def test_shutdown_closes_cache(self, repository):
        bus, container = bus_container()
        system = make_system(repository)
        system._on_ready(container)
        await system.start()
        await system.cache.get("shop")

        system._on_shutdown()

        assert system.phase == LifecyclePhase.STOPPED
        assert system.cache.closed
        assert len(system.cache) == 0
        events = published(bus)
        assert [e.phase for e in events[-2:]] == [LifecyclePhase.SHUTTING_DOWN, LifecyclePhase.STOPPED]
        assert events[-1].detail == "hits=1, misses=0"

    def test_shutdown_without_event_bus_is_idempotent(self, repository):
        system = make_system(repository)
        container = MagicMock()
        container.has.return_value = False
        system._on_ready(container)

        system._on_shutdown()
        system._on_shutdown()

        assert system.phase == LifecyclePhase.STOPPED
        assert system.cache.closed
