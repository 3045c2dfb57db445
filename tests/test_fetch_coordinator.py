"""Tests for cache and fetch coordination."""

import asyncio

import pytest

from pyqt_entitylist.core import (
    CacheStore,
    EntitySource,
    FetchCoordinator,
    InvalidEntitySDKError,
)
from pyqt_entitylist.core.errors import NETWORK_MESSAGE, RATE_LIMIT_MESSAGE
from pyqt_entitylist.protocols import EntityEngineConfig

from conftest import FakeSDK, make_items, rate_limited


def _coordinator(sdk, config, clock, key="doctors", ttl_ms=300000):
    coordinator = FetchCoordinator(config, CacheStore(clock=clock))
    coordinator.register(EntitySource(key=key, sdk=sdk, ttl_ms=ttl_ms, entity_name_plural="Doctors"))
    return coordinator


def test_fresh_cache_issues_no_network_call(fast_config, clock):
    sdk = FakeSDK(make_items(3))
    coordinator = _coordinator(sdk, fast_config, clock)

    async def scenario():
        first = await coordinator.fetch("doctors")
        clock.advance(1000)
        second = await coordinator.fetch("doctors")
        return first, second

    first, second = asyncio.run(scenario())
    assert sdk.list_calls == 1
    assert second == first


def test_expired_or_forced_fetch_hits_network(fast_config, clock):
    sdk = FakeSDK(make_items(3))
    coordinator = _coordinator(sdk, fast_config, clock, ttl_ms=5000)

    async def scenario():
        await coordinator.fetch("doctors")
        clock.advance(5000)
        await coordinator.fetch("doctors")
        await coordinator.fetch("doctors", force_refresh=True)

    asyncio.run(scenario())
    assert sdk.list_calls == 3


def test_concurrent_fetches_are_deduplicated(fast_config, clock):
    sdk = FakeSDK(make_items(3), delay=0.01)
    coordinator = _coordinator(sdk, fast_config, clock)

    async def scenario():
        return await asyncio.gather(*(coordinator.fetch("doctors") for _ in range(5)))

    results = asyncio.run(scenario())
    assert sdk.list_calls == 1
    assert sdk.max_active == 1
    assert all(len(result) == 3 for result in results)


def test_forced_fetches_never_overlap(fast_config, clock):
    sdk = FakeSDK(make_items(3), delay=0.01)
    coordinator = _coordinator(sdk, fast_config, clock)

    async def scenario():
        await asyncio.gather(
            coordinator.fetch("doctors", force_refresh=True),
            coordinator.fetch("doctors", force_refresh=True),
        )

    asyncio.run(scenario())
    assert sdk.list_calls == 2
    assert sdk.max_active == 1


def test_rate_limit_three_times_then_success(fast_config, clock):
    sdk = FakeSDK(make_items(4))
    sdk.list_failures = [rate_limited(), rate_limited(), rate_limited()]
    coordinator = _coordinator(sdk, fast_config, clock)

    async def scenario():
        await coordinator.fetch("doctors")
        await coordinator.settle()

    asyncio.run(scenario())
    entry = coordinator.store.entry("doctors")
    assert sdk.list_calls == 4
    assert len(entry.data) == 4
    assert entry.error is None
    assert entry.retry_count == 0
    assert not entry.loading


def test_permanent_rate_limit_stops_after_four_attempts(fast_config, clock):
    sdk = FakeSDK()
    sdk.always_fail = rate_limited()
    coordinator = _coordinator(sdk, fast_config, clock)

    async def scenario():
        await coordinator.fetch("doctors")
        await coordinator.settle()
        await asyncio.sleep(0.02)

    asyncio.run(scenario())
    entry = coordinator.store.entry("doctors")
    assert sdk.list_calls == 4
    assert not entry.loading
    assert entry.error == RATE_LIMIT_MESSAGE
    assert entry.error_transient is False
    assert not coordinator.retry_pending("doctors")


def test_network_failure_is_retried(fast_config, clock):
    fast_config.retry_base_delay_ms = 20
    fast_config.retry_max_delay_ms = 200
    sdk = FakeSDK(make_items(2))
    sdk.list_failures = [ConnectionError("connection reset")]
    coordinator = _coordinator(sdk, fast_config, clock)

    async def scenario():
        await coordinator.fetch("doctors")
        assert coordinator.store.entry("doctors").error == NETWORK_MESSAGE
        await coordinator.settle()

    asyncio.run(scenario())
    assert sdk.list_calls == 2
    assert coordinator.store.entry("doctors").error is None


def test_fatal_error_is_not_retried(fast_config, clock):
    sdk = FakeSDK()
    sdk.always_fail = ValueError("Invalid query")
    coordinator = _coordinator(sdk, fast_config, clock)

    async def scenario():
        await coordinator.fetch("doctors")
        await coordinator.settle()

    asyncio.run(scenario())
    entry = coordinator.store.entry("doctors")
    assert sdk.list_calls == 1
    assert entry.error == "Invalid query"
    assert not coordinator.retry_pending("doctors")


def test_failed_fetch_keeps_last_good_data(fast_config, clock):
    sdk = FakeSDK(make_items(3))
    coordinator = _coordinator(sdk, fast_config, clock)

    async def scenario():
        await coordinator.fetch("doctors")
        sdk.always_fail = ValueError("boom")
        return await coordinator.fetch("doctors", force_refresh=True)

    data = asyncio.run(scenario())
    entry = coordinator.store.entry("doctors")
    assert len(data) == 3
    assert len(entry.data) == 3
    assert entry.error == "boom"


def test_caller_fetch_resets_retry_budget(fast_config, clock):
    fast_config.retry_base_delay_ms = 50
    fast_config.retry_max_delay_ms = 200
    sdk = FakeSDK(make_items(1))
    sdk.list_failures = [rate_limited(), rate_limited()]
    coordinator = _coordinator(sdk, fast_config, clock)

    async def scenario():
        await coordinator.fetch("doctors")
        assert coordinator.store.entry("doctors").retry_count == 1
        await coordinator.fetch("doctors", force_refresh=True)
        assert coordinator.store.entry("doctors").retry_count == 1
        await coordinator.settle()

    asyncio.run(scenario())
    assert coordinator.store.entry("doctors").error is None


def test_close_cancels_scheduled_retries(fast_config, clock):
    fast_config.retry_base_delay_ms = 50
    fast_config.retry_max_delay_ms = 200
    sdk = FakeSDK()
    sdk.always_fail = rate_limited()
    coordinator = _coordinator(sdk, fast_config, clock)

    async def scenario():
        await coordinator.fetch("doctors")
        assert coordinator.retry_pending("doctors")
        coordinator.close()
        assert not coordinator.retry_pending("doctors")
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert sdk.list_calls == 1


def test_sort_hint_passed_to_list(fast_config, clock):
    sdk = FakeSDK(make_items(1))
    coordinator = FetchCoordinator(fast_config, CacheStore(clock=clock))
    coordinator.register(EntitySource("doctors", sdk, 1000, sort_hint=lambda: "-updated_date"))

    asyncio.run(coordinator.fetch("doctors"))
    assert sdk.sort_hints == ["-updated_date"]


def test_fetch_sequential_returns_each_key(fast_config, clock):
    doctors = FakeSDK(make_items(2))
    tariffs = FakeSDK(make_items(5))
    coordinator = FetchCoordinator(fast_config, CacheStore(clock=clock))
    coordinator.register(EntitySource("doctors", doctors, 1000))
    coordinator.register(EntitySource("tariffs", tariffs, 1000))

    results = asyncio.run(coordinator.fetch_sequential(["doctors", "tariffs"]))
    assert {key: len(value) for key, value in results.items()} == {"doctors": 2, "tariffs": 5}
    assert coordinator.network_calls == {"doctors": 1, "tariffs": 1}


def test_register_rejects_sdk_without_list(fast_config):
    coordinator = FetchCoordinator(fast_config)
    with pytest.raises(InvalidEntitySDKError):
        coordinator.register(EntitySource("broken", object(), 1000))


def test_listeners_see_loading_then_result(fast_config, clock):
    sdk = FakeSDK(make_items(2))
    coordinator = _coordinator(sdk, fast_config, clock)
    states = []
    coordinator.add_listener(lambda key, entry: states.append((key, entry.loading)))

    asyncio.run(coordinator.fetch("doctors"))
    assert states == [("doctors", True), ("doctors", False)]


def test_cooldown_follows_every_network_call_only(clock):
    config = EntityEngineConfig(request_cooldown_ms=250, retry_base_delay_ms=1, retry_max_delay_ms=4)
    sleeps = []

    async def record_sleep(seconds):
        sleeps.append(seconds)
        await asyncio.sleep(0)

    sdk = FakeSDK(make_items(3), delay=0.01)
    sdk.list_failures = [rate_limited()]
    coordinator = FetchCoordinator(config, CacheStore(clock=clock), sleep=record_sleep)
    coordinator.register(EntitySource(key="doctors", sdk=sdk, ttl_ms=300000, entity_name_plural="Doctors"))

    async def scenario():
        await coordinator.fetch("doctors")
        await coordinator.settle()
        assert sleeps == [0.25, 0.25]         # failed call and its retry

        await coordinator.fetch("doctors")    # cache hit
        assert sleeps == [0.25, 0.25]

        coordinator.store.invalidate("doctors")
        await asyncio.gather(*(coordinator.fetch("doctors") for _ in range(3)))

    asyncio.run(scenario())
    assert sdk.list_calls == 3
    assert sleeps == [0.25, 0.25, 0.25]
