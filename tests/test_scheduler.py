# tests/test_scheduler.py
import asyncio

import pytest

from kalon_explorer.exceptions import ErrorKind, NetworkError, ServerError
from kalon_explorer.monitoring.metrics import MetricsCollector
from kalon_explorer.sync.cache import ResourceCache
from kalon_explorer.sync.resources import ResourceKey, ResourceKind, ResourceStatus
from kalon_explorer.sync.scheduler import PollingScheduler

BLOCKS = ResourceKey.of(ResourceKind.BLOCKS, page=1, limit=20)
STATS = ResourceKey.of(ResourceKind.NETWORK_STATS)


class ControlledFetcher:
    """Fetcher whose responses are released by the test."""

    def __init__(self):
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def __call__(self, key):
        future = asyncio.get_running_loop().create_future()
        self.calls.append((key, future))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            return await future
        finally:
            self.active -= 1

    def respond(self, index, value):
        self.calls[index][1].set_result(value)

    def fail(self, index, error):
        self.calls[index][1].set_exception(error)


class SlowFetcher:
    def __init__(self, delay):
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.max_active = 0

    async def __call__(self, key):
        self.calls += 1
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            return self.calls
        finally:
            self.active -= 1


async def settle(rounds=10):
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def fetcher():
    return ControlledFetcher()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def scheduler(fetcher, metrics):
    return PollingScheduler(
        fetcher,
        intervals={"blocks": 3600, "network_stats": 3600},
        metrics=metrics
    )


@pytest.mark.asyncio
async def test_subscribe_fetches_immediately_and_notifies(scheduler, fetcher):
    received = []
    scheduler.subscribe(BLOCKS, received.append)
    await settle()

    assert len(fetcher.calls) == 1
    assert fetcher.calls[0][0] == BLOCKS
    assert scheduler.state(BLOCKS).status == ResourceStatus.LOADING

    fetcher.respond(0, "page-1")
    await settle()

    assert len(received) == 1
    assert received[0].status == ResourceStatus.READY
    assert received[0].value == "page-1"
    assert received[0].last_success_at is not None
    await scheduler.close()


@pytest.mark.asyncio
async def test_subscriptions_are_reference_counted(scheduler, fetcher):
    first = scheduler.subscribe(BLOCKS, lambda state: None)
    second = scheduler.subscribe(ResourceKey.of(ResourceKind.BLOCKS, limit=20, page=1), lambda state: None)
    await settle()

    assert len(fetcher.calls) == 1
    assert scheduler.subscriber_count(BLOCKS) == 2

    first.unsubscribe()
    assert scheduler.is_scheduled(BLOCKS)

    second.unsubscribe()
    assert not scheduler.is_scheduled(BLOCKS)
    assert BLOCKS not in scheduler.cache
    await scheduler.close()


@pytest.mark.asyncio
async def test_late_subscriber_receives_current_state(scheduler, fetcher):
    scheduler.subscribe(BLOCKS, lambda state: None)
    await settle()
    fetcher.respond(0, "page-1")
    await settle()

    received = []
    scheduler.subscribe(BLOCKS, received.append)

    assert [state.value for state in received] == ["page-1"]
    assert len(fetcher.calls) == 1
    await scheduler.close()


@pytest.mark.asyncio
async def test_tick_is_skipped_while_fetch_in_flight(fetcher, metrics):
    scheduler = PollingScheduler(fetcher, intervals={"blocks": 0.01}, metrics=metrics)
    scheduler.subscribe(BLOCKS, lambda state: None)

    await asyncio.sleep(0.1)

    assert len(fetcher.calls) == 1
    assert fetcher.max_active == 1
    assert scheduler.in_flight(BLOCKS) == 1
    assert metrics.sample("explorer_skipped_ticks_total", kind="blocks") > 0
    await scheduler.close()


@pytest.mark.asyncio
async def test_polling_never_overlaps_fetches_for_a_key():
    slow = SlowFetcher(delay=0.03)
    scheduler = PollingScheduler(slow, intervals={"blocks": 0.01})
    scheduler.subscribe(BLOCKS, lambda state: None)

    await asyncio.sleep(0.2)

    assert slow.calls >= 2
    assert slow.max_active == 1
    await scheduler.close()


@pytest.mark.asyncio
async def test_keys_poll_independently():
    slow = SlowFetcher(delay=0.05)
    scheduler = PollingScheduler(slow, intervals={"blocks": 3600, "network_stats": 3600})
    scheduler.subscribe(BLOCKS, lambda state: None)
    scheduler.subscribe(STATS, lambda state: None)
    await settle()

    assert slow.max_active == 2
    assert scheduler.in_flight(BLOCKS) == 1
    assert scheduler.in_flight(STATS) == 1
    await scheduler.close()


@pytest.mark.asyncio
async def test_interval_table(scheduler):
    assert scheduler.interval_for(ResourceKind.BLOCKS) == 3600
    assert scheduler.interval_for(ResourceKind.TREASURY) == 30.0
    assert scheduler.interval_for(ResourceKind.TRANSACTIONS) == 10.0


@pytest.mark.asyncio
async def test_failure_after_ready_keeps_value_and_degrades(scheduler, fetcher):
    received = []
    scheduler.subscribe(BLOCKS, received.append)
    await settle()
    fetcher.respond(0, "good")
    await settle()
    ready_at = scheduler.state(BLOCKS).last_success_at

    task = scheduler.refresh(BLOCKS)
    await settle()
    fetcher.fail(1, NetworkError("backend down"))
    await task

    state = scheduler.state(BLOCKS)
    assert state.status == ResourceStatus.DEGRADED
    assert state.value == "good"
    assert state.last_success_at == ready_at
    assert state.last_error == ErrorKind.NETWORK
    assert received[-1].degraded
    assert received[-1].value == "good"
    await scheduler.close()


@pytest.mark.asyncio
async def test_failure_without_prior_value(scheduler, fetcher):
    received = []
    scheduler.subscribe(BLOCKS, received.append)
    await settle()
    fetcher.fail(0, ServerError(503))
    await settle()

    state = scheduler.state(BLOCKS)
    assert state.status == ResourceStatus.DEGRADED
    assert state.value is None
    assert not state.has_value
    assert state.last_error == ErrorKind.SERVER
    assert state.value_or("placeholder") == "placeholder"
    assert received[-1].degraded
    await scheduler.close()


@pytest.mark.asyncio
async def test_unexpected_fetch_error_degrades_instead_of_hanging(scheduler, fetcher):
    received = []
    scheduler.subscribe(BLOCKS, received.append)
    await settle()
    fetcher.fail(0, RuntimeError("codec exploded"))
    await settle()

    state = scheduler.state(BLOCKS)
    assert state.status == ResourceStatus.DEGRADED
    assert state.last_error == ErrorKind.PROTOCOL
    assert received[-1].degraded
    assert scheduler.in_flight(BLOCKS) == 0
    await scheduler.close()

@pytest.mark.asyncio
async def test_success_after_degraded_recovers(scheduler, fetcher):
    scheduler.subscribe(BLOCKS, lambda state: None)
    await settle()
    fetcher.fail(0, NetworkError("down"))
    await settle()

    task = scheduler.refresh(BLOCKS)
    await settle()
    fetcher.respond(1, "back")
    await task

    state = scheduler.state(BLOCKS)
    assert state.status == ResourceStatus.READY
    assert state.last_error is None
    assert state.value == "back"
    await scheduler.close()


@pytest.mark.asyncio
async def test_refresh_is_skipped_while_in_flight(scheduler, fetcher):
    scheduler.subscribe(BLOCKS, lambda state: None)
    await settle()

    assert scheduler.refresh(BLOCKS) is None
    assert len(fetcher.calls) == 1
    await scheduler.close()


@pytest.mark.asyncio
async def test_out_of_order_response_is_discarded(scheduler, fetcher, metrics):
    received = []
    scheduler.subscribe(BLOCKS, received.append)
    await settle()

    second = scheduler.refresh(BLOCKS, force=True)
    await settle()
    assert len(fetcher.calls) == 2

    fetcher.respond(1, "second")
    await second
    fetcher.respond(0, "first")
    await settle()

    assert scheduler.state(BLOCKS).value == "second"
    assert [state.value for state in received] == ["second"]
    assert metrics.sample("explorer_stale_responses_total", kind="blocks") == 1
    await scheduler.close()


@pytest.mark.asyncio
async def test_unsubscribe_mid_flight_discards_late_response(scheduler, fetcher):
    received = []
    subscription = scheduler.subscribe(BLOCKS, received.append)
    await settle()

    subscription.unsubscribe()
    fetcher.respond(0, "late")
    await settle()

    assert received == []
    assert BLOCKS not in scheduler.cache
    assert scheduler.in_flight(BLOCKS) == 0
    assert not scheduler.is_scheduled(BLOCKS)
    await scheduler.close()


@pytest.mark.asyncio
async def test_unsubscribe_stops_future_polling():
    slow = SlowFetcher(delay=0)
    scheduler = PollingScheduler(slow, intervals={"blocks": 0.01})
    subscription = scheduler.subscribe(BLOCKS, lambda state: None)
    await asyncio.sleep(0.05)

    subscription.unsubscribe()
    calls = slow.calls
    await asyncio.sleep(0.05)

    assert slow.calls == calls
    await scheduler.close()


@pytest.mark.asyncio
async def test_resubscribe_adopts_outstanding_request(scheduler, fetcher):
    scheduler.subscribe(BLOCKS, lambda state: None).unsubscribe()
    await settle()

    received = []
    scheduler.subscribe(BLOCKS, received.append)
    await settle()
    assert len(fetcher.calls) == 1

    fetcher.respond(0, "page-1")
    await settle()
    assert [state.value for state in received] == ["page-1"]
    await scheduler.close()


@pytest.mark.asyncio
async def test_pause_and_resume():
    slow = SlowFetcher(delay=0)
    scheduler = PollingScheduler(slow, intervals={"blocks": 0.01})
    received = []
    subscription = scheduler.subscribe(BLOCKS, received.append)
    await asyncio.sleep(0.05)

    subscription.pause()
    assert not scheduler.is_scheduled(BLOCKS)
    calls, notified = slow.calls, len(received)
    await asyncio.sleep(0.05)
    assert slow.calls == calls
    assert len(received) == notified

    subscription.resume()
    assert scheduler.is_scheduled(BLOCKS)
    await asyncio.sleep(0.05)
    assert slow.calls > calls
    assert len(received) > notified
    await scheduler.close()


@pytest.mark.asyncio
async def test_paused_subscriber_is_not_notified_while_others_are(scheduler, fetcher):
    paused, active = [], []
    first = scheduler.subscribe(BLOCKS, paused.append)
    scheduler.subscribe(BLOCKS, active.append)
    first.pause()
    await settle()

    assert scheduler.is_scheduled(BLOCKS)
    fetcher.respond(0, "page-1")
    await settle()

    assert paused == []
    assert [state.value for state in active] == ["page-1"]

    first.resume()
    assert [state.value for state in paused] == ["page-1"]
    await scheduler.close()


@pytest.mark.asyncio
async def test_failing_callback_does_not_block_others(scheduler, fetcher):
    def broken(state):
        raise RuntimeError("render failed")

    received = []
    scheduler.subscribe(BLOCKS, broken)
    scheduler.subscribe(BLOCKS, received.append)
    await settle()
    fetcher.respond(0, "page-1")
    await settle()

    assert [state.value for state in received] == ["page-1"]
    await scheduler.close()


@pytest.mark.asyncio
async def test_invalidate_drops_value_and_refetches(scheduler, fetcher):
    received = []
    scheduler.subscribe(BLOCKS, received.append)
    await settle()
    fetcher.respond(0, "old")
    await settle()

    scheduler.invalidate(BLOCKS)
    assert received[-1].value is None
    assert received[-1].status == ResourceStatus.LOADING
    await settle()

    fetcher.respond(1, "new")
    await settle()
    assert received[-1].value == "new"
    await scheduler.close()


@pytest.mark.asyncio
async def test_close_cancels_everything(scheduler, fetcher, metrics):
    scheduler.subscribe(BLOCKS, lambda state: None)
    scheduler.subscribe(STATS, lambda state: None)
    await settle()

    await scheduler.close()

    assert scheduler.keys == []
    assert len(scheduler.cache) == 0
    assert fetcher.calls[0][1].cancelled()
    assert metrics.sample("explorer_subscriptions") == 0


class TestResourceCache:
    @pytest.fixture
    def cache(self):
        return ResourceCache(clock=lambda: 1000.0)

    def test_unknown_key_is_idle(self, cache):
        state = cache.get(BLOCKS)
        assert state.status == ResourceStatus.IDLE
        assert state.value is None

    def test_store_and_degrade(self, cache):
        cache.store(BLOCKS, "value")
        state = cache.mark_degraded(BLOCKS, ErrorKind.TIMEOUT)

        assert state.status == ResourceStatus.DEGRADED
        assert state.value == "value"
        assert state.last_success_at == 1000.0
        assert state.last_error == ErrorKind.TIMEOUT
        assert cache.degraded_count() == 1

    def test_snapshots_are_copies(self, cache):
        cache.store(BLOCKS, "value")
        snapshot = cache.get(BLOCKS)
        snapshot.value = "mutated"
        assert cache.get(BLOCKS).value == "value"

    def test_mark_loading_only_from_idle(self, cache):
        assert cache.mark_loading(BLOCKS).status == ResourceStatus.LOADING
        cache.store(BLOCKS, "value")
        assert cache.mark_loading(BLOCKS).status == ResourceStatus.READY

    def test_invalidate_and_evict(self, cache):
        cache.store(BLOCKS, "value")
        cache.invalidate(BLOCKS)
        assert not cache.get(BLOCKS).has_value

        cache.evict(BLOCKS)
        assert BLOCKS not in cache


class TestResourceKey:
    def test_equality_uses_canonical_params(self):
        assert ResourceKey.of(ResourceKind.BLOCKS, {"page": 1, "limit": 20}) == \
            ResourceKey.of(ResourceKind.BLOCKS, limit="20", page="1")

    def test_none_params_are_dropped(self):
        key = ResourceKey.of(ResourceKind.BLOCKS, page=1, search=None)
        assert key.params == (("page", "1"),)

    def test_kind_distinguishes_keys(self):
        assert ResourceKey.of(ResourceKind.BLOCKS) != ResourceKey.of(ResourceKind.TRANSACTIONS)

    def test_str(self):
        assert str(ResourceKey.of(ResourceKind.BLOCKS, page=2, limit=5)) == "blocks?limit=5&page=2"
