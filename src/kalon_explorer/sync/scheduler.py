# File: src/kalon_explorer/sync/scheduler.py

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Set

from .cache import ResourceCache
from .resources import ResourceKey, ResourceKind, ResourceState
from ..exceptions import FetchError, ProtocolError
from ..monitoring.metrics import MetricsCollector
from ..utils.config import Config
from ..utils.logger import get_logger

logger = get_logger(__name__)

Fetcher = Callable[[ResourceKey], Awaitable[Any]]
Callback = Callable[[ResourceState], None]


class Subscription:
    """A view's handle on one polled resource."""

    def __init__(self, scheduler: "PollingScheduler", key: ResourceKey, callback: Callback):
        self.scheduler = scheduler
        self.key = key
        self.callback = callback
        self.paused = False
        self.active = True

    @property
    def state(self) -> ResourceState:
        return self.scheduler.state(self.key)

    def pause(self):
        self.scheduler.pause(self)

    def resume(self):
        self.scheduler.resume(self)

    def unsubscribe(self):
        self.scheduler.unsubscribe(self)


class _PollEntry:
    def __init__(self, key: ResourceKey, interval: float):
        self.key = key
        self.interval = interval
        self.subscribers: List[Subscription] = []
        self.timer: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return any(not sub.paused for sub in self.subscribers)


class PollingScheduler:
    """Reference-counted periodic refresh of resource keys.

    Each subscribed key gets its own timer. A tick never starts a fetch while
    another fetch for the same key is outstanding, and every fetch carries a
    per-key sequence number: a response is applied only if it is the latest
    one issued for a key that still has subscribers.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        cache: Optional[ResourceCache] = None,
        intervals: Optional[Mapping[str, float]] = None,
        default_interval: float = Config.DEFAULT_POLL_INTERVAL,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.fetcher = fetcher
        self.cache = cache or ResourceCache()
        self.intervals = dict(Config.POLL_INTERVALS)
        if intervals:
            self.intervals.update({ResourceKind(kind).value: float(v) for kind, v in intervals.items()})
        self.default_interval = default_interval
        self.metrics = metrics
        self.clock = clock

        self._entries: Dict[ResourceKey, _PollEntry] = {}
        self._in_flight: Dict[ResourceKey, Set[int]] = {}
        self._latest_seq: Dict[ResourceKey, int] = {}
        self._tasks: Set[asyncio.Task] = set()

    def interval_for(self, kind: ResourceKind) -> float:
        return self.intervals.get(ResourceKind(kind).value, self.default_interval)

    def state(self, key: ResourceKey) -> ResourceState:
        return self.cache.get(key)

    def is_scheduled(self, key: ResourceKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.timer is not None

    def in_flight(self, key: ResourceKey) -> int:
        return len(self._in_flight.get(key, ()))

    def subscriber_count(self, key: ResourceKey) -> int:
        entry = self._entries.get(key)
        return len(entry.subscribers) if entry else 0

    @property
    def keys(self) -> List[ResourceKey]:
        return list(self._entries)

    def subscribe(self, key: ResourceKey, callback: Callback, fresh: bool = False) -> Subscription:
        """Attach a callback to a key, starting its poll loop if needed.

        With fresh, a value already cached for the key is dropped and fetched
        again instead of being handed to the new subscriber.
        """
        subscription = Subscription(self, key, callback)
        entry = self._entries.get(key)
        if entry is None:
            entry = _PollEntry(key, self.interval_for(key.kind))
            self._entries[key] = entry
            self.cache.ensure(key)
            logger.debug("Scheduling %s every %ss", key, entry.interval)
        elif fresh:
            self.invalidate(key)

        entry.subscribers.append(subscription)
        if entry.timer is None:
            self._activate(entry)
        self._deliver_current(subscription)
        self._update_gauges()
        return subscription

    def unsubscribe(self, subscription: Subscription):
        """Detach a subscription; the last one tears the key down."""
        if not subscription.active:
            return
        subscription.active = False
        key = subscription.key
        entry = self._entries.get(key)
        if entry is None:
            return

        entry.subscribers.remove(subscription)
        if not entry.subscribers:
            self._deactivate(entry)
            del self._entries[key]
            self.cache.evict(key)
            if key not in self._in_flight:
                self._latest_seq.pop(key, None)
            logger.debug("Unscheduled %s", key)
        elif not entry.active:
            self._deactivate(entry)
        self._update_gauges()

    def pause(self, subscription: Subscription):
        """Stop notifying a subscription; the key stops polling once all are paused."""
        if not subscription.active:
            return
        subscription.paused = True
        entry = self._entries.get(subscription.key)
        if entry is not None and not entry.active:
            self._deactivate(entry)

    def resume(self, subscription: Subscription):
        if not subscription.active or not subscription.paused:
            return
        subscription.paused = False
        entry = self._entries.get(subscription.key)
        if entry is not None and entry.timer is None:
            self._activate(entry)
        self._deliver_current(subscription)

    def refresh(self, key: ResourceKey, force: bool = False) -> Optional[asyncio.Task]:
        """Fetch a subscribed key now.

        Without force, the refresh is skipped while a fetch is outstanding.
        With force, a new request supersedes the outstanding one, whose
        response will be dropped.
        """
        return self._start_fetch(key, force=force)

    def invalidate(self, key: ResourceKey) -> Optional[asyncio.Task]:
        """Drop the cached value of a key and fetch it again."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        self.cache.invalidate(key)
        self._notify(entry, self.cache.get(key))
        return self._start_fetch(key, force=True)

    async def close(self):
        """Cancel every timer and outstanding fetch."""
        for entry in self._entries.values():
            self._deactivate(entry)
            self.cache.evict(entry.key)
        self._entries.clear()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._in_flight.clear()
        self._latest_seq.clear()
        self._update_gauges()

    def _activate(self, entry: _PollEntry):
        self._start_fetch(entry.key)
        entry.timer = asyncio.create_task(self._poll(entry))

    def _deactivate(self, entry: _PollEntry):
        if entry.timer is not None:
            entry.timer.cancel()
            entry.timer = None

    async def _poll(self, entry: _PollEntry):
        while True:
            await asyncio.sleep(entry.interval)
            self._start_fetch(entry.key)

    def _start_fetch(self, key: ResourceKey, force: bool = False) -> Optional[asyncio.Task]:
        if key not in self._entries:
            return None

        outstanding = self._in_flight.setdefault(key, set())
        if outstanding and not force:
            logger.debug("Skipping refresh of %s: fetch already in flight", key)
            if self.metrics:
                self.metrics.record_skipped_tick(key.kind.value)
            return None

        seq = self._latest_seq.get(key, 0) + 1
        self._latest_seq[key] = seq
        outstanding.add(seq)
        self.cache.mark_loading(key)

        task = asyncio.create_task(self._fetch(key, seq))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _fetch(self, key: ResourceKey, seq: int):
        started = self.clock()
        error: Optional[FetchError] = None
        value = None
        try:
            value = await self.fetcher(key)
        except FetchError as e:
            error = e
        except Exception as e:
            logger.exception("Unexpected error fetching %s", key)
            error = ProtocolError(f"Unexpected {type(e).__name__}: {e}")
        finally:
            self._release(key, seq)

        if self.metrics:
            outcome = "failure" if error else "success"
            self.metrics.record_fetch(key.kind.value, outcome, self.clock() - started)

        if not self._is_current(key, seq):
            logger.debug("Discarding response #%d for %s", seq, key)
            if self.metrics:
                self.metrics.record_stale_response(key.kind.value)
            return

        entry = self._entries[key]
        if error is None:
            state = self.cache.store(key, value)
        else:
            logger.warning("Fetch of %s failed (%s): %s", key, error.kind.value, error)
            state = self.cache.mark_degraded(key, error.kind)
        self._notify(entry, state)
        self._update_gauges()

    def _release(self, key: ResourceKey, seq: int):
        outstanding = self._in_flight.get(key)
        if outstanding is not None:
            outstanding.discard(seq)
            if not outstanding:
                del self._in_flight[key]
        if key not in self._entries and key not in self._in_flight:
            self._latest_seq.pop(key, None)

    def _is_current(self, key: ResourceKey, seq: int) -> bool:
        return key in self._entries and self._latest_seq.get(key) == seq

    def _notify(self, entry: _PollEntry, state: ResourceState):
        for subscription in list(entry.subscribers):
            if subscription.paused:
                continue
            self._call(subscription, state)

    def _deliver_current(self, subscription: Subscription):
        if subscription.paused:
            return
        state = self.cache.get(subscription.key)
        if state.has_value or state.degraded:
            self._call(subscription, state)

    def _call(self, subscription: Subscription, state: ResourceState):
        try:
            subscription.callback(state)
        except Exception:
            logger.exception("Subscriber callback for %s failed", subscription.key)

    def _update_gauges(self):
        if self.metrics:
            subscriptions = sum(len(e.subscribers) for e in self._entries.values())
            self.metrics.update_resource_gauges(subscriptions, self.cache.degraded_count())
