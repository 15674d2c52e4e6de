# File: src/kalon_explorer/sync/cache.py
import time
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from .resources import ResourceKey, ResourceState, ResourceStatus
from ..exceptions import ErrorKind


class ResourceCache:
    """Last known state per resource key.

    The cache is the only writer of ResourceState. A failed fetch never
    clobbers a value that was fetched successfully earlier.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._states: Dict[ResourceKey, ResourceState] = {}

    def __contains__(self, key: ResourceKey) -> bool:
        return key in self._states

    def __len__(self) -> int:
        return len(self._states)

    def ensure(self, key: ResourceKey) -> ResourceState:
        """Create an IDLE entry for the key if it has none."""
        if key not in self._states:
            self._states[key] = ResourceState()
        return self.get(key)

    def get(self, key: ResourceKey) -> ResourceState:
        """Snapshot of the key's state; IDLE if unknown."""
        state = self._states.get(key)
        return replace(state) if state is not None else ResourceState()

    def mark_loading(self, key: ResourceKey) -> ResourceState:
        state = self._states.setdefault(key, ResourceState())
        if state.status == ResourceStatus.IDLE:
            state.status = ResourceStatus.LOADING
        return replace(state)

    def store(self, key: ResourceKey, value: Any, at: Optional[float] = None) -> ResourceState:
        state = self._states.setdefault(key, ResourceState())
        state.status = ResourceStatus.READY
        state.value = value
        state.last_success_at = self.clock() if at is None else at
        state.last_error = None
        return replace(state)

    def mark_degraded(self, key: ResourceKey, error: ErrorKind) -> ResourceState:
        state = self._states.setdefault(key, ResourceState())
        state.status = ResourceStatus.DEGRADED
        state.last_error = error
        return replace(state)

    def invalidate(self, key: ResourceKey) -> None:
        """Forget the value so a stale page is never served for the key."""
        if key in self._states:
            self._states[key] = ResourceState(status=ResourceStatus.LOADING)

    def evict(self, key: ResourceKey) -> None:
        self._states.pop(key, None)

    def degraded_count(self) -> int:
        return sum(1 for state in self._states.values() if state.degraded)
