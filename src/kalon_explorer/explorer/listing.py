# File: src/kalon_explorer/explorer/listing.py
from typing import Any, Callable, Dict, List, Mapping, Optional

from .pagination import PaginationWindow, build_request, clean_filters, derive_window
from ..sync.resources import ResourceKey, ResourceKind, ResourceState
from ..sync.scheduler import PollingScheduler, Subscription
from ..utils.config import Config
from ..utils.logger import get_logger

logger = get_logger(__name__)


class PaginatedListing:
    """Page, page size and filters of one listing view.

    Each view owns its own instance; nothing here is shared between views.
    The listing keeps exactly one subscription, for the key of the page it
    currently shows, and ignores states that belong to any other key.
    """

    def __init__(
        self,
        scheduler: PollingScheduler,
        kind: ResourceKind = ResourceKind.BLOCKS,
        page_size: int = Config.DEFAULT_PAGE_SIZE,
        filters: Optional[Mapping[str, Any]] = None,
        on_update: Optional[Callable[["PaginatedListing"], None]] = None,
        on_scroll_top: Optional[Callable[[], None]] = None,
        max_page_size: int = Config.MAX_PAGE_SIZE
    ):
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.scheduler = scheduler
        self.kind = ResourceKind(kind)
        self.max_page_size = max_page_size
        self.page_size = min(page_size, max_page_size)
        self.filters: Dict[str, Any] = clean_filters(filters)
        self.page = 1
        self.window: Optional[PaginationWindow] = None
        self.state = ResourceState()
        self.on_update = on_update
        self.on_scroll_top = on_scroll_top

        self._current_key: Optional[ResourceKey] = None
        self._subscription: Optional[Subscription] = None

    @property
    def key(self) -> ResourceKey:
        return ResourceKey.of(
            self.kind, build_request(self.page, self.page_size, self.filters, self.max_page_size)
        )

    @property
    def items(self) -> List[Any]:
        if not self.state.has_value:
            return []
        return list(self.state.value.items)

    @property
    def is_open(self) -> bool:
        return self._subscription is not None

    def open(self):
        if self._subscription is None:
            self._subscribe()

    def close(self):
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
            self._current_key = None

    def pause(self):
        if self._subscription is not None:
            self._subscription.pause()

    def resume(self):
        if self._subscription is not None:
            self._subscription.resume()

    def go_to(self, page: int):
        """Navigate to a page, clamped to the last known window."""
        page = max(1, int(page))
        if self.window is not None:
            page = min(page, max(self.window.total_pages, 1))
        if page == self.page:
            return
        self.page = page
        if self.on_scroll_top:
            self.on_scroll_top()
        self._resubscribe()

    def next_page(self):
        if self.window is None or self.window.has_next:
            self.go_to(self.page + 1)

    def previous_page(self):
        if self.window is None or self.window.has_previous:
            self.go_to(self.page - 1)

    def set_page_size(self, page_size: int):
        """Change the page size and start again from page 1."""
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        page_size = min(page_size, self.max_page_size)
        if page_size == self.page_size:
            return
        self.page_size = page_size
        self.page = 1
        self.window = None
        self._resubscribe()

    def set_filters(self, **filters: Any):
        """Replace the filters, start from page 1 and force fresh data."""
        cleaned = clean_filters(filters)
        if cleaned == self.filters:
            return
        self.filters = cleaned
        self.page = 1
        self.window = None
        self._resubscribe(fresh=True)

    def _subscribe(self, fresh: bool = False):
        key = self.key
        self._current_key = key
        self.state = ResourceState()
        self._subscription = self.scheduler.subscribe(
            key, lambda state: self._handle(key, state), fresh=fresh
        )
        if self.key != key:
            # Page was clamped by the state delivered on subscribe
            self._resubscribe()

    def _resubscribe(self, fresh: bool = False):
        if self._subscription is None:
            return
        previous = self._subscription
        self._subscription = None
        previous.unsubscribe()
        self._subscribe(fresh=fresh)

    def _handle(self, key: ResourceKey, state: ResourceState):
        if key != self._current_key:
            logger.debug("Ignoring state for superseded listing key %s", key)
            return
        self.state = state
        if state.has_value and state.value.total is None:
            # No total from the backend: the window is unknown, never clamp
            self.window = None
        elif state.has_value:
            window = derive_window(state.value.total, self.page_size, self.page)
            self.window = window
            if window.page != self.page:
                # The server total shrank below the current page
                self.page = window.page
                self._resubscribe()
                return
        if self.on_update:
            self.on_update(self)
