# File: src/kalon_explorer/explorer/views.py
import time
from typing import Any, Callable, Dict, List, Optional

from .formatters import (
    format_age,
    format_amount,
    format_balance,
    format_count,
    format_hash_rate,
    format_number,
    format_share,
    format_size,
    short_hash,
)
from .listing import PaginatedListing
from .placeholders import PLACEHOLDER_NETWORK_STATS, PLACEHOLDER_TREASURY, placeholder_blocks
from ..sync.resources import ResourceKey, ResourceKind, ResourceState, ResourceStatus
from ..sync.scheduler import PollingScheduler, Subscription
from ..utils.config import Config


def status_marker(state: ResourceState) -> str:
    """Suffix telling the reader how much to trust a section."""
    if state.degraded:
        return " [stale]" if state.has_value else " [offline, placeholder data]"
    if not state.has_value and state.status in (ResourceStatus.IDLE, ResourceStatus.LOADING):
        return " [loading]"
    return ""


class View:
    """A screen made of one or more polled resources."""

    title = ""

    def __init__(
        self,
        scheduler: PollingScheduler,
        currency_symbol: str = Config.CURRENCY_SYMBOL,
        on_change: Optional[Callable[["View"], None]] = None,
        clock: Callable[[], float] = time.time
    ):
        self.scheduler = scheduler
        self.currency_symbol = currency_symbol
        self.on_change = on_change
        self.clock = clock
        self.states: Dict[str, ResourceState] = {}
        self._subscriptions: Dict[str, Subscription] = {}

    def open(self):
        raise NotImplementedError

    def close(self):
        for subscription in self._subscriptions.values():
            subscription.unsubscribe()
        self._subscriptions.clear()

    def pause(self):
        for subscription in self._subscriptions.values():
            subscription.pause()

    def resume(self):
        for subscription in self._subscriptions.values():
            subscription.resume()

    def render(self) -> List[str]:
        raise NotImplementedError

    def _watch(self, name: str, key: ResourceKey):
        self.states[name] = ResourceState()
        self._subscriptions[name] = self.scheduler.subscribe(
            key, lambda state: self._update(name, state)
        )

    def _update(self, name: str, state: ResourceState):
        self.states[name] = state
        self._changed()

    def _changed(self, *_: Any):
        if self.on_change:
            self.on_change(self)

    def _state(self, name: str) -> ResourceState:
        return self.states.get(name, ResourceState())

    def _stats_lines(self) -> List[str]:
        state = self._state("stats")
        stats = state.value_or(PLACEHOLDER_NETWORK_STATS)
        return [
            f"Network{status_marker(state)}",
            f"  Block Height: {format_number(stats.block_height)}",
            f"  Hash Rate: {format_hash_rate(stats.network_hash_rate)}",
            f"  Total Blocks: {format_number(stats.total_blocks)}",
            f"  Difficulty: {format_number(stats.difficulty)}",
            f"  Peers: {format_count(stats.peers)}",
            f"  Transactions: {format_number(stats.total_txs)}",
            f"  Pending: {format_number(stats.mempool_size)}",
            f"  Addresses: {format_number(stats.total_addresses)}",
        ]


class DashboardView(View):
    title = "Kalon Explorer"

    def open(self):
        recent = {"page": 1, "limit": Config.RECENT_ITEMS}
        self._watch("stats", ResourceKey.of(ResourceKind.NETWORK_STATS))
        self._watch("blocks", ResourceKey.of(ResourceKind.BLOCKS, recent))
        self._watch("transactions", ResourceKey.of(ResourceKind.TRANSACTIONS, recent))

    def render(self) -> List[str]:
        now = self.clock()
        lines = [self.title, ""] + self._stats_lines() + [""]

        blocks_state = self._state("blocks")
        if blocks_state.has_value:
            blocks = blocks_state.value.items
        else:
            blocks = placeholder_blocks()
        lines.append(f"Recent Blocks{status_marker(blocks_state)}")
        if not blocks:
            lines.append("  No blocks found")
        for block in blocks:
            lines.append(
                f"  #{block.number}  {short_hash(block.hash)}  {block.tx_count} txs  "
                f"{format_age(block.timestamp, now)}"
            )

        txs_state = self._state("transactions")
        txs = txs_state.value.items if txs_state.has_value else []
        lines.extend(["", f"Recent Transactions{status_marker(txs_state)}"])
        if not txs:
            lines.append("  No transactions found")
        for tx in txs:
            lines.append(
                f"  {short_hash(tx.hash)}  {format_balance(tx.amount, self.currency_symbol)}  "
                f"{format_age(tx.timestamp, now)}"
            )
        return lines


class NetworkView(View):
    title = "Network Statistics"

    def open(self):
        self._watch("stats", ResourceKey.of(ResourceKind.NETWORK_STATS))

    def render(self) -> List[str]:
        return [self.title, ""] + self._stats_lines()


class BlocksView(View):
    title = "Blocks"

    def __init__(
        self,
        scheduler: PollingScheduler,
        page_size: int = Config.DEFAULT_PAGE_SIZE,
        search: Optional[str] = None,
        on_scroll_top: Optional[Callable[[], None]] = None,
        **kwargs: Any
    ):
        super().__init__(scheduler, **kwargs)
        self.listing = PaginatedListing(
            scheduler,
            ResourceKind.BLOCKS,
            page_size=page_size,
            filters={"search": search},
            on_update=self._changed,
            on_scroll_top=on_scroll_top,
        )

    def open(self):
        self._watch("stats", ResourceKey.of(ResourceKind.NETWORK_STATS))
        self.listing.open()

    def close(self):
        self.listing.close()
        super().close()

    def pause(self):
        self.listing.pause()
        super().pause()

    def resume(self):
        self.listing.resume()
        super().resume()

    def render(self) -> List[str]:
        now = self.clock()
        state = self.listing.state
        stats = self._state("stats").value_or(PLACEHOLDER_NETWORK_STATS)
        lines = [
            f"{self.title}{status_marker(state)}",
            f"  Latest Block: {format_number(stats.block_height)}  "
            f"Total Blocks: {format_number(stats.total_blocks)}  "
            f"Hash Rate: {format_hash_rate(stats.network_hash_rate)}",
            "",
        ]
        blocks = self.listing.items if state.has_value else placeholder_blocks()
        if not blocks:
            lines.append("  No blocks found")
        for block in blocks:
            lines.append(
                f"  #{block.number}  {short_hash(block.hash)}  {format_age(block.timestamp, now)}  "
                f"{short_hash(block.miner)}  {block.tx_count} txs  {format_size(block.size)}  "
                f"{format_number(block.difficulty)}"
            )
        if self.listing.window is not None:
            lines.extend(["", f"  {self.listing.window}"])
        return lines


class TreasuryView(View):
    title = "Treasury"

    def open(self):
        self._watch("treasury", ResourceKey.of(ResourceKind.TREASURY))
        self._watch("stats", ResourceKey.of(ResourceKind.NETWORK_STATS))

    def render(self) -> List[str]:
        state = self._state("treasury")
        treasury = state.value_or(PLACEHOLDER_TREASURY)
        symbol = self.currency_symbol
        lines = [
            f"{self.title}{status_marker(state)}",
            f"  Balance: {format_amount(treasury.balance, symbol)}",
            f"  Total Income: {format_amount(treasury.total_income, symbol)}",
            f"  Block Fees: {format_amount(treasury.block_fees, symbol)} "
            f"({format_share(treasury.block_fees, treasury.total_income)})",
            f"  Transaction Fees: {format_amount(treasury.tx_fees, symbol)} "
            f"({format_share(treasury.tx_fees, treasury.total_income)})",
        ]
        if treasury.last_update is not None:
            lines.append(f"  Updated: {format_age(treasury.last_update, self.clock())} ago")
        stats = self._state("stats").value_or(PLACEHOLDER_NETWORK_STATS)
        lines.append(f"  Block Height: {format_number(stats.block_height)}")
        return lines


VIEWS = {
    "dashboard": DashboardView,
    "network": NetworkView,
    "blocks": BlocksView,
    "treasury": TreasuryView,
}
