# File: src/kalon_explorer/explorer/formatters.py
"""Pure display helpers. None means the upstream field was absent."""

import math
import time
from datetime import datetime, timezone
from typing import Optional, Union

from ..utils.config import Config

Number = Union[int, float]
Timestamp = Union[datetime, int, float]

NOT_AVAILABLE = "N/A"


def _plain(value: Number) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _epoch(value: Timestamp) -> float:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.timestamp()
    return float(value)


def format_hash_rate(hash_rate: Optional[Number]) -> str:
    if hash_rate is None:
        return "0 H/s"
    if hash_rate < 1000:
        return f"{_plain(hash_rate)} H/s"
    if hash_rate < 1_000_000:
        return f"{hash_rate / 1000:.2f} KH/s"
    return f"{hash_rate / 1_000_000:.2f} MH/s"


def format_age(timestamp: Optional[Timestamp], now: Optional[Timestamp] = None) -> str:
    """Compact elapsed time; timestamps in the future read as 0s."""
    if timestamp is None:
        return NOT_AVAILABLE
    current = time.time() if now is None else _epoch(now)
    diff = max(0, math.floor(current - _epoch(timestamp)))

    if diff < 60:
        return f"{diff}s"
    if diff < 3600:
        return f"{diff // 60}m {diff % 60}s"
    return f"{diff // 3600}h {(diff % 3600) // 60}m"


def format_balance(micro_units: Optional[int], symbol: str = Config.CURRENCY_SYMBOL) -> str:
    if micro_units is None:
        return f"0 {symbol}"
    return f"{micro_units / Config.MICRO_UNITS_PER_COIN:.2f} {symbol}"


def format_amount(micro_units: Optional[int], symbol: str = Config.CURRENCY_SYMBOL) -> str:
    """Full precision amount, as shown on the treasury page."""
    if micro_units is None:
        return f"0 {symbol}"
    return f"{micro_units / Config.MICRO_UNITS_PER_COIN:.6f} {symbol}"


def format_hash(value: Optional[str]) -> str:
    if not value:
        return NOT_AVAILABLE
    return value if value.startswith("0x") else f"0x{value}"


def short_hash(value: Optional[str], length: int = 16) -> str:
    if not value:
        return NOT_AVAILABLE
    if len(value) <= length:
        return value
    return f"{value[:length]}..."


def format_number(value: Optional[Number]) -> str:
    if value is None:
        return "0"
    return f"{value:,}"


def format_count(value: Optional[int]) -> str:
    """Like format_number, but an absent value reads as unknown, not zero."""
    if value is None:
        return NOT_AVAILABLE
    return f"{value:,}"


def format_size(size_bytes: Optional[int]) -> str:
    if size_bytes is None:
        return NOT_AVAILABLE
    return f"{size_bytes / 1024:.2f} KB"


def format_share(part: Optional[Number], whole: Optional[Number]) -> str:
    """Percentage of a total; a missing or zero total divides by one."""
    return f"{(part or 0) / (whole or 1) * 100:.1f}%"
