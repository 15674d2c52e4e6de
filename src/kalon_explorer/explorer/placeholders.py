# File: src/kalon_explorer/explorer/placeholders.py
"""Static data rendered when a resource has never been fetched."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from ..client.models import Block, NetworkStats, Treasury


def placeholder_blocks(now: Optional[datetime] = None) -> List[Block]:
    now = now or datetime.now(timezone.utc)
    return [
        Block(number=1, hash="0x1234567890abcdef1234567890abcdef12345678", tx_count=1,
              timestamp=now, miner="", size=0, difficulty=0),
        Block(number=2, hash="0xabcdef1234567890abcdef1234567890abcdef12", tx_count=0,
              timestamp=now - timedelta(seconds=12), miner="", size=0, difficulty=0),
        Block(number=3, hash="0x9876543210fedcba9876543210fedcba98765432", tx_count=2,
              timestamp=now - timedelta(seconds=24), miner="", size=0, difficulty=0),
    ]


PLACEHOLDER_NETWORK_STATS = NetworkStats(
    block_height=0,
    total_blocks=1,
    total_txs=0,
    total_addresses=0,
    network_hash_rate=0,
    difficulty=1000,
    peers=0,
    mempool_size=0,
)

PLACEHOLDER_TREASURY = Treasury(balance=0)
