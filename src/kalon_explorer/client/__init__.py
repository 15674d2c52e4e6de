# src/kalon_explorer/client/__init__.py
from .http_client import ExplorerClient, RESOURCE_PATHS
from .models import (
    Address,
    AddressBalance,
    Block,
    ChainStats,
    NetworkStats,
    Page,
    Peer,
    SearchHit,
    Transaction,
    Treasury,
)

__all__ = [
    'ExplorerClient', 'RESOURCE_PATHS', 'Address', 'AddressBalance', 'Block',
    'ChainStats', 'NetworkStats', 'Page', 'Peer', 'SearchHit', 'Transaction',
    'Treasury',
]
