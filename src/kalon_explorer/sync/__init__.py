# src/kalon_explorer/sync/__init__.py
from .resources import ResourceKey, ResourceKind, ResourceState, ResourceStatus
from .cache import ResourceCache
from .scheduler import PollingScheduler, Subscription

__all__ = [
    'ResourceKey', 'ResourceKind', 'ResourceState', 'ResourceStatus',
    'ResourceCache', 'PollingScheduler', 'Subscription',
]
