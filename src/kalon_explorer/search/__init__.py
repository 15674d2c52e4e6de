# src/kalon_explorer/search/__init__.py
from .resolver import SearchOutcome, SearchResolver, SearchTarget, TargetKind

__all__ = ['SearchOutcome', 'SearchResolver', 'SearchTarget', 'TargetKind']
