# src/kalon_explorer/monitoring/__init__.py
from .logging_config import LogConfig
from .metrics import MetricsCollector

__all__ = ['LogConfig', 'MetricsCollector']
