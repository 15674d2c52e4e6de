# src/kalon_explorer/utils/__init__.py
from .logger import get_logger, set_level
from .config import Config, ExplorerConfig

__all__ = ['get_logger', 'set_level', 'Config', 'ExplorerConfig']
