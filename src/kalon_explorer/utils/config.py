# src/kalon_explorer/utils/config.py
import os
from typing import Any, Dict, Optional, Tuple

import yaml

from ..exceptions import ConfigError


class Config:
    # Backend configuration
    API_URL = "http://localhost:8081"
    REQUEST_TIMEOUT = 10.0  # seconds

    # Display configuration
    CURRENCY_SYMBOL = "tKALON"
    MICRO_UNITS_PER_COIN = 1_000_000

    # Listing configuration
    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100  # Backend falls back to 20 above this
    RECENT_ITEMS = 5

    # Poll intervals per resource kind, in seconds
    POLL_INTERVALS = {
        "blocks": 10.0,
        "latest_block": 10.0,
        "transactions": 10.0,
        "pending_transactions": 10.0,
        "stats": 10.0,
        "network_stats": 30.0,
        "treasury": 30.0,
        "peers": 30.0,
    }
    DEFAULT_POLL_INTERVAL = 30.0

    # Search configuration
    HASH_HEX_LENGTH = 64
    ADDRESS_HEX_LENGTH = 40
    ADDRESS_PREFIXES = ("kalon", "tkalon")  # bech32 human-readable parts
    BECH32_DATA_LENGTH = 38  # 20 byte payload + 6 checksum characters


ENV_API_URL = "KALON_EXPLORER_API_URL"
ENV_TIMEOUT = "KALON_EXPLORER_TIMEOUT"
ENV_CONFIG_PATH = "KALON_EXPLORER_CONFIG"


class ExplorerConfig:
    """Runtime settings: defaults from Config, then a YAML file, then the environment."""

    def __init__(self, config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        self.environ = os.environ if environ is None else environ
        self.config_path = config_path or self.environ.get(ENV_CONFIG_PATH)
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        config = self._create_default_config()
        if self.config_path:
            if not os.path.exists(self.config_path):
                raise ConfigError(f"Config file not found: {self.config_path}")
            with open(self.config_path, 'r') as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise ConfigError(f"Config file must contain a mapping: {self.config_path}")
            _merge(config, loaded)

        if self.environ.get(ENV_API_URL):
            config["api"]["url"] = self.environ[ENV_API_URL]
        if self.environ.get(ENV_TIMEOUT):
            config["api"]["timeout"] = self.environ[ENV_TIMEOUT]
        return config

    def _create_default_config(self) -> Dict[str, Any]:
        return {
            "api": {
                "url": Config.API_URL,
                "timeout": Config.REQUEST_TIMEOUT,
            },
            "display": {
                "currency_symbol": Config.CURRENCY_SYMBOL,
                "page_size": Config.DEFAULT_PAGE_SIZE,
            },
            "polling": {
                "intervals": dict(Config.POLL_INTERVALS),
            },
            "search": {
                "address_prefixes": list(Config.ADDRESS_PREFIXES),
            },
            "monitoring": {
                "metrics_port": None,
                "log_dir": None,
                "log_level": "WARNING",
            },
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        try:
            keys = key.split('.')
            value = self.config
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def update(self, key: str, value: Any):
        """Update configuration value in memory."""
        keys = key.split('.')
        config = self.config
        for k in keys[:-1]:
            config = config.setdefault(k, {})
        config[keys[-1]] = value

    @property
    def api_url(self) -> str:
        return str(self.get("api.url")).rstrip("/")

    @property
    def timeout(self) -> float:
        return self._positive_float("api.timeout")

    @property
    def currency_symbol(self) -> str:
        return str(self.get("display.currency_symbol", Config.CURRENCY_SYMBOL))

    @property
    def page_size(self) -> int:
        return int(self._positive_float("display.page_size"))

    @property
    def address_prefixes(self) -> Tuple[str, ...]:
        prefixes = self.get("search.address_prefixes", Config.ADDRESS_PREFIXES)
        if not isinstance(prefixes, (list, tuple)) or not all(isinstance(p, str) for p in prefixes):
            raise ConfigError(f"search.address_prefixes must be a list of strings, got {prefixes!r}")
        return tuple(p.lower() for p in prefixes)

    @property
    def poll_intervals(self) -> Dict[str, float]:
        intervals = self.get("polling.intervals") or {}
        if not isinstance(intervals, dict):
            raise ConfigError(f"polling.intervals must be a mapping, got {intervals!r}")
        unknown = sorted(str(kind) for kind in set(intervals) - set(Config.POLL_INTERVALS))
        if unknown:
            raise ConfigError(
                f"Unknown resource kind(s) in polling.intervals: {', '.join(unknown)}"
            )
        return {kind: self._positive_float(f"polling.intervals.{kind}") for kind in intervals}

    def validate(self):
        """Raise ConfigError now rather than when a setting is first used."""
        self.timeout
        self.page_size
        self.poll_intervals
        self.address_prefixes

    def _positive_float(self, key: str) -> float:
        raw = self.get(key)
        try:
            value = float(raw)
        except (TypeError, ValueError):
            raise ConfigError(f"{key} must be a number, got {raw!r}")
        if value <= 0:
            raise ConfigError(f"{key} must be positive, got {raw!r}")
        return value


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
