# File: src/kalon_explorer/sync/resources.py
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from ..exceptions import ErrorKind


class ResourceKind(str, Enum):
    BLOCKS = "blocks"
    LATEST_BLOCK = "latest_block"
    TRANSACTIONS = "transactions"
    PENDING_TRANSACTIONS = "pending_transactions"
    NETWORK_STATS = "network_stats"
    TREASURY = "treasury"
    PEERS = "peers"
    STATS = "stats"


class ResourceStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    DEGRADED = "degraded"


def canonical_params(params: Optional[Mapping[str, Any]]) -> Tuple[Tuple[str, str], ...]:
    """Sorted (name, value) pairs with None dropped and values stringified."""
    if not params:
        return ()
    pairs = []
    for name, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        pairs.append((str(name), str(value)))
    return tuple(sorted(pairs))


@dataclass(frozen=True)
class ResourceKey:
    kind: ResourceKind
    params: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def of(cls, kind: ResourceKind, params: Optional[Mapping[str, Any]] = None, **extra: Any) -> "ResourceKey":
        merged = dict(params or {})
        merged.update(extra)
        return cls(ResourceKind(kind), canonical_params(merged))

    def params_dict(self) -> Dict[str, str]:
        return dict(self.params)

    def __str__(self) -> str:
        if not self.params:
            return self.kind.value
        query = "&".join(f"{name}={value}" for name, value in self.params)
        return f"{self.kind.value}?{query}"


@dataclass
class ResourceState:
    status: ResourceStatus = ResourceStatus.IDLE
    value: Any = None
    last_success_at: Optional[float] = None
    last_error: Optional[ErrorKind] = None

    @property
    def degraded(self) -> bool:
        return self.status == ResourceStatus.DEGRADED

    @property
    def has_value(self) -> bool:
        return self.last_success_at is not None

    def value_or(self, placeholder: Any) -> Any:
        """The last fetched value, or the placeholder if nothing ever loaded."""
        return self.value if self.has_value else placeholder
