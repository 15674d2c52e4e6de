# File: src/kalon_explorer/client/models.py
from pydantic import BaseModel, ConfigDict, Field, StrictBool
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class ApiModel(BaseModel):
    """Backend payloads use camelCase keys; fields are snake_case."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class Transaction(ApiModel):
    hash: str
    amount: int  # micro-units
    timestamp: datetime
    from_address: Optional[str] = Field(default=None, alias="from")
    to_address: Optional[str] = Field(default=None, alias="to")
    fee: Optional[int] = None
    nonce: Optional[int] = None
    gas_used: Optional[int] = None
    gas_price: Optional[int] = None
    data: Optional[str] = None
    block_hash: Optional[str] = None
    block_number: Optional[int] = None
    status: Optional[str] = None
    priority: Optional[int] = None


class Block(ApiModel):
    number: int
    hash: str
    tx_count: int
    timestamp: datetime
    miner: str
    size: int
    difficulty: int
    parent_hash: Optional[str] = None
    nonce: Optional[int] = None
    merkle_root: Optional[str] = None
    network_fee: Optional[int] = None
    treasury_fee: Optional[int] = None
    gas_used: Optional[int] = None
    gas_limit: Optional[int] = None
    transactions: Optional[List[Transaction]] = None


class Address(ApiModel):
    address: str
    balance: int
    tx_count: int = 0
    first_seen: Optional[datetime] = None
    last_seen: Optional[datetime] = None
    is_contract: bool = False


class AddressBalance(ApiModel):
    address: str
    balance: int


class Treasury(ApiModel):
    address: Optional[str] = None
    balance: int
    block_fees: int = 0
    tx_fees: int = 0
    total_income: int = 0
    last_update: Optional[datetime] = None


class NetworkStats(ApiModel):
    # Optional fields stay None when absent so "unknown" differs from zero
    block_height: Optional[int] = None
    total_blocks: Optional[int] = None
    total_txs: Optional[int] = None
    total_addresses: Optional[int] = None
    network_hash_rate: Optional[float] = None
    difficulty: Optional[int] = None
    block_time: Optional[float] = None
    last_block_time: Optional[datetime] = None
    peers: Optional[int] = None
    mempool_size: Optional[int] = None


class Peer(ApiModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    address: Optional[str] = None
    version: Optional[str] = None
    last_seen: Optional[datetime] = None


class ChainStats(ApiModel):
    blocks: Dict[str, Any] = {}
    transactions: Dict[str, Any] = {}
    addresses: Dict[str, Any] = {}
    network: Dict[str, Any] = {}
    treasury: Dict[str, Any] = {}


class SearchHit(ApiModel):
    query: str
    type: str = "unknown"
    data: Optional[Dict[str, Any]] = None


class Health(ApiModel):
    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None


class Meta(ApiModel):
    page: Optional[int] = None
    limit: Optional[int] = None
    total: Optional[int] = None
    total_pages: Optional[int] = None


class Envelope(ApiModel):
    success: StrictBool  # "yes" or 1 is not a successful envelope
    data: Any = None
    error: Optional[str] = None
    meta: Optional[Meta] = None


class Page(BaseModel, Generic[T]):
    """One page of a listing plus the server-reported total."""
    model_config = ConfigDict(frozen=True)

    items: List[T]
    total: Optional[int] = None
    page: Optional[int] = None
    limit: Optional[int] = None
