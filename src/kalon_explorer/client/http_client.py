# File: src/kalon_explorer/client/http_client.py

import asyncio
import json
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

import aiohttp
from async_timeout import timeout
from pydantic import TypeAdapter, ValidationError

from .models import (
    Address,
    AddressBalance,
    Block,
    ChainStats,
    Envelope,
    Health,
    Meta,
    NetworkStats,
    Page,
    Peer,
    SearchHit,
    Transaction,
    Treasury,
)
from ..exceptions import NetworkError, ProtocolError, RequestTimeoutError, ServerError
from ..sync.resources import ResourceKey, ResourceKind, canonical_params
from ..utils.config import Config
from ..utils.logger import get_logger

logger = get_logger(__name__)

_BLOCKS = TypeAdapter(List[Block])
_TRANSACTIONS = TypeAdapter(List[Transaction])
_PEERS = TypeAdapter(List[Peer])

RESOURCE_PATHS: Dict[ResourceKind, str] = {
    ResourceKind.BLOCKS: "/blocks",
    ResourceKind.LATEST_BLOCK: "/blocks/latest",
    ResourceKind.TRANSACTIONS: "/transactions",
    ResourceKind.PENDING_TRANSACTIONS: "/transactions/pending",
    ResourceKind.NETWORK_STATS: "/network/stats",
    ResourceKind.TREASURY: "/treasury",
    ResourceKind.PEERS: "/network/peers",
    ResourceKind.STATS: "/stats",
}


def _segment(value: Any) -> str:
    return quote(str(value), safe="")


def _validate(adapter: Any, data: Any, what: str) -> Any:
    try:
        if isinstance(adapter, TypeAdapter):
            return adapter.validate_python(data)
        return adapter.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(f"Malformed {what} data: {e.error_count()} validation error(s)") from e


def _page(adapter: TypeAdapter, data: Any, meta: Optional[Meta], what: str) -> Page:
    items = _validate(adapter, [] if data is None else data, what)
    if meta is None:
        return Page(items=items)
    return Page(items=items, total=meta.total, page=meta.page, limit=meta.limit)


class ExplorerClient:
    """Typed GET wrapper over the explorer REST backend.

    Every call either returns decoded data or raises one of NetworkError,
    RequestTimeoutError, ServerError or ProtocolError. Nothing is cached here.
    """

    def __init__(
        self,
        base_url: str = Config.API_URL,
        request_timeout: float = Config.REQUEST_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "ExplorerClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Accept": "application/json"}
            )
            self._owns_session = True
        return self._session

    async def request(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Tuple[Any, Optional[Meta]]:
        """GET a backend path and unwrap its envelope into (data, meta)."""
        url = f"{self.base_url}{path}"
        query = list(canonical_params(params))
        session = self._get_session()
        logger.debug("GET %s %s", url, query)

        try:
            async with timeout(self.request_timeout):
                async with session.get(url, params=query) as response:
                    status = response.status
                    body = await response.read()
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(
                f"GET {path} timed out after {self.request_timeout}s"
            ) from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"GET {path} failed: {e}") from e

        if not 200 <= status < 300:
            raise ServerError(status, f"GET {path} returned HTTP {status}")
        return self._unwrap(body, path)

    def _unwrap(self, body: bytes, path: str) -> Tuple[Any, Optional[Meta]]:
        try:
            payload = json.loads(body.decode("utf-8"))
        except ValueError as e:
            # UnicodeDecodeError is a ValueError too
            raise ProtocolError(f"GET {path} returned an undecodable body") from e

        if not isinstance(payload, dict):
            raise ProtocolError(f"GET {path} returned a non-object envelope")
        envelope = _validate(Envelope, payload, "envelope")
        if not envelope.success:
            reason = envelope.error or "success flag not set"
            raise ProtocolError(f"GET {path} was unsuccessful: {reason}")
        if "data" not in envelope.model_fields_set:
            raise ProtocolError(f"GET {path} envelope has no data")
        return envelope.data, envelope.meta

    async def fetch_resource(self, kind: ResourceKind, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Fetch one pollable resource and decode it into its model."""
        kind = ResourceKind(kind)
        data, meta = await self.request(RESOURCE_PATHS[kind], params)

        if kind == ResourceKind.BLOCKS:
            return _page(_BLOCKS, data, meta, "blocks")
        if kind == ResourceKind.TRANSACTIONS:
            return _page(_TRANSACTIONS, data, meta, "transactions")
        if kind == ResourceKind.LATEST_BLOCK:
            return _validate(Block, data, "block")
        if kind == ResourceKind.PENDING_TRANSACTIONS:
            return _validate(_TRANSACTIONS, [] if data is None else data, "pending transactions")
        if kind == ResourceKind.NETWORK_STATS:
            return _validate(NetworkStats, data, "network stats")
        if kind == ResourceKind.TREASURY:
            return _validate(Treasury, data, "treasury")
        if kind == ResourceKind.PEERS:
            return _validate(_PEERS, [] if data is None else data, "peers")
        return _validate(ChainStats, data, "stats")

    async def fetch_key(self, key: ResourceKey) -> Any:
        """Fetcher signature used by the polling scheduler."""
        return await self.fetch_resource(key.kind, key.params_dict())

    # Health

    async def health(self) -> Health:
        data, _ = await self.request("/health")
        return _validate(Health, data, "health")

    # Blocks

    async def get_blocks(self, page: int = 1, limit: int = Config.DEFAULT_PAGE_SIZE, search: Optional[str] = None) -> Page:
        return await self.fetch_resource(
            ResourceKind.BLOCKS, {"page": page, "limit": limit, "search": search or None}
        )

    async def get_block_by_hash(self, block_hash: str) -> Block:
        data, _ = await self.request(f"/blocks/{_segment(block_hash)}")
        return _validate(Block, data, "block")

    async def get_block_by_height(self, height: int) -> Block:
        data, _ = await self.request(f"/blocks/height/{int(height)}")
        return _validate(Block, data, "block")

    async def get_latest_block(self) -> Block:
        return await self.fetch_resource(ResourceKind.LATEST_BLOCK)

    # Transactions

    async def get_transactions(self, page: int = 1, limit: int = Config.DEFAULT_PAGE_SIZE) -> Page:
        return await self.fetch_resource(ResourceKind.TRANSACTIONS, {"page": page, "limit": limit})

    async def get_transaction(self, tx_hash: str) -> Transaction:
        data, _ = await self.request(f"/transactions/{_segment(tx_hash)}")
        return _validate(Transaction, data, "transaction")

    async def get_pending_transactions(self) -> List[Transaction]:
        return await self.fetch_resource(ResourceKind.PENDING_TRANSACTIONS)

    # Addresses

    async def get_address(self, address: str) -> Address:
        data, _ = await self.request(f"/addresses/{_segment(address)}")
        return _validate(Address, data, "address")

    async def get_address_transactions(self, address: str, page: int = 1, limit: int = Config.DEFAULT_PAGE_SIZE) -> Page:
        data, meta = await self.request(
            f"/addresses/{_segment(address)}/transactions", {"page": page, "limit": limit}
        )
        return _page(_TRANSACTIONS, data, meta, "address transactions")

    async def get_address_balance(self, address: str) -> AddressBalance:
        data, _ = await self.request(f"/addresses/{_segment(address)}/balance")
        return _validate(AddressBalance, data, "address balance")

    # Treasury, network and stats

    async def get_treasury(self) -> Treasury:
        return await self.fetch_resource(ResourceKind.TREASURY)

    async def get_network_stats(self) -> NetworkStats:
        return await self.fetch_resource(ResourceKind.NETWORK_STATS)

    async def get_peers(self) -> List[Peer]:
        return await self.fetch_resource(ResourceKind.PEERS)

    async def get_stats(self) -> ChainStats:
        return await self.fetch_resource(ResourceKind.STATS)

    # Search

    async def search(self, query: str) -> SearchHit:
        """Server-side search; the backend only guesses from the query shape."""
        data, _ = await self.request("/search", {"q": query})
        return _validate(SearchHit, data, "search")
