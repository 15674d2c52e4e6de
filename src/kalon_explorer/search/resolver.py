# File: src/kalon_explorer/search/resolver.py

import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Iterable, List, Optional, Tuple, Union

from ..client.http_client import ExplorerClient
from ..exceptions import ExplorerError, FetchError, InvalidQuery, NotFoundError, ServerError
from ..utils.config import Config
from ..utils.logger import get_logger

logger = get_logger(__name__)

BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
HEIGHT_PATTERN = re.compile(r"^[0-9]+$")  # ASCII only, \d also matches other scripts


def is_block_height(query: str) -> bool:
    return bool(HEIGHT_PATTERN.match(query.strip()))


class TargetKind(str, Enum):
    BLOCK_BY_HEIGHT = "block_by_height"
    BLOCK_BY_HASH = "block_by_hash"
    TRANSACTION_BY_HASH = "transaction_by_hash"
    ADDRESS = "address"
    AMBIGUOUS_HASH = "ambiguous_hash"  # block or transaction, decided by lookup
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class SearchTarget:
    kind: TargetKind
    value: Union[int, str, None] = None

    @classmethod
    def block_by_height(cls, height: int) -> "SearchTarget":
        return cls(TargetKind.BLOCK_BY_HEIGHT, height)

    @classmethod
    def block_by_hash(cls, block_hash: str) -> "SearchTarget":
        return cls(TargetKind.BLOCK_BY_HASH, block_hash)

    @classmethod
    def transaction_by_hash(cls, tx_hash: str) -> "SearchTarget":
        return cls(TargetKind.TRANSACTION_BY_HASH, tx_hash)

    @classmethod
    def address(cls, address: str) -> "SearchTarget":
        return cls(TargetKind.ADDRESS, address)

    @classmethod
    def ambiguous_hash(cls, value: str) -> "SearchTarget":
        return cls(TargetKind.AMBIGUOUS_HASH, value)

    @classmethod
    def not_found(cls) -> "SearchTarget":
        return cls(TargetKind.NOT_FOUND)


@dataclass(frozen=True)
class SearchOutcome:
    """The single answer a search gives its caller."""
    query: str
    target: SearchTarget
    data: Any = None
    error: Optional[ExplorerError] = None

    @property
    def found(self) -> bool:
        return self.error is None and self.target.kind not in (
            TargetKind.NOT_FOUND, TargetKind.AMBIGUOUS_HASH
        )

    @property
    def path(self) -> Optional[str]:
        """Route of the page to navigate to, if any."""
        if not self.found:
            return None
        kind = self.target.kind
        if kind in (TargetKind.BLOCK_BY_HEIGHT, TargetKind.BLOCK_BY_HASH):
            block_hash = getattr(self.data, "hash", None) or self.target.value
            return f"/blocks/{block_hash}"
        if kind == TargetKind.TRANSACTION_BY_HASH:
            return f"/transactions/{self.target.value}"
        return f"/addresses/{self.target.value}"


class SearchResolver:
    """Classifies free-text queries and resolves them against the backend.

    Classification order, first match wins: block height, 64-hex hash (block
    or transaction), address, nothing.
    """

    def __init__(
        self,
        client: ExplorerClient,
        address_prefixes: Iterable[str] = Config.ADDRESS_PREFIXES,
        hash_length: int = Config.HASH_HEX_LENGTH,
        address_length: int = Config.ADDRESS_HEX_LENGTH
    ):
        if hash_length == address_length:
            raise ValueError("hash and address lengths must differ")
        self.client = client
        self.address_prefixes = tuple(p.lower() for p in address_prefixes)
        self._hash = re.compile(rf"^(0x)?[0-9a-f]{{{hash_length}}}$")
        self._hex_address = re.compile(rf"^(0x)?[0-9a-f]{{{address_length}}}$")
        prefixes = "|".join(re.escape(p) for p in self.address_prefixes) or "(?!)"
        self._bech32_address = re.compile(
            rf"^(?:{prefixes})1[{BECH32_CHARSET}]{{{Config.BECH32_DATA_LENGTH}}}$"
        )

    def resolve(self, raw_query: str) -> SearchTarget:
        """Classify a query without touching the network."""
        query = (raw_query or "").strip().lower()
        if not query:
            raise InvalidQuery("Search query is empty")

        if HEIGHT_PATTERN.match(query):
            return SearchTarget.block_by_height(int(query))
        if self._hash.match(query):
            return SearchTarget.ambiguous_hash(query)
        return self._classify_address(query) or SearchTarget.not_found()

    def _classify_address(self, query: str) -> Optional[SearchTarget]:
        if self._hex_address.match(query) or self._bech32_address.match(query):
            return SearchTarget.address(query)
        return None

    async def search(self, raw_query: str) -> SearchOutcome:
        """Resolve and execute a query; failures come back inside the outcome."""
        try:
            target = self.resolve(raw_query)
        except InvalidQuery as e:
            return SearchOutcome(raw_query or "", SearchTarget.not_found(), error=e)
        return await self.execute(target, query=raw_query.strip())

    async def execute(self, target: SearchTarget, query: Optional[str] = None) -> SearchOutcome:
        query = query if query is not None else str(target.value)
        kind = target.kind

        if kind == TargetKind.BLOCK_BY_HEIGHT:
            return await self._lookup_one(query, target, self.client.get_block_by_height(target.value))
        if kind == TargetKind.BLOCK_BY_HASH:
            return await self._lookup_one(query, target, self.client.get_block_by_hash(target.value))
        if kind == TargetKind.TRANSACTION_BY_HASH:
            return await self._lookup_one(query, target, self.client.get_transaction(target.value))
        if kind == TargetKind.ADDRESS:
            return await self._lookup_one(query, target, self.client.get_address(target.value))
        if kind == TargetKind.AMBIGUOUS_HASH:
            return await self._race_hash(query, target.value)
        return self._not_found(query)

    async def _lookup_one(self, query: str, target: SearchTarget, lookup: Awaitable[Any]) -> SearchOutcome:
        data, error = await self._lookup(lookup)
        if data is not None:
            return SearchOutcome(query, target, data)
        return self._not_found(query, error)

    async def _race_hash(self, query: str, value: str) -> SearchOutcome:
        """Look the hash up as a block and as a transaction at the same time.

        The first affirmative answer wins. When both answers arrive together
        the block wins. If neither affirms, the value is retried as an address.
        """
        lookups = {
            asyncio.ensure_future(self._lookup(self.client.get_block_by_hash(value))):
                SearchTarget.block_by_hash(value),
            asyncio.ensure_future(self._lookup(self.client.get_transaction(value))):
                SearchTarget.transaction_by_hash(value),
        }
        pending = set(lookups)
        failures: List[FetchError] = []
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                hits = []
                for task in done:
                    data, error = task.result()
                    if data is not None:
                        hits.append((lookups[task], data))
                    elif error is not None:
                        failures.append(error)
                if hits:
                    hits.sort(key=lambda hit: hit[0].kind != TargetKind.BLOCK_BY_HASH)
                    target, data = hits[0]
                    return SearchOutcome(query, target, data)
        finally:
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        fallback = self._classify_address(value)
        if fallback is not None:
            return await self.execute(fallback, query=query)
        return self._not_found(query, failures[0] if failures else None)

    async def _lookup(self, lookup: Awaitable[Any]) -> Tuple[Any, Optional[FetchError]]:
        """(data, None) on a hit, (None, None) on 404, (None, error) otherwise."""
        try:
            return await lookup, None
        except ServerError as e:
            if e.status == 404:
                return None, None
            logger.warning("Search lookup failed: %s", e)
            return None, e
        except FetchError as e:
            logger.warning("Search lookup failed: %s", e)
            return None, e

    def _not_found(self, query: str, error: Optional[FetchError] = None) -> SearchOutcome:
        return SearchOutcome(
            query,
            SearchTarget.not_found(),
            error=error or NotFoundError(f"Nothing matches {query!r}"),
        )
