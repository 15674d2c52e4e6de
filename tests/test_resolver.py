# tests/test_resolver.py
import asyncio
from types import SimpleNamespace

import pytest

from kalon_explorer.exceptions import InvalidQuery, NetworkError, NotFoundError, ServerError
from kalon_explorer.search.resolver import SearchResolver, SearchTarget, TargetKind

BLOCK_HASH = "0x" + "ab" * 32
TX_HASH = "cd" * 32
HEX_ADDRESS = "ef" * 20
BECH32_ADDRESS = "kalon1" + "q" * 38


class FakeClient:
    """In-memory backend; unknown identifiers answer 404."""

    def __init__(self, blocks=None, transactions=None, addresses=None, heights=None,
                 delays=None, failure=None):
        self.blocks = blocks or {}
        self.transactions = transactions or {}
        self.addresses = addresses or {}
        self.heights = heights or {}
        self.delays = delays or {}
        self.failure = failure
        self.calls = []
        self.cancelled = []

    async def _answer(self, name, table, key):
        self.calls.append((name, key))
        try:
            await asyncio.sleep(self.delays.get(name, 0))
        except asyncio.CancelledError:
            self.cancelled.append(name)
            raise
        if self.failure is not None:
            raise self.failure
        if key in table:
            return table[key]
        raise ServerError(404)

    async def get_block_by_height(self, height):
        return await self._answer("height", self.heights, height)

    async def get_block_by_hash(self, block_hash):
        return await self._answer("block", self.blocks, block_hash)

    async def get_transaction(self, tx_hash):
        return await self._answer("transaction", self.transactions, tx_hash)

    async def get_address(self, address):
        return await self._answer("address", self.addresses, address)


class TestClassification:
    @pytest.fixture
    def resolver(self):
        return SearchResolver(FakeClient())

    def test_digits_are_a_height(self, resolver):
        assert resolver.resolve("42") == SearchTarget.block_by_height(42)
        assert resolver.resolve("  0 ") == SearchTarget.block_by_height(0)

    def test_hash_is_ambiguous_until_looked_up(self, resolver):
        assert resolver.resolve(BLOCK_HASH).kind == TargetKind.AMBIGUOUS_HASH
        assert resolver.resolve(TX_HASH).kind == TargetKind.AMBIGUOUS_HASH

    def test_hash_is_case_insensitive(self, resolver):
        assert resolver.resolve(BLOCK_HASH.upper()).value == BLOCK_HASH

    def test_addresses(self, resolver):
        assert resolver.resolve(HEX_ADDRESS) == SearchTarget.address(HEX_ADDRESS)
        assert resolver.resolve("0x" + HEX_ADDRESS).kind == TargetKind.ADDRESS
        assert resolver.resolve(BECH32_ADDRESS) == SearchTarget.address(BECH32_ADDRESS)
        assert resolver.resolve("tkalon1" + "p" * 38).kind == TargetKind.ADDRESS

    def test_unknown_shapes_are_not_found(self, resolver):
        assert resolver.resolve("abc123xyz9").kind == TargetKind.NOT_FOUND
        assert resolver.resolve("kalon1tooshort").kind == TargetKind.NOT_FOUND
        assert resolver.resolve("ab" * 31).kind == TargetKind.NOT_FOUND
        assert resolver.resolve("-5").kind == TargetKind.NOT_FOUND

    def test_only_ascii_digits_are_a_height(self, resolver):
        assert resolver.resolve("\uff14\uff12").kind == TargetKind.NOT_FOUND
        assert resolver.resolve("\u00b2").kind == TargetKind.NOT_FOUND
        assert resolver.resolve("\u0664\u0662").kind == TargetKind.NOT_FOUND

    def test_empty_query_is_invalid(self, resolver):
        with pytest.raises(InvalidQuery):
            resolver.resolve("   ")

    def test_overlapping_lengths_are_rejected(self):
        with pytest.raises(ValueError):
            SearchResolver(FakeClient(), hash_length=40, address_length=40)


class TestSearch:
    @pytest.mark.asyncio
    async def test_height_lookup(self):
        client = FakeClient(heights={42: SimpleNamespace(hash=BLOCK_HASH)})
        outcome = await SearchResolver(client).search("42")

        assert outcome.found
        assert outcome.target == SearchTarget.block_by_height(42)
        assert outcome.path == f"/blocks/{BLOCK_HASH}"

    @pytest.mark.asyncio
    async def test_missing_height_is_not_found(self):
        outcome = await SearchResolver(FakeClient()).search("42")

        assert not outcome.found
        assert outcome.target.kind == TargetKind.NOT_FOUND
        assert isinstance(outcome.error, NotFoundError)
        assert outcome.path is None

    @pytest.mark.asyncio
    async def test_hash_known_only_as_transaction(self):
        client = FakeClient(transactions={TX_HASH: "tx"})
        outcome = await SearchResolver(client).search(TX_HASH)

        assert outcome.found
        assert outcome.target == SearchTarget.transaction_by_hash(TX_HASH)
        assert outcome.data == "tx"
        assert outcome.path == f"/transactions/{TX_HASH}"

    @pytest.mark.asyncio
    async def test_hash_known_only_as_block(self):
        client = FakeClient(blocks={BLOCK_HASH: "block"})
        outcome = await SearchResolver(client).search(BLOCK_HASH)

        assert outcome.target == SearchTarget.block_by_hash(BLOCK_HASH)
        assert outcome.data == "block"

    @pytest.mark.asyncio
    async def test_block_wins_when_both_answer_together(self):
        client = FakeClient(blocks={TX_HASH: "block"}, transactions={TX_HASH: "tx"})
        outcome = await SearchResolver(client).search(TX_HASH)

        assert outcome.target.kind == TargetKind.BLOCK_BY_HASH
        assert outcome.data == "block"

    @pytest.mark.asyncio
    async def test_first_affirmative_answer_wins(self):
        client = FakeClient(
            blocks={TX_HASH: "block"},
            transactions={TX_HASH: "tx"},
            delays={"block": 0.2}
        )
        outcome = await SearchResolver(client).search(TX_HASH)

        assert outcome.target.kind == TargetKind.TRANSACTION_BY_HASH
        assert client.cancelled == ["block"]

    @pytest.mark.asyncio
    async def test_slow_affirmative_beats_fast_404(self):
        client = FakeClient(blocks={TX_HASH: "block"}, delays={"block": 0.05})
        outcome = await SearchResolver(client).search(TX_HASH)

        assert outcome.target.kind == TargetKind.BLOCK_BY_HASH

    @pytest.mark.asyncio
    async def test_both_lookups_run_concurrently(self):
        client = FakeClient(
            transactions={TX_HASH: "tx"},
            delays={"block": 0.1, "transaction": 0.1}
        )
        started = asyncio.get_running_loop().time()
        await SearchResolver(client).search(TX_HASH)

        assert asyncio.get_running_loop().time() - started < 0.19

    @pytest.mark.asyncio
    async def test_unknown_hash_is_not_found(self):
        client = FakeClient()
        outcome = await SearchResolver(client).search(TX_HASH)

        assert outcome.target.kind == TargetKind.NOT_FOUND
        assert isinstance(outcome.error, NotFoundError)
        assert {name for name, _ in client.calls} == {"block", "transaction"}

    @pytest.mark.asyncio
    async def test_backend_failure_is_reported(self):
        client = FakeClient(failure=NetworkError("backend down"))
        outcome = await SearchResolver(client).search(TX_HASH)

        assert not outcome.found
        assert isinstance(outcome.error, NetworkError)

    @pytest.mark.asyncio
    async def test_address_lookup(self):
        client = FakeClient(addresses={BECH32_ADDRESS: "account"})
        outcome = await SearchResolver(client).search(BECH32_ADDRESS.upper())

        assert outcome.found
        assert outcome.data == "account"
        assert outcome.path == f"/addresses/{BECH32_ADDRESS}"

    @pytest.mark.asyncio
    async def test_unrecognized_query_makes_no_requests(self):
        client = FakeClient()
        outcome = await SearchResolver(client).search("abc123xyz9")

        assert outcome.target.kind == TargetKind.NOT_FOUND
        assert isinstance(outcome.error, NotFoundError)
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_empty_query_comes_back_as_outcome(self):
        client = FakeClient()
        outcome = await SearchResolver(client).search("")

        assert not outcome.found
        assert isinstance(outcome.error, InvalidQuery)
        assert client.calls == []
