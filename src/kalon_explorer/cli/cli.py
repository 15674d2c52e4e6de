# src/kalon_explorer/cli/cli.py
import argparse
import asyncio
import logging
import sys
from typing import Any, Awaitable, Dict, List, Optional

from dotenv import load_dotenv

from ..client.http_client import ExplorerClient
from ..exceptions import ConfigError, ExplorerError, FetchError
from ..explorer.formatters import (
    format_age,
    format_amount,
    format_balance,
    format_count,
    format_hash,
    format_hash_rate,
    format_number,
    format_share,
    format_size,
    short_hash,
)
from ..explorer.pagination import build_request, derive_window
from ..explorer.views import VIEWS, View
from ..monitoring.logging_config import LogConfig
from ..monitoring.metrics import MetricsCollector
from ..search.resolver import SearchResolver, TargetKind, is_block_height
from ..sync.scheduler import PollingScheduler
from ..utils.config import ExplorerConfig
from ..utils.logger import get_logger, set_level

logger = get_logger(__name__)


def positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


class CLI:
    def __init__(self):
        self.config: Optional[ExplorerConfig] = None
        self.metrics: Optional[MetricsCollector] = None
        self.log_config: Optional[LogConfig] = None

    def main(self, args: List[str]) -> int:
        parser = self.create_parser()
        args = parser.parse_args(args)

        if not hasattr(args, 'func'):
            parser.print_help()
            return 0

        try:
            self.configure(args)
        except ConfigError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2

        try:
            return asyncio.run(args.func(args)) or 0
        except FetchError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            return 0
        finally:
            if self.log_config:
                self.log_config.teardown()

    def create_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(description='Kalon explorer client')
        parser.add_argument('--api-url', help='Explorer backend URL')
        parser.add_argument('--timeout', type=float, help='Request timeout in seconds')
        parser.add_argument('--config', help='YAML configuration file')
        parser.add_argument('--log-dir', help='Write rotating log files to this directory')
        parser.add_argument('--metrics-port', type=int, help='Expose Prometheus metrics on this port')
        parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
        subparsers = parser.add_subparsers(title='commands', dest='command')

        # Listing commands
        blocks = subparsers.add_parser('blocks', help='List blocks')
        blocks.add_argument('--page', type=positive_int, default=1)
        blocks.add_argument('--limit', type=positive_int)
        blocks.add_argument('--search', help='Filter blocks')
        blocks.set_defaults(func=self.list_blocks)

        txs = subparsers.add_parser('transactions', help='List transactions')
        txs.add_argument('--page', type=positive_int, default=1)
        txs.add_argument('--limit', type=positive_int)
        txs.add_argument('--pending', action='store_true', help='Show the mempool instead')
        txs.set_defaults(func=self.list_transactions)

        # Lookup commands
        block = subparsers.add_parser('block', help='Show a block by height or hash')
        block.add_argument('identifier', help='Block height or hash')
        block.set_defaults(func=self.show_block)

        tx = subparsers.add_parser('tx', help='Show a transaction')
        tx.add_argument('hash', help='Transaction hash')
        tx.set_defaults(func=self.show_transaction)

        address = subparsers.add_parser('address', help='Show an address')
        address.add_argument('address', help='Address')
        address.add_argument('--page', type=positive_int, default=1)
        address.set_defaults(func=self.show_address)

        search = subparsers.add_parser('search', help='Search for a block, transaction or address')
        search.add_argument('query', help='Height, hash or address')
        search.set_defaults(func=self.search)

        # Network commands
        stats = subparsers.add_parser('stats', help='Network statistics')
        stats.set_defaults(func=self.show_stats)

        treasury = subparsers.add_parser('treasury', help='Treasury balance and income')
        treasury.set_defaults(func=self.show_treasury)

        peers = subparsers.add_parser('peers', help='Connected peers')
        peers.set_defaults(func=self.show_peers)

        # Live views
        watch = subparsers.add_parser('watch', help='Keep a view refreshed')
        watch.add_argument('view', choices=sorted(VIEWS), nargs='?', default='dashboard')
        watch.add_argument('--duration', type=float, help='Stop after this many seconds')
        watch.add_argument('--page', type=positive_int, default=1, help='Blocks view page')
        watch.add_argument('--search', help='Blocks view filter')
        watch.set_defaults(func=self.watch)

        return parser

    def configure(self, args):
        load_dotenv()
        self.config = ExplorerConfig(args.config)
        if args.api_url:
            self.config.update('api.url', args.api_url)
        if args.timeout is not None:
            self.config.update('api.timeout', args.timeout)
        self.config.validate()

        log_dir = args.log_dir or self.config.get('monitoring.log_dir')
        if log_dir:
            self.log_config = LogConfig(log_dir)
            self.log_config.setup_logging()
        if args.verbose:
            set_level(logging.DEBUG)
        else:
            set_level(getattr(logging, str(self.config.get('monitoring.log_level', 'WARNING')).upper(), logging.WARNING))

        metrics_port = args.metrics_port or self.config.get('monitoring.metrics_port')
        if metrics_port:
            self.metrics = MetricsCollector()
            self.metrics.serve(int(metrics_port))

    def client(self) -> ExplorerClient:
        return ExplorerClient(self.config.api_url, self.config.timeout)

    @property
    def symbol(self) -> str:
        return self.config.currency_symbol

    def _page_request(self, args, **filters) -> Dict[str, Any]:
        return build_request(args.page, getattr(args, 'limit', None) or self.config.page_size, filters)

    def _print_window(self, page, params: Dict[str, Any], indent: str = ""):
        if page.total is not None:
            print(f"{indent}{derive_window(page.total, params['limit'], params['page'])}")

    async def list_blocks(self, args):
        params = self._page_request(args, search=args.search)
        async with self.client() as client:
            page = await client.get_blocks(**params)
        for block in page.items:
            print(f"#{block.number}  {short_hash(block.hash)}  {format_age(block.timestamp)}  "
                  f"{short_hash(block.miner)}  {block.tx_count} txs  {format_size(block.size)}  "
                  f"{format_number(block.difficulty)}")
        if not page.items:
            print("No blocks found")
        self._print_window(page, params)

    async def list_transactions(self, args):
        params = self._page_request(args)
        async with self.client() as client:
            if args.pending:
                txs, page = await client.get_pending_transactions(), None
            else:
                page = await client.get_transactions(**params)
                txs = page.items
        for tx in txs:
            print(f"{short_hash(tx.hash)}  {format_balance(tx.amount, self.symbol)}  {format_age(tx.timestamp)}")
        if not txs:
            print("No transactions found")
        if page is not None:
            self._print_window(page, params)

    async def show_block(self, args):
        async with self.client() as client:
            if is_block_height(args.identifier):
                block = await client.get_block_by_height(int(args.identifier))
            else:
                block = await client.get_block_by_hash(args.identifier)
        print(f"Block #{block.number}")
        print(f"  Hash: {format_hash(block.hash)}")
        print(f"  Parent: {format_hash(block.parent_hash)}")
        print(f"  Age: {format_age(block.timestamp)}")
        print(f"  Miner: {block.miner}")
        print(f"  Transactions: {block.tx_count}")
        print(f"  Size: {format_size(block.size)}")
        print(f"  Difficulty: {format_number(block.difficulty)}")

    async def show_transaction(self, args):
        async with self.client() as client:
            tx = await client.get_transaction(args.hash)
        print(f"Transaction {format_hash(tx.hash)}")
        print(f"  From: {tx.from_address or 'N/A'}")
        print(f"  To: {tx.to_address or 'N/A'}")
        print(f"  Amount: {format_balance(tx.amount, self.symbol)}")
        print(f"  Fee: {format_balance(tx.fee, self.symbol)}")
        print(f"  Block: {tx.block_number if tx.block_number is not None else 'pending'}")
        print(f"  Age: {format_age(tx.timestamp)}")

    async def show_address(self, args):
        params = self._page_request(args)
        async with self.client() as client:
            address = await client.get_address(args.address)
            page = await client.get_address_transactions(args.address, **params)
        print(f"Address {address.address}")
        print(f"  Balance: {format_balance(address.balance, self.symbol)}")
        print(f"  Transactions: {format_number(address.tx_count)}")
        for tx in page.items:
            print(f"  {short_hash(tx.hash)}  {format_balance(tx.amount, self.symbol)}  {format_age(tx.timestamp)}")
        self._print_window(page, params, indent="  ")

    async def search(self, args) -> int:
        async with self.client() as client:
            resolver = SearchResolver(client, address_prefixes=self.config.address_prefixes)
            outcome = await resolver.search(args.query)
        if not outcome.found:
            print(f"Not found: {outcome.error}")
            return 1
        kind = outcome.target.kind
        if kind in (TargetKind.BLOCK_BY_HEIGHT, TargetKind.BLOCK_BY_HASH):
            print(f"Block #{outcome.data.number} -> {outcome.path}")
        elif kind == TargetKind.TRANSACTION_BY_HASH:
            print(f"Transaction {short_hash(outcome.data.hash)} -> {outcome.path}")
        else:
            print(f"Address {outcome.target.value} ({format_balance(outcome.data.balance, self.symbol)}) -> {outcome.path}")
        return 0

    async def show_stats(self, args):
        async with self.client() as client:
            stats = await client.get_network_stats()
        print(f"Block Height: {format_number(stats.block_height)}")
        print(f"Hash Rate: {format_hash_rate(stats.network_hash_rate)}")
        print(f"Total Blocks: {format_number(stats.total_blocks)}")
        print(f"Difficulty: {format_number(stats.difficulty)}")
        print(f"Peers: {format_count(stats.peers)}")
        print(f"Transactions: {format_number(stats.total_txs)}")
        print(f"Pending: {format_number(stats.mempool_size)}")
        print(f"Addresses: {format_number(stats.total_addresses)}")

    async def show_treasury(self, args):
        async with self.client() as client:
            treasury = await client.get_treasury()
        print(f"Treasury {treasury.address or ''}".rstrip())
        print(f"  Balance: {format_amount(treasury.balance, self.symbol)}")
        print(f"  Block Fees: {format_amount(treasury.block_fees, self.symbol)} "
              f"({format_share(treasury.block_fees, treasury.total_income)})")
        print(f"  Transaction Fees: {format_amount(treasury.tx_fees, self.symbol)} "
              f"({format_share(treasury.tx_fees, treasury.total_income)})")

    async def show_peers(self, args):
        async with self.client() as client:
            peers = await client.get_peers()
        for peer in peers:
            print(f"{peer.id or 'unknown'}  {peer.address or 'N/A'}  {peer.version or ''}".rstrip())
        if not peers:
            print("No peers")

    async def watch(self, args):
        async with self.client() as client:
            scheduler = PollingScheduler(
                client.fetch_key,
                intervals=self.config.poll_intervals,
                metrics=self.metrics
            )
            options = {"currency_symbol": self.symbol, "on_change": self.print_view}
            if args.view == 'blocks':
                options.update(page_size=self.config.page_size, search=args.search)
            view = VIEWS[args.view](scheduler, **options)
            if args.view == 'blocks' and args.page > 1:
                view.listing.go_to(args.page)
            view.open()
            try:
                await self._wait(args.duration)
            finally:
                view.close()
                await scheduler.close()

    def _wait(self, duration: Optional[float]) -> Awaitable:
        if duration:
            return asyncio.sleep(duration)
        return asyncio.Event().wait()

    def print_view(self, view: View):
        if sys.stdout.isatty():
            print("\033[2J\033[H", end="")
        print("\n".join(view.render()))
        print()


def main():
    cli = CLI()
    try:
        return cli.main(sys.argv[1:])
    except ExplorerError as e:
        logger.error("Unexpected explorer error: %s", e)
        return 1

if __name__ == "__main__":
    sys.exit(main())
