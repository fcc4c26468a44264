#!/usr/bin/env python3
"""
Silent Payments Block Indexer - Build and serve BIP-352 silent blocks
from a Bitcoin Core node.

Modular async version using spindex_lib
"""

import asyncio
import argparse
import sys
import logging

from spindex_lib import __version__
from spindex_lib.config import load_config, ConfigurationError, IndexerConfig
from spindex_lib.core.constants import BITCOIN_RPC_PORTS, NETWORKS
from spindex_lib.core.errors import MalformedInput, NoKeyMaterial, SilentIndexError
from spindex_lib.core.scantweak import compute_scan_tweak
from spindex_lib.core.silent_block import decode_silent_block
from spindex_lib.backend.clients import BitcoinCoreClient
from spindex_lib.backend.storage import SilentBlockStore
from spindex_lib.frontend.cli import CLIFrontend
from spindex_lib.frontend.events import EventBus, create_network_connected_event
from spindex_lib.app import SilentBlockIndexerApp
from spindex_lib.utils import get_network_display_name, validate_block_hash

# Set up logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger('spindex')


def build_config(args) -> IndexerConfig:
    """
    Load file/environment configuration and apply command-line overrides.

    Args:
        args: Parsed command-line arguments

    Returns:
        Validated IndexerConfig
    """
    config = load_config(args.config)

    if args.network and args.network != config.network:
        config.network = args.network
        if args.rpc_port is None:
            config.rpc.port = BITCOIN_RPC_PORTS[args.network]

    overrides = [
        (config.rpc, 'host', args.rpc_host),
        (config.rpc, 'port', args.rpc_port),
        (config.rpc, 'user', args.rpc_user),
        (config.rpc, 'password', args.rpc_password),
        (config, 'database', args.database),
    ]
    for target, attr, value in overrides:
        if value is not None:
            setattr(target, attr, value)
    if args.rpc_ssl:
        config.rpc.use_ssl = True

    config.validate()
    return config


def create_client(config: IndexerConfig) -> BitcoinCoreClient:
    return BitcoinCoreClient(
        host=config.rpc.host,
        port=config.rpc.port,
        user=config.rpc.user,
        password=config.rpc.password,
        use_ssl=config.rpc.use_ssl,
        timeout=config.rpc.timeout
    )


async def run_index(args, config: IndexerConfig, frontend: CLIFrontend) -> int:
    """Sync a height range, or follow the chain tip, into the store."""
    client = create_client(config)
    frontend.show_connection_info(
        config.rpc.host, config.rpc.port, get_network_display_name(config.network)
    )

    event_bus = EventBus()
    frontend.attach(event_bus)

    with SilentBlockStore(config.database) as store:
        async with client.connect():
            info = await client.get_blockchain_info()
            expected_chain = NETWORKS[config.network]['chain']
            if info.get('chain') != expected_chain:
                frontend.show_error(
                    f"Node is on chain '{info.get('chain')}', expected '{expected_chain}' for {config.network}"
                )
                return 1
            logger.info(f"Connected to {client.url} ({info.get('chain')}, {info.get('blocks')} blocks)")
            await event_bus.emit(create_network_connected_event(client.url, info['chain'], info.get('blocks', 0)))

            app = SilentBlockIndexerApp(
                client=client,
                store=store,
                event_bus=event_bus,
                batch_size=config.batch_size,
                max_retries=config.max_retries,
                retry_delay=config.retry_delay
            )

            start = args.start if args.start is not None else app.next_height(config.start_height)

            if args.follow:
                frontend.show_sync_start(start, None)
                await app.follow(start=start, poll_interval=config.poll_interval)
                return 0

            end = args.end if args.end is not None else await client.get_block_count()
            frontend.show_sync_start(start, end)
            indexed = await app.sync(start, end)
            frontend.show_sync_complete(indexed)
            return 0


def run_get(args, config: IndexerConfig, frontend: CLIFrontend) -> int:
    """Print a stored silent block as hex."""
    with SilentBlockStore(config.database) as store:
        if args.hash is not None:
            if not validate_block_hash(args.hash):
                frontend.show_error("Invalid block hash format")
                return 1
            data = store.get_by_hash(args.hash)
            key = args.hash
        else:
            data = store.get_by_height(args.height)
            key = f"height {args.height}"

    if data is None:
        frontend.show_error(f"No silent block stored for {key}")
        return 1

    print(data.hex())
    return 0


def run_decode(args, frontend: CLIFrontend) -> int:
    """Decode a silent block given as hex."""
    try:
        data = bytes.fromhex(args.hex.strip())
    except ValueError:
        frontend.show_error("Input is not valid hex")
        return 1

    try:
        silent_block = decode_silent_block(data)
    except MalformedInput as e:
        frontend.show_error(f"Malformed silent block: {e}")
        return 1

    frontend.show_silent_block(silent_block, as_json=not args.summary)
    return 0


async def run_tweak(args, config: IndexerConfig, frontend: CLIFrontend) -> int:
    """Compute the scan tweak of one transaction of a block."""
    if not validate_block_hash(args.block) or not validate_block_hash(args.txid):
        frontend.show_error("Block hash and txid must be 64 hex characters")
        return 1

    client = create_client(config)
    async with client.connect():
        block = await client.get_block(args.block)

    txid = bytes.fromhex(args.txid)
    tx = next((t for t in block.transactions if t.txid == txid), None)
    if tx is None:
        frontend.show_error(f"Transaction {args.txid} not found in block {args.block}")
        return 1

    try:
        tweak = compute_scan_tweak(tx.txid, tx.inputs, tx.outputs)
    except NoKeyMaterial as e:
        frontend.show_error(f"No scan tweak for {args.txid}: {e}")
        return 1

    print(tweak.hex())
    return 0


async def async_main(args) -> int:
    """
    Async main function - dispatches the selected subcommand.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for error)
    """
    frontend = CLIFrontend(quiet=args.quiet)

    if args.command == 'decode':
        return run_decode(args, frontend)

    try:
        config = build_config(args)
    except ConfigurationError as e:
        frontend.show_error(str(e))
        return 1

    try:
        if args.command == 'get':
            return run_get(args, config, frontend)
        if args.command == 'tweak':
            return await run_tweak(args, config, frontend)
        return await run_index(args, config, frontend)
    except SilentIndexError as e:
        logger.error(f"Error: {e}")
        frontend.show_error(str(e))
        return 1


def main():
    """Main entry point - parse arguments and run async main."""
    parser = argparse.ArgumentParser(
        description='Silent Payments Block Indexer - Build BIP-352 silent blocks from Bitcoin Core',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Index from the last stored block to the current tip
  %(prog)s index --config spindex.yaml

  # Index a fixed range on regtest and keep following the tip
  %(prog)s --network regtest index --start 100 --follow

  # Print the stored silent block of a height
  %(prog)s get --height 840000

  # Decode a silent block
  %(prog)s decode 0001...
        """
    )

    # Connection options
    conn_group = parser.add_argument_group('connection options')
    conn_group.add_argument('--config', '-c',
                           help='YAML config file with bitcoinCore/indexer sections')
    conn_group.add_argument('--rpc-host', '-H',
                           help='Bitcoin Core RPC host (default: from config or 127.0.0.1)')
    conn_group.add_argument('--rpc-port', '-p', type=int,
                           help='Bitcoin Core RPC port (default: network RPC port)')
    conn_group.add_argument('--rpc-user', '-u',
                           help='Bitcoin Core RPC user')
    conn_group.add_argument('--rpc-password', '-P',
                           help='Bitcoin Core RPC password')
    conn_group.add_argument('--rpc-ssl', action='store_true',
                           help='Connect over HTTPS (default: HTTP)')

    # Storage and output options
    parser.add_argument('--database', '-d',
                       help='SQLite database file (default: silent_blocks.db)')
    parser.add_argument('--quiet', '-q', action='store_true',
                       help='Disable progress output')

    # Network and logging options
    parser.add_argument('--network', '-n', choices=list(NETWORKS.keys()),
                       help='Bitcoin network to use (default: from config or mainnet)')
    parser.add_argument('--log-level', '-l',
                       choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                       default='INFO', help='Logging level (default: INFO)')
    parser.add_argument('--version', '-v', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command', required=True)

    index_parser = subparsers.add_parser('index', help='Index blocks from Bitcoin Core')
    index_parser.add_argument('--start', '-b', type=int,
                              help='First height to index (default: after the last stored block)')
    index_parser.add_argument('--end', '-e', type=int,
                              help='Last height to index (default: current tip)')
    index_parser.add_argument('--follow', '-f', action='store_true',
                              help='Keep indexing new blocks as they arrive')

    get_parser = subparsers.add_parser('get', help='Print a stored silent block as hex')
    get_target = get_parser.add_mutually_exclusive_group(required=True)
    get_target.add_argument('--height', type=int, help='Block height')
    get_target.add_argument('--hash', help='Block hash')

    decode_parser = subparsers.add_parser('decode', help='Decode a silent block')
    decode_parser.add_argument('hex', help='Silent block as hex')
    decode_parser.add_argument('--summary', action='store_true',
                               help='Print a readable summary instead of JSON')

    tweak_parser = subparsers.add_parser('tweak', help='Compute the scan tweak of one transaction')
    tweak_parser.add_argument('--block', required=True, help='Hash of the block containing the transaction')
    tweak_parser.add_argument('--txid', required=True, help='Transaction id')

    args = parser.parse_args()

    # Configure logging - set root logger level so all spindex.* loggers inherit it
    logging.getLogger().setLevel(getattr(logging, args.log_level))
    logger.setLevel(getattr(logging, args.log_level))

    if args.rpc_port is not None and not (1 <= args.rpc_port <= 65535):
        parser.error(f"Port must be between 1 and 65535, got {args.rpc_port}")
    if args.command == 'index' and args.follow and args.end is not None:
        parser.error("--follow cannot be combined with --end")

    try:
        exit_code = asyncio.run(async_main(args))
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
