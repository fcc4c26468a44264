"""
Command-line interface frontend for the indexer.

This module implements the FrontendInterface for terminal output,
handling all print() operations with proper formatting.
"""

import json
import sys
import time
from typing import Optional

from .base import FrontendInterface
from .events import EventBus, Event, EventType
from ..core.models import SilentBlock
from ..utils import format_btc, truncate_hex


class CLIFrontend(FrontendInterface):
    """
    Command-line interface frontend implementation.

    Provides terminal output with formatted block lines and a sync summary.
    """

    def __init__(self, quiet: bool = False):
        """
        Initialize CLI frontend.

        Args:
            quiet: If True, suppress non-essential output (e.g., per-block lines)
        """
        self.quiet = quiet
        self.sync_start_time: Optional[float] = None

    def show_connection_info(self, host: str, port: int, network_name: str):
        """Display connection information."""
        if not self.quiet:
            print(f"Connecting to Bitcoin Core at {host}:{port} ({network_name})")

    def show_sync_start(self, start: int, end: Optional[int]):
        """Display sync start message."""
        self.sync_start_time = time.time()
        if self.quiet:
            return
        target = f"{end}" if end is not None else "chain tip (following)"
        print(f"\nIndexing from block {start} to {target}\n")

    def show_block_indexed(self, height: int, block_hash: str, tx_count: int, size: int):
        """Display a newly indexed block."""
        if self.quiet:
            return
        print(f"  #{height:<8} {truncate_hex(block_hash, 20)}  {tx_count:>5} tx  {size:>8,} bytes")

    def show_sync_complete(self, indexed: int):
        """Display sync completion message."""
        elapsed = time.time() - self.sync_start_time if self.sync_start_time else 0.0
        print(f"\nIndexed {indexed} block(s) in {elapsed:.1f}s")

    def show_silent_block(self, silent_block: SilentBlock, as_json: bool = False):
        """Display a decoded silent block."""
        if as_json:
            print(json.dumps(silent_block.to_dict(), indent=2))
            return

        print(f"Silent block type {silent_block.type}, {len(silent_block.transactions)} transaction(s)")
        for tx in silent_block.transactions:
            print(f"\n  txid:       {tx.txid.hex()}")
            print(f"  scan tweak: {tx.scan_tweak.hex()}")
            for output in tx.outputs:
                print(f"    vout {output.vout:<4} {output.pubkey.hex()}  {format_btc(output.value)}")

    def show_error(self, message: str):
        """Display an error message."""
        print(f"Error: {message}", file=sys.stderr)

    def attach(self, event_bus: EventBus):
        """Subscribe to application events."""

        async def on_block_indexed(event: Event):
            data = event.data or {}
            self.show_block_indexed(data['height'], data['hash'], data['tx_count'], data['size'])

        async def on_block_retry(event: Event):
            data = event.data or {}
            if not self.quiet:
                print(f"  block {data.get('height')}: retry {data.get('attempt')} ({data.get('error')})")

        event_bus.on(EventType.BLOCK_INDEXED, on_block_indexed)
        event_bus.on(EventType.BLOCK_RETRY, on_block_retry)
