"""
Main application orchestrator for silent block indexing.

This module coordinates the chain source, the block indexer, the silent
block store and the event bus: blocks are fetched concurrently, indexed,
and stored strictly in height order.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from .core.constants import DEFAULT_BATCH_SIZE, DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY
from .core.errors import UpstreamUnavailable
from .core.models import Block, SilentBlock
from .core.silent_block import encode_silent_block, decode_silent_block
from .backend.clients import ChainSource
from .backend.indexer import BlockIndexer
from .backend.storage import SilentBlockStore
from .frontend.events import EventBus, Event, EventType, create_block_indexed_event, create_network_error_event

logger = logging.getLogger('spindex.app')


class SilentBlockIndexerApp:
    """
    Indexes confirmed blocks from a ChainSource into a SilentBlockStore.

    Coordinates:
    - ChainSource for block data (retried on UpstreamUnavailable)
    - BlockIndexer for silent block construction
    - SilentBlockStore for persistence
    - EventBus for progress reporting and completion signals
    """

    def __init__(
        self,
        client: ChainSource,
        store: SilentBlockStore,
        indexer: Optional[BlockIndexer] = None,
        event_bus: Optional[EventBus] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY
    ):
        """
        Initialize the application.

        Args:
            client: Connected chain source
            store: Silent block store
            indexer: Block indexer (default BlockIndexer())
            event_bus: Optional EventBus for emitting progress events
            batch_size: Number of blocks fetched concurrently
            max_retries: Retries per block on UpstreamUnavailable
            retry_delay: Seconds to wait between retries
        """
        self.client = client
        self.store = store
        self.indexer = indexer or BlockIndexer()
        self.event_bus = event_bus or EventBus()
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        self._height_waiters: Dict[int, List[asyncio.Future]] = {}
        self._stop_event = asyncio.Event()

    async def _fetch_block(self, height: int) -> Block:
        """
        Fetch a block, retrying the whole fetch on UpstreamUnavailable.

        Args:
            height: Block height

        Returns:
            Block with resolved inputs

        Raises:
            UpstreamUnavailable: If every attempt failed
        """
        attempt = 0
        while True:
            try:
                block_hash = await self.client.get_block_hash(height)
                block = await self.client.get_block(block_hash)
                if block.height != height:
                    raise UpstreamUnavailable(
                        f"Node returned block {block.height} when asked for {height}"
                    )
                return block
            except UpstreamUnavailable as e:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error(f"Giving up on block {height} after {attempt} attempts: {e}")
                    await self.event_bus.emit(Event(
                        event_type=EventType.BLOCK_ERROR,
                        data={'height': height, 'error': str(e)},
                        source='app'
                    ))
                    raise
                logger.warning(f"Block {height} fetch failed ({e}), retry {attempt}/{self.max_retries}")
                await self.event_bus.emit(Event(
                    event_type=EventType.BLOCK_RETRY,
                    data={'height': height, 'attempt': attempt, 'error': str(e)},
                    source='app'
                ))
                await asyncio.sleep(self.retry_delay)

    async def _fetch_batch(self, heights: range) -> Tuple[List[Block], Optional[BaseException]]:
        """
        Fetch a batch of heights concurrently.

        When one height gives up, the fetches still running are cancelled
        and awaited before returning.

        Returns:
            (blocks, error): blocks for the contiguous run of heights that
            were fetched from the start of the batch, and the first failure
            (None if every fetch succeeded)
        """
        tasks = [asyncio.ensure_future(self._fetch_block(height)) for height in heights]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        blocks = []
        for task in tasks:
            if task.cancelled() or task.exception() is not None:
                break
            blocks.append(task.result())

        errors = [
            task.exception() for task in tasks
            if not task.cancelled() and task.exception() is not None
        ]
        return blocks, (errors[0] if errors else None)

    async def _store_block(self, block: Block) -> SilentBlock:
        """Index one fetched block, persist it and announce it."""
        silent_block = await self.indexer.submit(block)
        data = encode_silent_block(silent_block)
        self.store.put(block.height, block.hash, data)

        logger.info(
            f"Indexed block {block.height} ({block.hash}): "
            f"{len(silent_block.transactions)} silent transaction(s), {len(data)} bytes"
        )
        await self.event_bus.emit(create_block_indexed_event(
            block.height, block.hash, len(silent_block.transactions), len(data)
        ))
        self._resolve_waiters(block.height, silent_block)
        return silent_block

    def _resolve_waiters(self, height: int, silent_block: SilentBlock) -> None:
        for future in self._height_waiters.pop(height, []):
            if not future.done():
                future.set_result(silent_block)

    async def index_height(self, height: int) -> SilentBlock:
        """
        Fetch, index and store a single block.

        Args:
            height: Block height

        Returns:
            The stored SilentBlock
        """
        block = await self._fetch_block(height)
        return await self._store_block(block)

    async def sync(self, start: int, end: int) -> int:
        """
        Index every block in [start, end].

        Blocks of a batch are fetched concurrently; they are indexed and
        stored one by one in height order so the store never has gaps
        below its latest height. If a fetch gives up, the blocks fetched
        below it are stored before the error is raised.

        Args:
            start: First height (inclusive)
            end: Last height (inclusive)

        Returns:
            Number of blocks indexed
        """
        if end < start:
            return 0

        total = end - start + 1
        logger.info(f"Syncing blocks {start}..{end} ({total} blocks)")
        await self.event_bus.emit(Event(
            event_type=EventType.SYNC_STARTED,
            data={'start': start, 'end': end},
            source='app'
        ))

        indexed = 0
        try:
            for batch_start in range(start, end + 1, self.batch_size):
                if self._stop_event.is_set():
                    break
                batch_end = min(batch_start + self.batch_size - 1, end)
                blocks, error = await self._fetch_batch(range(batch_start, batch_end + 1))
                for block in blocks:
                    await self._store_block(block)
                    indexed += 1
                if error is not None:
                    raise error

                await self.event_bus.emit(Event(
                    event_type=EventType.SYNC_PROGRESS,
                    data={'progress': indexed / total, 'height': batch_end, 'indexed': indexed},
                    source='app'
                ))
        except Exception as e:
            logger.error(f"Sync error: {e}")
            await self.event_bus.emit(Event(
                event_type=EventType.SYNC_ERROR,
                data={'error': str(e), 'indexed': indexed},
                source='app'
            ))
            raise

        await self.event_bus.emit(Event(
            event_type=EventType.SYNC_COMPLETE,
            data={'start': start, 'end': end, 'indexed': indexed},
            source='app'
        ))
        return indexed

    def next_height(self, start: int = 0) -> int:
        """Return the first height not yet indexed, never below start."""
        latest = self.store.latest_height()
        if latest is None:
            return start
        return max(latest + 1, start)

    async def follow(self, start: int = 0, poll_interval: float = 5.0) -> None:
        """
        Index up to the tip, then keep indexing new blocks until stop() is called.

        Args:
            start: Height to begin at when the store is empty
            poll_interval: Seconds between tip checks
        """
        self._stop_event.clear()
        while not self._stop_event.is_set():
            try:
                tip = await self.client.get_block_count()
            except UpstreamUnavailable as e:
                logger.warning(f"Could not query chain tip: {e}")
                await self.event_bus.emit(create_network_error_event(str(e)))
                tip = None

            if tip is not None:
                next_height = self.next_height(start)
                if tip >= next_height:
                    try:
                        await self.sync(next_height, tip)
                        continue
                    except UpstreamUnavailable as e:
                        logger.warning(f"Sync to tip {tip} interrupted, resuming at next poll: {e}")
                        await self.event_bus.emit(create_network_error_event(str(e)))

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=poll_interval)
            except asyncio.TimeoutError:
                pass

    def stop(self) -> None:
        """Ask a running follow() or sync() to return after the current block/batch."""
        self._stop_event.set()

    def wait_for_height(self, height: int) -> "asyncio.Future[SilentBlock]":
        """
        Completion signal for a height.

        Returns:
            Future resolved with the SilentBlock once height has been
            indexed. Heights already in the store resolve immediately.
            Cancelling the future withdraws the wait.
        """
        future = asyncio.get_running_loop().create_future()
        stored = self.store.get_by_height(height)
        if stored is not None:
            future.set_result(decode_silent_block(stored))
        else:
            self._height_waiters.setdefault(height, []).append(future)
            future.add_done_callback(lambda done: self._discard_waiter(height, done))
        return future

    def _discard_waiter(self, height: int, future: asyncio.Future) -> None:
        if not future.cancelled():
            return
        waiters = self._height_waiters.get(height)
        if waiters and future in waiters:
            waiters.remove(future)
            if not waiters:
                del self._height_waiters[height]
