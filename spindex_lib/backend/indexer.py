"""
Block indexer: turns confirmed blocks into silent blocks.

Indexing a block is a pure, synchronous computation over already fetched
data. Blocks share no state, so several may be indexed in parallel; the
caller is responsible for storing the results in height order.
"""

import asyncio
import logging
from typing import List, Optional

from ..core.constants import SILENT_BLOCK_TYPE_FULL
from ..core.crypto import CurveBackend, DEFAULT_BACKEND
from ..core.errors import NoKeyMaterial
from ..core.models import Block, BlockTransaction, SilentBlock, SilentTransaction
from ..core.scantweak import compute_scan_tweaks
from ..core.scripts import extract_eligible_outputs

logger = logging.getLogger('spindex.indexer')


class BlockIndexer:
    """
    Builds one SilentBlock per confirmed block.

    A transaction is included only when it has at least one eligible output
    and its scan tweak could be computed. The indexer never retries: any
    exception other than a per-transaction NoKeyMaterial propagates to the
    caller, who decides whether to retry the whole block.
    """

    def __init__(
        self,
        backend: Optional[CurveBackend] = None,
        block_type: int = SILENT_BLOCK_TYPE_FULL
    ):
        """
        Initialize the indexer.

        Args:
            backend: Curve arithmetic backend (coincurve by default)
            block_type: Type tag written into every silent block
        """
        self.backend = backend or DEFAULT_BACKEND
        self.block_type = block_type

    def index_transaction(self, tx: BlockTransaction) -> Optional[SilentTransaction]:
        """
        Build the silent record of a single transaction.

        Args:
            tx: Transaction with resolved inputs

        Returns:
            SilentTransaction, or None if the transaction does not qualify
        """
        if tx.is_coinbase:
            return None

        eligible_outputs = extract_eligible_outputs(tx.outputs)
        if not eligible_outputs:
            return None

        try:
            scan_tweak = compute_scan_tweaks(tx.txid, tx.inputs, tx.outputs, self.backend)[0]
        except NoKeyMaterial as e:
            logger.debug(f"Skipping transaction {tx.txid.hex()}: {e}")
            return None

        return SilentTransaction(
            txid=tx.txid,
            outputs=tuple(eligible_outputs),
            scan_tweak=scan_tweak
        )

    def index_block(self, block: Block) -> SilentBlock:
        """
        Build the silent block of a confirmed block.

        Args:
            block: Block with every input's previous output resolved

        Returns:
            SilentBlock with qualifying transactions in block order (possibly empty)
        """
        records: List[SilentTransaction] = []
        for tx in block.transactions:
            record = self.index_transaction(tx)
            if record is not None:
                records.append(record)

        logger.debug(
            f"Block {block.height} ({block.hash}): {len(records)} of "
            f"{len(block.transactions)} transactions qualify"
        )
        return SilentBlock(type=self.block_type, transactions=tuple(records))

    def submit(self, block: Block) -> 'asyncio.Future[SilentBlock]':
        """
        Index a block on the event loop's default executor.

        Must be called from within a running event loop.

        Args:
            block: Block to index

        Returns:
            Future resolved with the SilentBlock, or with the indexing error
        """
        loop = asyncio.get_running_loop()
        return loop.run_in_executor(None, self.index_block, block)
