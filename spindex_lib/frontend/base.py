"""
Abstract base class defining the frontend interface for the indexer.

This module provides a contract that all frontend implementations must follow,
so the same application can report to a terminal, a log-only daemon or a
service wrapper.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..core.models import SilentBlock
from .events import EventBus


class FrontendInterface(ABC):
    """
    Abstract base class defining the contract for all frontend implementations.

    Frontend implementations handle all user-facing output:
    - Connection and sync progress display
    - Silent block presentation
    - Error reporting
    """

    # ========================================================================
    # Progress Display Methods
    # ========================================================================

    @abstractmethod
    def show_connection_info(self, host: str, port: int, network_name: str):
        """
        Display connection information.

        Args:
            host: Node hostname
            port: Node RPC port
            network_name: Display name of the network
        """
        pass

    @abstractmethod
    def show_sync_start(self, start: int, end: Optional[int]):
        """
        Display sync start message.

        Args:
            start: First height to index
            end: Last height to index (None when following the tip)
        """
        pass

    @abstractmethod
    def show_block_indexed(self, height: int, block_hash: str, tx_count: int, size: int):
        """
        Display a newly indexed block.

        Args:
            height: Block height
            block_hash: Block hash (hex)
            tx_count: Number of silent transactions in the block
            size: Encoded silent block size in bytes
        """
        pass

    @abstractmethod
    def show_sync_complete(self, indexed: int):
        """
        Display sync completion message.

        Args:
            indexed: Number of blocks indexed
        """
        pass

    # ========================================================================
    # Results Display Methods
    # ========================================================================

    @abstractmethod
    def show_silent_block(self, silent_block: SilentBlock, as_json: bool = False):
        """
        Display a decoded silent block.

        Args:
            silent_block: Block to display
            as_json: Print machine-readable JSON instead of a summary
        """
        pass

    @abstractmethod
    def show_error(self, message: str):
        """
        Display an error message.

        Args:
            message: Error text
        """
        pass

    # ========================================================================
    # Event Wiring
    # ========================================================================

    @abstractmethod
    def attach(self, event_bus: EventBus):
        """
        Subscribe to application events.

        Args:
            event_bus: Bus the application emits on
        """
        pass
