"""
Async chain-data clients.

This module provides:
- ChainSource: the interface the indexer pulls confirmed blocks through
- BitcoinCoreClient: ChainSource over Bitcoin Core's JSON-RPC HTTP interface

Every response is mapped into the typed models of core.models before it
leaves this module; nothing downstream sees raw RPC JSON.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, List, Optional
from contextlib import asynccontextmanager

import aiohttp

from ..core.constants import RPC_TIMEOUT
from ..core.errors import UpstreamUnavailable
from ..core.models import Block

logger = logging.getLogger('spindex.clients')


class ChainSource(ABC):
    """
    Abstract source of confirmed blocks with resolved previous outputs.

    Every method raises UpstreamUnavailable when the data cannot be
    supplied; that is the only transient failure in the system.
    """

    @abstractmethod
    async def get_block_count(self) -> int:
        """Return the height of the current chain tip."""
        pass

    @abstractmethod
    async def get_block_hash(self, height: int) -> str:
        """Return the hex hash of the block at height."""
        pass

    @abstractmethod
    async def get_block(self, block_hash: str) -> Block:
        """Return the block with every input's previous output script resolved."""
        pass


class BitcoinCoreClient(ChainSource):
    """
    Async client for Bitcoin Core's JSON-RPC interface.

    Uses an aiohttp session for non-blocking HTTP. Blocks are fetched with
    getblock verbosity 3, which includes the previous output of every input
    (Bitcoin Core 25 and later).
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        use_ssl: bool = False,
        timeout: float = RPC_TIMEOUT
    ):
        """
        Initialize Bitcoin Core client.

        Args:
            host: Node hostname or IP address
            port: RPC port number
            user: RPC user name
            password: RPC password
            use_ssl: Whether to use HTTPS (for nodes behind a TLS proxy)
            timeout: Per-request timeout in seconds
        """
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_ssl = use_ssl
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None
        self.request_id = 0

    @property
    def url(self) -> str:
        scheme = 'https' if self.use_ssl else 'http'
        return f"{scheme}://{self.host}:{self.port}/"

    @asynccontextmanager
    async def connect(self):
        """
        Async context manager owning the HTTP session.

        Example:
            >>> client = BitcoinCoreClient('localhost', 8332, 'user', 'pass')
            >>> async with client.connect():
            ...     height = await client.get_block_count()
        """
        self.session = aiohttp.ClientSession(
            auth=aiohttp.BasicAuth(self.user, self.password),
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        try:
            yield self
        finally:
            await self.session.close()
            self.session = None

    async def _send_request(self, method: str, params: List[Any]) -> Any:
        """
        Send JSON-RPC request and get response.

        Args:
            method: RPC method name
            params: RPC method parameters

        Returns:
            Result from node response; amounts are parsed as Decimal

        Raises:
            UpstreamUnavailable: If not connected, the node is unreachable,
                the response is not JSON, or the node returned an error
        """
        if not self.session:
            raise UpstreamUnavailable("Not connected to Bitcoin Core")

        self.request_id += 1
        request = {
            "jsonrpc": "1.0",
            "id": self.request_id,
            "method": method,
            "params": params
        }

        logger.debug(f"Sending request to node: {request}")

        try:
            async with self.session.post(self.url, json=request) as response:
                status = response.status
                body = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamUnavailable(f"Bitcoin Core connection error: {e}")

        if status == 401:
            raise UpstreamUnavailable("Bitcoin Core rejected the RPC credentials", code=401)

        try:
            response_data = json.loads(body, parse_float=Decimal)
        except json.JSONDecodeError as e:
            raise UpstreamUnavailable(f"Failed to parse Bitcoin Core response (HTTP {status}): {e}")

        error = response_data.get("error")
        if error:
            raise UpstreamUnavailable(
                f"Bitcoin Core RPC Error: {error.get('message', error)}",
                code=error.get('code')
            )

        return response_data.get("result")

    async def get_block_count(self) -> int:
        """
        Get the height of the most-work fully validated chain.

        Returns:
            Tip height
        """
        return await self._send_request("getblockcount", [])

    async def get_block_hash(self, height: int) -> str:
        """
        Get the hash of the block at a height.

        Args:
            height: Block height

        Returns:
            Block hash (hex)
        """
        return await self._send_request("getblockhash", [height])

    async def get_block(self, block_hash: str) -> Block:
        """
        Get a block with prevout data and map it to typed descriptors.

        Args:
            block_hash: Block hash (hex)

        Returns:
            Block with resolved inputs
        """
        data = await self._send_request("getblock", [block_hash, 3])
        if not isinstance(data, dict):
            raise UpstreamUnavailable(f"Unexpected getblock response for {block_hash}: {type(data).__name__}")
        return Block.from_rpc(data)

    async def get_blockchain_info(self) -> dict:
        """
        Get chain name, tip and sync state of the node.

        Returns:
            getblockchaininfo result
        """
        return await self._send_request("getblockchaininfo", [])
