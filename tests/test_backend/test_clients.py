"""
Unit tests for backend/clients.py - Bitcoin Core JSON-RPC client.

Tests include:
- Request framing
- Error mapping to UpstreamUnavailable (transport, auth, RPC error, bad JSON)
- getblock mapping to typed Block models
"""

import unittest
import asyncio
import json
import aiohttp
from spindex_lib.backend.clients import BitcoinCoreClient, ChainSource
from spindex_lib.core.errors import UpstreamUnavailable
from spindex_lib.core.models import Block
from tests.fixtures import rpc_block


class FakeResponse:
    """Minimal stand-in for aiohttp's response context manager."""

    def __init__(self, status: int, body: str):
        self.status = status
        self._body = body

    async def text(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Records posted requests and replays canned responses."""

    def __init__(self, status: int = 200, body: str = '', error: Exception = None):
        self.status = status
        self.body = body
        self.error = error
        self.requests = []

    def post(self, url, json=None):
        self.requests.append((url, json))
        if self.error:
            raise self.error
        return FakeResponse(self.status, self.body)


def rpc_body(result=None, error=None) -> str:
    return json.dumps({'result': result, 'error': error, 'id': 1}, default=float)


class TestBitcoinCoreClient(unittest.TestCase):
    """Test JSON-RPC request handling."""

    def setUp(self):
        self.client = BitcoinCoreClient('127.0.0.1', 18443, 'user', 'pass')

    def test_is_chain_source(self):
        """Test the client implements ChainSource."""
        self.assertIsInstance(self.client, ChainSource)

    def test_url(self):
        """Test URL scheme follows use_ssl."""
        self.assertEqual(self.client.url, 'http://127.0.0.1:18443/')
        ssl_client = BitcoinCoreClient('node', 443, 'u', 'p', use_ssl=True)
        self.assertEqual(ssl_client.url, 'https://node:443/')

    def test_not_connected(self):
        """Test requests before connect() raise UpstreamUnavailable."""
        with self.assertRaises(UpstreamUnavailable):
            asyncio.run(self.client.get_block_count())

    def test_request_framing(self):
        """Test method, params and incrementing ids are sent."""
        self.client.session = FakeSession(body=rpc_body(result=840000))

        async def run_test():
            first = await self.client.get_block_count()
            await self.client.get_block_hash(5)
            return first

        self.assertEqual(asyncio.run(run_test()), 840000)

        requests = self.client.session.requests
        self.assertEqual(requests[0][0], 'http://127.0.0.1:18443/')
        self.assertEqual(requests[0][1]['method'], 'getblockcount')
        self.assertEqual(requests[0][1]['params'], [])
        self.assertEqual(requests[1][1]['method'], 'getblockhash')
        self.assertEqual(requests[1][1]['params'], [5])
        self.assertEqual(requests[1][1]['id'], requests[0][1]['id'] + 1)

    def test_rpc_error(self):
        """Test an error member raises UpstreamUnavailable with its code."""
        self.client.session = FakeSession(
            status=500,
            body=rpc_body(error={'code': -8, 'message': 'Block height out of range'})
        )
        with self.assertRaises(UpstreamUnavailable) as ctx:
            asyncio.run(self.client.get_block_hash(10**9))
        self.assertEqual(ctx.exception.code, -8)
        self.assertIn('Block height out of range', str(ctx.exception))

    def test_unauthorized(self):
        """Test HTTP 401 raises UpstreamUnavailable."""
        self.client.session = FakeSession(status=401, body='')
        with self.assertRaises(UpstreamUnavailable) as ctx:
            asyncio.run(self.client.get_block_count())
        self.assertEqual(ctx.exception.code, 401)

    def test_invalid_json(self):
        """Test a non-JSON body raises UpstreamUnavailable."""
        self.client.session = FakeSession(status=503, body='<html>Service Unavailable</html>')
        with self.assertRaises(UpstreamUnavailable):
            asyncio.run(self.client.get_block_count())

    def test_transport_error(self):
        """Test aiohttp errors are wrapped."""
        self.client.session = FakeSession(error=aiohttp.ClientConnectionError("refused"))
        with self.assertRaises(UpstreamUnavailable):
            asyncio.run(self.client.get_block_count())

    def test_timeout(self):
        """Test timeouts are wrapped."""
        self.client.session = FakeSession(error=asyncio.TimeoutError())
        with self.assertRaises(UpstreamUnavailable):
            asyncio.run(self.client.get_block_count())

    def test_get_block(self):
        """Test getblock uses verbosity 3 and maps to a Block."""
        self.client.session = FakeSession(body=rpc_body(result=rpc_block(100)))

        block = asyncio.run(self.client.get_block('00' * 32))

        self.assertIsInstance(block, Block)
        self.assertEqual(block.height, 100)
        self.assertEqual(self.client.session.requests[0][1]['params'], ['00' * 32, 3])
        # Amounts are parsed as Decimal, so no float rounding reaches satoshis
        self.assertEqual(block.transactions[1].outputs[0].value, 599900000)

    def test_get_blockchain_info(self):
        """Test getblockchaininfo result is returned as-is."""
        self.client.session = FakeSession(body=rpc_body(result={'chain': 'regtest', 'blocks': 101}))
        info = asyncio.run(self.client.get_blockchain_info())
        self.assertEqual(info['chain'], 'regtest')
        self.assertEqual(self.client.session.requests[0][1]['method'], 'getblockchaininfo')

    def test_get_block_unexpected_result(self):
        """Test a non-object getblock result raises UpstreamUnavailable."""
        self.client.session = FakeSession(body=rpc_body(result='00ff'))
        with self.assertRaises(UpstreamUnavailable):
            asyncio.run(self.client.get_block('00' * 32))

    def test_connect_manages_session(self):
        """Test connect() opens and closes the HTTP session."""

        async def run_test():
            async with self.client.connect() as client:
                self.assertIs(client, self.client)
                self.assertIsInstance(client.session, aiohttp.ClientSession)
            self.assertIsNone(self.client.session)

        asyncio.run(run_test())


if __name__ == '__main__':
    unittest.main()
