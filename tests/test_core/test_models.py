"""
Unit tests for core/models.py - Data models and RPC mapping.

Tests include:
- Outpoint validation and consensus serialization
- InputDescriptor exactly-one rule
- from_rpc() mapping of Bitcoin Core verbose blocks
- SilentBlock to_dict() and __str__()
"""

import unittest
import json
from decimal import Decimal
from spindex_lib.core.errors import UpstreamUnavailable
from spindex_lib.core.models import (
    Outpoint, InputDescriptor, OutputDescriptor, EligibleOutput,
    SilentTransaction, SilentBlock, BlockTransaction, Block,
)
from tests.fixtures import G, G2, DUMMY_SIGNATURE, VECTOR_PUBKEY, p2wpkh_script, p2pkh_script, rpc_block


class TestOutpoint(unittest.TestCase):
    """Test Outpoint dataclass."""

    def test_serialize(self):
        """Test txid is byte-reversed and vout is little-endian."""
        op = Outpoint(txid=bytes(range(32)), vout=1)
        self.assertEqual(op.serialize(), bytes(range(31, -1, -1)) + b'\x01\x00\x00\x00')
        self.assertEqual(len(op.serialize()), 36)

    def test_str(self):
        """Test Outpoint __str__() uses txid:vout."""
        op = Outpoint(txid=b'\xab' * 32, vout=7)
        self.assertEqual(str(op), 'ab' * 32 + ':7')

    def test_invalid(self):
        """Test wrong txid length and out-of-range vout are rejected."""
        with self.assertRaises(ValueError):
            Outpoint(txid=b'\x00' * 31, vout=0)
        with self.assertRaises(ValueError):
            Outpoint(txid=b'\x00' * 32, vout=-1)
        with self.assertRaises(ValueError):
            Outpoint(txid=b'\x00' * 32, vout=2**32)


class TestInputDescriptor(unittest.TestCase):
    """Test InputDescriptor dataclass."""

    def setUp(self):
        self.outpoint = Outpoint(txid=b'\x01' * 32, vout=0)

    def test_exactly_one_of_script_sig_or_witness(self):
        """Test both or neither of script_sig and witness are rejected."""
        with self.assertRaises(ValueError):
            InputDescriptor(outpoint=self.outpoint, prevout_script=b'', script_sig=b'', witness=())
        with self.assertRaises(ValueError):
            InputDescriptor(outpoint=self.outpoint, prevout_script=b'')

    def test_empty_witness_is_witness(self):
        """Test an empty witness stack still counts as witness data."""
        descriptor = InputDescriptor(outpoint=self.outpoint, prevout_script=b'', witness=[])
        self.assertTrue(descriptor.has_witness)
        self.assertEqual(descriptor.witness, ())

    def test_witness_list_becomes_tuple(self):
        """Test witness items are stored as a tuple."""
        descriptor = InputDescriptor(outpoint=self.outpoint, prevout_script=b'', witness=[b'\x01', b'\x02'])
        self.assertEqual(descriptor.witness, (b'\x01', b'\x02'))

    def test_from_rpc_missing_prevout(self):
        """Test an input without prevout data raises UpstreamUnavailable."""
        vin = {'txid': '01' * 32, 'vout': 0, 'scriptSig': {'hex': ''}}
        with self.assertRaises(UpstreamUnavailable):
            InputDescriptor.from_rpc(vin, tx_has_witness=False)


class TestOutputDescriptor(unittest.TestCase):
    """Test OutputDescriptor dataclass."""

    def test_from_rpc_decimal_value(self):
        """Test BTC Decimal values map to satoshis."""
        output = OutputDescriptor.from_rpc({'value': Decimal('5.999'), 'scriptPubKey': {'hex': '51'}})
        self.assertEqual(output.value, 599900000)
        self.assertEqual(output.script_pubkey, b'\x51')

    def test_from_rpc_float_value(self):
        """Test float values are converted without rounding error."""
        output = OutputDescriptor.from_rpc({'value': 5.999, 'scriptPubKey': {'hex': ''}})
        self.assertEqual(output.value, 599900000)

    def test_negative_value(self):
        """Test negative values are rejected."""
        with self.assertRaises(ValueError):
            OutputDescriptor(script_pubkey=b'', value=-1)


class TestBlockFromRpc(unittest.TestCase):
    """Test mapping of getblock verbosity 3 responses."""

    def setUp(self):
        self.block = Block.from_rpc(rpc_block(100))

    def test_block_fields(self):
        """Test height, hash and transaction count."""
        self.assertEqual(self.block.height, 100)
        self.assertEqual(self.block.hash, f"{100:064x}")
        self.assertEqual(len(self.block.transactions), 3)

    def test_coinbase(self):
        """Test the coinbase is flagged and has no inputs."""
        coinbase = self.block.transactions[0]
        self.assertTrue(coinbase.is_coinbase)
        self.assertEqual(coinbase.inputs, ())
        self.assertEqual(coinbase.outputs[0].value, 50 * 100_000_000)

    def test_witness_transaction(self):
        """Test inputs of a witness transaction carry the witness stack."""
        tx = self.block.transactions[1]
        self.assertFalse(tx.is_coinbase)
        self.assertEqual(tx.txid, b'\xd1' * 32)

        descriptor = tx.inputs[0]
        self.assertEqual(descriptor.witness, (DUMMY_SIGNATURE, G))
        self.assertIsNone(descriptor.script_sig)
        self.assertEqual(descriptor.prevout_script, p2wpkh_script(G))
        self.assertEqual(descriptor.outpoint, Outpoint(txid=b'\x01' * 32, vout=0))
        self.assertEqual(tx.outputs[0].value, 599900000)
        self.assertEqual(tx.outputs[0].script_pubkey[2:].hex(), VECTOR_PUBKEY)

    def test_legacy_transaction(self):
        """Test inputs of a non-witness transaction carry the scriptSig."""
        descriptor = self.block.transactions[2].inputs[0]
        self.assertIsNone(descriptor.witness)
        self.assertTrue(descriptor.script_sig.endswith(G2))
        self.assertEqual(descriptor.prevout_script, p2pkh_script(G2))
        self.assertEqual(descriptor.outpoint.vout, 3)

    def test_incomplete_block(self):
        """Test missing fields raise UpstreamUnavailable."""
        data = rpc_block(100)
        del data['height']
        with self.assertRaises(UpstreamUnavailable):
            Block.from_rpc(data)

    def test_non_hex_field(self):
        """Test undecodable hex from the node raises UpstreamUnavailable."""
        data = rpc_block(100)
        data['tx'][1]['vin'][0]['txinwitness'] = ['zz']
        with self.assertRaises(UpstreamUnavailable):
            Block.from_rpc(data)

    def test_transaction_from_rpc_without_vin(self):
        """Test a transaction without inputs maps to an empty input tuple."""
        tx = BlockTransaction.from_rpc({'txid': 'ff' * 32, 'vin': [], 'vout': []})
        self.assertEqual(tx.inputs, ())
        self.assertFalse(tx.is_coinbase)


class TestSilentBlock(unittest.TestCase):
    """Test SilentBlock and its records."""

    def setUp(self):
        self.tx = SilentTransaction(
            txid=b'\x01' * 32,
            outputs=[EligibleOutput(pubkey=b'\x02' * 32, value=1000, vout=1)],
            scan_tweak=b'\x03' * 33
        )

    def test_outputs_become_tuple(self):
        """Test outputs are frozen into a tuple."""
        self.assertIsInstance(self.tx.outputs, tuple)

    def test_invalid_lengths(self):
        """Test txid, tweak and pubkey lengths are enforced."""
        with self.assertRaises(ValueError):
            SilentTransaction(txid=b'\x01' * 31, outputs=(), scan_tweak=b'\x03' * 33)
        with self.assertRaises(ValueError):
            SilentTransaction(txid=b'\x01' * 32, outputs=(), scan_tweak=b'\x03' * 32)
        with self.assertRaises(ValueError):
            EligibleOutput(pubkey=b'\x02' * 33, value=0, vout=0)

    def test_to_dict(self):
        """Test to_dict() exports JSON-serializable data."""
        block = SilentBlock(transactions=[self.tx])
        data = block.to_dict()

        self.assertEqual(data['type'], 0)
        self.assertEqual(data['transaction_count'], 1)
        self.assertEqual(data['transactions'][0]['txid'], '01' * 32)
        self.assertEqual(data['transactions'][0]['scan_tweak'], '03' * 33)
        self.assertEqual(data['transactions'][0]['outputs'][0], {'value': 1000, 'pubkey': '02' * 32, 'vout': 1})
        json.dumps(data)  # Should not raise

    def test_str_and_len(self):
        """Test __str__() and __len__()."""
        block = SilentBlock(transactions=(self.tx,))
        self.assertEqual(len(block), 1)
        self.assertEqual(str(block), "SilentBlock(type=0, 1 tx, 1 outputs)")


if __name__ == '__main__':
    unittest.main()
