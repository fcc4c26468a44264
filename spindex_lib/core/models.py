"""
Data models for the Silent Payments indexer.

This module contains all dataclasses used throughout the application
for representing upstream chain data (blocks, transactions, inputs,
outputs) and the silent block records derived from them.

Records are frozen: once a SilentBlock has been assembled nothing may
mutate it.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple, Dict, Any, List

from .constants import TXID_SIZE, PUBKEY_SIZE, SCAN_TWEAK_SIZE, MAX_U32, SILENT_BLOCK_TYPE_FULL
from .errors import UpstreamUnavailable
from ..utils import btc_to_satoshis


@dataclass(frozen=True)
class Outpoint:
    """Reference to an output of a previous transaction."""
    txid: bytes  # 32 bytes, display (RPC) byte order
    vout: int

    def __post_init__(self):
        if len(self.txid) != TXID_SIZE:
            raise ValueError(f"Outpoint txid must be {TXID_SIZE} bytes, got {len(self.txid)}")
        if not 0 <= self.vout <= MAX_U32:
            raise ValueError(f"Outpoint index out of range: {self.vout}")

    def serialize(self) -> bytes:
        """Consensus serialization: internal-order txid || u32le(vout)."""
        return self.txid[::-1] + self.vout.to_bytes(4, 'little')

    def __str__(self) -> str:
        return f"{self.txid.hex()}:{self.vout}"


@dataclass(frozen=True)
class InputDescriptor:
    """
    A transaction input with its resolved previous output script.

    Exactly one of script_sig / witness is set: witness when the owning
    transaction carries witness data, script_sig otherwise.
    """
    outpoint: Outpoint
    prevout_script: bytes
    script_sig: Optional[bytes] = None
    witness: Optional[Tuple[bytes, ...]] = None

    def __post_init__(self):
        if (self.script_sig is None) == (self.witness is None):
            raise ValueError("InputDescriptor needs exactly one of script_sig or witness")
        if self.witness is not None and not isinstance(self.witness, tuple):
            object.__setattr__(self, 'witness', tuple(self.witness))

    @property
    def has_witness(self) -> bool:
        return self.witness is not None

    @classmethod
    def from_rpc(cls, vin: Dict[str, Any], tx_has_witness: bool) -> 'InputDescriptor':
        """Map a Bitcoin Core verbose 'vin' entry (with prevout) to a descriptor."""
        prevout = vin.get('prevout')
        if not prevout or 'scriptPubKey' not in prevout:
            raise UpstreamUnavailable(
                f"Input {vin.get('txid')}:{vin.get('vout')} has no prevout data "
                f"(getblock verbosity 3 requires Bitcoin Core 25 or later)"
            )

        outpoint = Outpoint(bytes.fromhex(vin['txid']), int(vin['vout']))
        prevout_script = bytes.fromhex(prevout['scriptPubKey'].get('hex', ''))

        if tx_has_witness:
            witness = tuple(bytes.fromhex(item) for item in vin.get('txinwitness', []))
            return cls(outpoint=outpoint, prevout_script=prevout_script, witness=witness)

        script_sig = bytes.fromhex(vin.get('scriptSig', {}).get('hex', ''))
        return cls(outpoint=outpoint, prevout_script=prevout_script, script_sig=script_sig)


@dataclass(frozen=True)
class OutputDescriptor:
    """Transaction output: script and value in satoshis."""
    script_pubkey: bytes
    value: int  # satoshis

    def __post_init__(self):
        if self.value < 0:
            raise ValueError(f"Output value cannot be negative: {self.value}")

    @classmethod
    def from_rpc(cls, vout: Dict[str, Any]) -> 'OutputDescriptor':
        """Map a Bitcoin Core verbose 'vout' entry to a descriptor."""
        return cls(
            script_pubkey=bytes.fromhex(vout.get('scriptPubKey', {}).get('hex', '')),
            value=btc_to_satoshis(vout.get('value', 0))
        )


@dataclass(frozen=True)
class EligibleOutput:
    """Taproot output carrying a recipient-detectable x-only key."""
    pubkey: bytes  # 32 bytes
    value: int  # satoshis
    vout: int

    def __post_init__(self):
        if len(self.pubkey) != PUBKEY_SIZE:
            raise ValueError(f"Eligible output pubkey must be {PUBKEY_SIZE} bytes, got {len(self.pubkey)}")

    def to_dict(self) -> Dict[str, Any]:
        """Export output data as dictionary."""
        return {
            'value': self.value,
            'pubkey': self.pubkey.hex(),
            'vout': self.vout
        }


@dataclass(frozen=True)
class SilentTransaction:
    """Per-transaction record of a silent block."""
    txid: bytes  # 32 bytes
    outputs: Tuple[EligibleOutput, ...]
    scan_tweak: bytes  # 33-byte compressed point

    def __post_init__(self):
        if len(self.txid) != TXID_SIZE:
            raise ValueError(f"txid must be {TXID_SIZE} bytes, got {len(self.txid)}")
        if len(self.scan_tweak) != SCAN_TWEAK_SIZE:
            raise ValueError(f"Scan tweak must be {SCAN_TWEAK_SIZE} bytes, got {len(self.scan_tweak)}")
        if not isinstance(self.outputs, tuple):
            object.__setattr__(self, 'outputs', tuple(self.outputs))

    def to_dict(self) -> Dict[str, Any]:
        """Export transaction record as dictionary."""
        return {
            'txid': self.txid.hex(),
            'outputs': [output.to_dict() for output in self.outputs],
            'scan_tweak': self.scan_tweak.hex()
        }


@dataclass(frozen=True)
class SilentBlock:
    """Aggregated silent payment data for one confirmed block."""
    type: int = SILENT_BLOCK_TYPE_FULL
    transactions: Tuple[SilentTransaction, ...] = ()

    def __post_init__(self):
        if not isinstance(self.transactions, tuple):
            object.__setattr__(self, 'transactions', tuple(self.transactions))

    def __len__(self) -> int:
        return len(self.transactions)

    def __str__(self) -> str:
        """Human-readable string representation."""
        output_count = sum(len(tx.outputs) for tx in self.transactions)
        return f"SilentBlock(type={self.type}, {len(self.transactions)} tx, {output_count} outputs)"

    def to_dict(self) -> Dict[str, Any]:
        """Export silent block as dictionary."""
        return {
            'type': self.type,
            'transaction_count': len(self.transactions),
            'transactions': [tx.to_dict() for tx in self.transactions]
        }


@dataclass(frozen=True)
class BlockTransaction:
    """A confirmed transaction with every input's previous output resolved."""
    txid: bytes  # 32 bytes, display byte order
    inputs: Tuple[InputDescriptor, ...]
    outputs: Tuple[OutputDescriptor, ...]
    is_coinbase: bool = False

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> 'BlockTransaction':
        """Map a Bitcoin Core verbose transaction to typed descriptors."""
        vins: List[Dict[str, Any]] = data.get('vin', [])
        outputs = tuple(OutputDescriptor.from_rpc(vout) for vout in data.get('vout', []))
        txid = bytes.fromhex(data['txid'])

        if vins and 'coinbase' in vins[0]:
            return cls(txid=txid, inputs=(), outputs=outputs, is_coinbase=True)

        tx_has_witness = any(vin.get('txinwitness') for vin in vins)
        inputs = tuple(InputDescriptor.from_rpc(vin, tx_has_witness) for vin in vins)
        return cls(txid=txid, inputs=inputs, outputs=outputs)


@dataclass(frozen=True)
class Block:
    """A confirmed block as delivered by the chain source."""
    height: int
    hash: str  # hex, display byte order
    transactions: Tuple[BlockTransaction, ...] = field(default_factory=tuple)

    @classmethod
    def from_rpc(cls, data: Dict[str, Any]) -> 'Block':
        """Map a Bitcoin Core getblock (verbosity 3) response to a Block."""
        try:
            transactions = tuple(BlockTransaction.from_rpc(tx) for tx in data['tx'])
            return cls(height=int(data['height']), hash=data['hash'], transactions=transactions)
        except (KeyError, TypeError) as e:
            raise UpstreamUnavailable(f"Incomplete block data from node: missing {e}")
        except ValueError as e:
            raise UpstreamUnavailable(f"Malformed block data from node: {e}")
