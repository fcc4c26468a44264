"""
Silent block wire format.

Layout (multi-byte integers big-endian, counts as varints):

    u8           type
    varint       transaction_count
    repeat transaction_count times:
        32 bytes     txid
        varint       output_count
        repeat output_count times:
            u64          value
            32 bytes     pubkey
            u32          vout
        33 bytes     scan_tweak

This byte layout is what stored blocks and the query service hand to
wallets, so it must not change.

Decoding is strict: a buffer must hold exactly one silent block. Bytes
left over after the last transaction raise MalformedInput rather than
being ignored, so a record concatenated with or corrupted into a longer
blob is rejected instead of silently truncated.
"""

import struct
from typing import List

from .constants import (
    TXID_SIZE, PUBKEY_SIZE, SCAN_TWEAK_SIZE, OUTPUT_RECORD_SIZE,
    MIN_TRANSACTION_RECORD_SIZE, MAX_U32, MAX_U64,
)
from .errors import MalformedInput
from .models import EligibleOutput, SilentBlock, SilentTransaction
from .varint import encode_varint, decode_varint

_OUTPUT_STRUCT = struct.Struct(f'>Q{PUBKEY_SIZE}sI')


def encode_silent_block(block: SilentBlock) -> bytes:
    """
    Serialize a SilentBlock.

    Args:
        block: Block to serialize

    Returns:
        Encoded bytes

    Raises:
        ValueError: If a field does not fit its wire width
    """
    if not 0 <= block.type <= 0xFF:
        raise ValueError(f"Silent block type must fit in one byte, got {block.type}")

    parts = [bytes([block.type]), encode_varint(len(block.transactions))]
    for tx in block.transactions:
        parts.append(tx.txid)
        parts.append(encode_varint(len(tx.outputs)))
        for output in tx.outputs:
            if not 0 <= output.value <= MAX_U64:
                raise ValueError(f"Output value does not fit in 64 bits: {output.value}")
            if not 0 <= output.vout <= MAX_U32:
                raise ValueError(f"Output index does not fit in 32 bits: {output.vout}")
            parts.append(_OUTPUT_STRUCT.pack(output.value, output.pubkey, output.vout))
        parts.append(tx.scan_tweak)

    return b''.join(parts)


def _take(data: bytes, offset: int, size: int, what: str) -> bytes:
    end = offset + size
    if end > len(data):
        raise MalformedInput(f"Truncated {what}: need {size} bytes, {len(data) - offset} remain", offset)
    return data[offset:end]


def decode_silent_block(data: bytes) -> SilentBlock:
    """
    Parse an encoded silent block.

    Only field boundaries are checked; pubkeys and scan tweaks are returned
    as raw bytes without curve validation.

    Args:
        data: Encoded silent block

    Returns:
        Decoded SilentBlock

    Raises:
        MalformedInput: If the buffer is truncated, a declared count cannot
            fit in the remaining bytes, or bytes are left over at the end
    """
    data = bytes(data)
    block_type = _take(data, 0, 1, "block type")[0]

    tx_count, offset = decode_varint(data, 1)
    if tx_count * MIN_TRANSACTION_RECORD_SIZE > len(data) - offset:
        raise MalformedInput(f"Transaction count {tx_count} exceeds remaining buffer", offset)

    transactions: List[SilentTransaction] = []
    for _ in range(tx_count):
        txid = _take(data, offset, TXID_SIZE, "txid")
        offset += TXID_SIZE

        output_count, offset = decode_varint(data, offset)
        if output_count * OUTPUT_RECORD_SIZE > len(data) - offset:
            raise MalformedInput(f"Output count {output_count} exceeds remaining buffer", offset)

        outputs = []
        for _ in range(output_count):
            value, pubkey, vout = _OUTPUT_STRUCT.unpack(_take(data, offset, OUTPUT_RECORD_SIZE, "output"))
            offset += OUTPUT_RECORD_SIZE
            outputs.append(EligibleOutput(pubkey=pubkey, value=value, vout=vout))

        scan_tweak = _take(data, offset, SCAN_TWEAK_SIZE, "scan tweak")
        offset += SCAN_TWEAK_SIZE

        transactions.append(SilentTransaction(txid=txid, outputs=tuple(outputs), scan_tweak=scan_tweak))

    if offset != len(data):
        raise MalformedInput(f"{len(data) - offset} trailing bytes after last transaction", offset)

    return SilentBlock(type=block_type, transactions=tuple(transactions))
