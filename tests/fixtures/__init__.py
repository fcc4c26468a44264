"""
Test fixtures and helper functions for building test data.

This module provides known secp256k1 points, script and input builders for
every spending pattern the scan tweak understands, Bitcoin Core style RPC
payloads, and the reference silent block used across the test suite.
"""

import hashlib
from decimal import Decimal
from typing import Dict, List, Any, Optional

from spindex_lib.core.crypto import hash160
from spindex_lib.core.models import (
    Block, BlockTransaction, InputDescriptor, OutputDescriptor, Outpoint,
)

# Multiples of the generator, compressed
G = bytes.fromhex("0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798")
G2 = bytes.fromhex("02c6047f9441ed7d6d3045406e95c07cd85c778e4b8cef3ca7abac09b95c709ee5")
G3 = bytes.fromhex("02f9308a019258c31049344f85f89d5229b531c845836f99b08601f113bce036f9")
NEG_G = bytes.fromhex("0379be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798")

SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

# Placeholder DER signature; key extraction never verifies signatures
DUMMY_SIGNATURE = bytes.fromhex("30" + "44" + "00" * 68 + "01")

# Reference silent block: one transaction with one eligible output
VECTOR_TXID = "4c916159adfc0aaaa5e2ae2ba282ddf12fef1921ec240440fcced03dd57d9e0f"
VECTOR_VALUE = 599900000
VECTOR_PUBKEY = "941d9510ebc20627ca01f05e0eaa53a744bc4877b064deb30c970a7ddfa84fbb"
VECTOR_VOUT = 0
VECTOR_TWEAK = "02e2b27bcfbccf8db4c82186429b2dd779eca2818b308b88788106bb714bdc99b3"
VECTOR_HEX = (
    "00"                    # type
    "01"                    # transaction count
    + VECTOR_TXID +
    "01"                    # output count
    "0000000023c1bf60"      # value
    + VECTOR_PUBKEY +
    "00000000"              # vout
    + VECTOR_TWEAK
)


# ============================================================================
# Scripts
# ============================================================================

def p2pkh_script(pubkey: bytes) -> bytes:
    return bytes([0x76, 0xa9, 0x14]) + hash160(pubkey) + bytes([0x88, 0xac])


def p2wpkh_script(pubkey: bytes) -> bytes:
    return bytes([0x00, 0x14]) + hash160(pubkey)


def p2sh_p2wpkh_script(pubkey: bytes) -> bytes:
    redeem_script = p2wpkh_script(pubkey)
    return bytes([0xa9, 0x14]) + hash160(redeem_script) + bytes([0x87])


def p2tr_script(xonly: bytes) -> bytes:
    return bytes([0x51, 0x20]) + xonly


def p2wsh_script() -> bytes:
    return bytes([0x00, 0x20]) + b'\x11' * 32


def future_witness_script(version: int = 2) -> bytes:
    return bytes([0x50 + version, 0x20]) + b'\x22' * 32


def push(data: bytes) -> bytes:
    """Minimal direct push (data up to 75 bytes)."""
    return bytes([len(data)]) + data


# ============================================================================
# Inputs
# ============================================================================

def outpoint(fill: int = 0x01, vout: int = 0) -> Outpoint:
    return Outpoint(txid=bytes([fill]) * 32, vout=vout)


def p2wpkh_input(pubkey: bytes, op: Optional[Outpoint] = None) -> InputDescriptor:
    return InputDescriptor(
        outpoint=op or outpoint(),
        prevout_script=p2wpkh_script(pubkey),
        witness=(DUMMY_SIGNATURE, pubkey)
    )


def p2sh_p2wpkh_input(pubkey: bytes, op: Optional[Outpoint] = None) -> InputDescriptor:
    return InputDescriptor(
        outpoint=op or outpoint(),
        prevout_script=p2sh_p2wpkh_script(pubkey),
        witness=(DUMMY_SIGNATURE, pubkey)
    )


def p2pkh_input(pubkey: bytes, op: Optional[Outpoint] = None) -> InputDescriptor:
    return InputDescriptor(
        outpoint=op or outpoint(),
        prevout_script=p2pkh_script(pubkey),
        script_sig=push(DUMMY_SIGNATURE) + push(pubkey)
    )


def p2tr_keypath_input(xonly: bytes, op: Optional[Outpoint] = None, annex: bool = False) -> InputDescriptor:
    witness = [b'\x33' * 64]
    if annex:
        witness.append(b'\x50' + b'\x00' * 4)
    return InputDescriptor(
        outpoint=op or outpoint(),
        prevout_script=p2tr_script(xonly),
        witness=tuple(witness)
    )


def p2tr_scriptpath_input(xonly: bytes, internal_key: bytes, op: Optional[Outpoint] = None) -> InputDescriptor:
    tapscript = bytes([0x20]) + b'\x44' * 32 + bytes([0xac])
    control_block = bytes([0xc0]) + internal_key
    return InputDescriptor(
        outpoint=op or outpoint(),
        prevout_script=p2tr_script(xonly),
        witness=(b'\x33' * 64, tapscript, control_block)
    )


# ============================================================================
# Expected values
# ============================================================================

def expected_input_hash(smallest_outpoint: bytes, summed_pubkey: bytes) -> int:
    """Input hash computed independently of spindex_lib."""
    tag = hashlib.sha256(b"BIP0352/Inputs").digest()
    digest = hashlib.sha256(tag + tag + smallest_outpoint + summed_pubkey).digest()
    return int.from_bytes(digest, 'big') % SECP256K1_ORDER


# ============================================================================
# Blocks and RPC payloads
# ============================================================================

def make_transaction(
    inputs: List[InputDescriptor],
    outputs: List[OutputDescriptor],
    fill: int = 0xaa,
    is_coinbase: bool = False
) -> BlockTransaction:
    return BlockTransaction(
        txid=bytes([fill]) * 32,
        inputs=tuple(inputs),
        outputs=tuple(outputs),
        is_coinbase=is_coinbase
    )


def make_block(height: int, transactions: Optional[List[BlockTransaction]] = None) -> Block:
    return Block(
        height=height,
        hash=f"{height:064x}",
        transactions=tuple(transactions or ())
    )


def silent_payment_transaction(fill: int = 0xaa) -> BlockTransaction:
    """A transaction that qualifies: one P2WPKH input and a taproot output at vout 1."""
    return make_transaction(
        inputs=[p2wpkh_input(G, outpoint(fill))],
        outputs=[
            OutputDescriptor(script_pubkey=p2wpkh_script(G2), value=1000),
            OutputDescriptor(script_pubkey=p2tr_script(b'\xab' * 32), value=5000),
        ],
        fill=fill
    )


def rpc_block(height: int = 100) -> Dict[str, Any]:
    """
    Bitcoin Core getblock (verbosity 3) style payload.

    Contains a coinbase, a segwit spend of G to a taproot output and a
    legacy spend of 2G.
    """
    return {
        'hash': f"{height:064x}",
        'height': height,
        'tx': [
            {
                'txid': 'c0' * 32,
                'vin': [{'coinbase': '03' + f"{height:06x}", 'sequence': 4294967295}],
                'vout': [{'value': Decimal('50.00000000'), 'n': 0,
                          'scriptPubKey': {'hex': p2wpkh_script(G3).hex(), 'type': 'witness_v0_keyhash'}}],
            },
            {
                'txid': 'd1' * 32,
                'vin': [{
                    'txid': '01' * 32,
                    'vout': 0,
                    'scriptSig': {'asm': '', 'hex': ''},
                    'txinwitness': [DUMMY_SIGNATURE.hex(), G.hex()],
                    'prevout': {
                        'generated': False,
                        'height': height - 1,
                        'value': Decimal('6.00000000'),
                        'scriptPubKey': {'hex': p2wpkh_script(G).hex(), 'type': 'witness_v0_keyhash'},
                    },
                }],
                'vout': [
                    {'value': Decimal('5.99900000'), 'n': 0,
                     'scriptPubKey': {'hex': p2tr_script(bytes.fromhex(VECTOR_PUBKEY)).hex(),
                                      'type': 'witness_v1_taproot'}},
                ],
            },
            {
                'txid': 'e2' * 32,
                'vin': [{
                    'txid': '02' * 32,
                    'vout': 3,
                    'scriptSig': {'hex': (push(DUMMY_SIGNATURE) + push(G2)).hex()},
                    'prevout': {
                        'value': Decimal('1.00000000'),
                        'scriptPubKey': {'hex': p2pkh_script(G2).hex(), 'type': 'pubkeyhash'},
                    },
                }],
                'vout': [
                    {'value': Decimal('0.5'), 'n': 0,
                     'scriptPubKey': {'hex': p2pkh_script(G3).hex(), 'type': 'pubkeyhash'}},
                ],
            },
        ],
    }
