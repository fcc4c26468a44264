"""
Constants and network configurations for the Silent Payments indexer.

This module contains all constants and network configuration mappings
used throughout the application.
"""

# Bitcoin Core RPC ports
BITCOIN_RPC_PORTS = {
    'mainnet': 8332,
    'testnet': 18332,
    'testnet4': 48332,
    'signet': 38332,
    'regtest': 18443,
}

# Connection defaults
RPC_TIMEOUT = 30.0  # Seconds per JSON-RPC request
DEFAULT_HOST = '127.0.0.1'
DEFAULT_DATABASE = 'silent_blocks.db'

# Indexing defaults
DEFAULT_BATCH_SIZE = 10
DEFAULT_POLL_INTERVAL = 5.0  # Seconds between tip checks in follow mode
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 2.0

# Bitcoin constants
SATS_PER_BTC = 100_000_000
MAX_U32 = 0xFFFFFFFF
MAX_U64 = 0xFFFFFFFFFFFFFFFF

# VarInt markers
VARINT_MARKER_U16 = 0xFD
VARINT_MARKER_U32 = 0xFE
VARINT_MARKER_U64 = 0xFF

# Silent block layout
SILENT_BLOCK_TYPE_FULL = 0x00
TXID_SIZE = 32
PUBKEY_SIZE = 32  # x-only taproot output key
SCAN_TWEAK_SIZE = 33  # compressed point
OUTPUT_RECORD_SIZE = 8 + PUBKEY_SIZE + 4  # value || pubkey || vout
MIN_TRANSACTION_RECORD_SIZE = TXID_SIZE + 1 + SCAN_TWEAK_SIZE

# Script opcodes and templates
OP_0 = 0x00
OP_1 = 0x51
OP_16 = 0x60
OP_DUP = 0x76
OP_HASH160 = 0xA9
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_CHECKSIG = 0xAC
TAPROOT_ANNEX_TAG = 0x50

# BIP-352 tagged hash tags
BIP352_INPUTS_TAG = b"BIP0352/Inputs"

# BIP-341 "nothing up my sleeve" internal key H. Script-path spends using it
# carry no spendable key and are excluded from the input key sum.
NUMS_H = bytes.fromhex("50929b74c1a04954b78b4b6035e97a5e078a5a0f28ec96d547bfee9ace803ac0")

# Network display names and the chain name Bitcoin Core reports for each
NETWORKS = {
    'mainnet': {'name': 'Bitcoin Mainnet', 'chain': 'main'},
    'testnet': {'name': 'Bitcoin Testnet', 'chain': 'test'},
    'testnet4': {'name': 'Bitcoin Testnet4', 'chain': 'testnet4'},
    'signet': {'name': 'Bitcoin Signet', 'chain': 'signet'},
    'regtest': {'name': 'Bitcoin Regtest', 'chain': 'regtest'},
}
