"""
Utility functions for the Silent Payments indexer.

This module provides helper functions for formatting, validation,
and common operations used throughout the application.
"""

import logging
from decimal import Decimal
from typing import Union

from .core.constants import SATS_PER_BTC, NETWORKS

logger = logging.getLogger('spindex.utils')


def format_btc(satoshis: int) -> str:
    """
    Format satoshis as BTC.

    Args:
        satoshis: Amount in satoshis

    Returns:
        Formatted string (e.g., "0.00123456 BTC")
    """
    return f"{Decimal(satoshis) / SATS_PER_BTC:.8f} BTC"


def btc_to_satoshis(btc: Union[Decimal, float, int, str]) -> int:
    """
    Convert a BTC amount, as reported by the node, to satoshis.

    Floats are routed through their shortest string form so that values
    like 5.999 map to exactly 599900000.

    Args:
        btc: Amount in BTC

    Returns:
        Amount in satoshis

    Raises:
        ValueError: If the amount has sub-satoshi precision
    """
    amount = btc if isinstance(btc, Decimal) else Decimal(str(btc))
    satoshis = amount * SATS_PER_BTC
    if satoshis != satoshis.to_integral_value():
        raise ValueError(f"Amount {btc} is not a whole number of satoshis")
    return int(satoshis)


def get_network_display_name(network: str) -> str:
    """
    Get display name for a network.

    Args:
        network: Network name (mainnet, testnet, etc.)

    Returns:
        Display name (e.g., "Bitcoin Mainnet")
    """
    network_info = NETWORKS.get(network, NETWORKS['mainnet'])
    return network_info['name']


def validate_block_hash(block_hash: str) -> bool:
    """
    Validate a hex-encoded block hash.

    Args:
        block_hash: Block hash string to validate

    Returns:
        True if valid (64 hex characters), False otherwise
    """
    if len(block_hash) != 64:
        logger.error(f"Invalid block hash: expected 64 characters, got {len(block_hash)}")
        return False
    try:
        bytes.fromhex(block_hash)
        return True
    except ValueError:
        logger.error("Invalid block hash: not a valid hex string")
        return False


def validate_port(port: int) -> bool:
    """
    Validate port number.

    Args:
        port: Port number to validate

    Returns:
        True if valid (1-65535), False otherwise
    """
    if not isinstance(port, int):
        return False
    return 1 <= port <= 65535


def truncate_hex(hex_string: str, length: int = 16) -> str:
    """
    Truncate hex string for display.

    Args:
        hex_string: Hex string to truncate
        length: Number of characters to keep

    Returns:
        Truncated string with "..." appended
    """
    if len(hex_string) <= length:
        return hex_string
    return f"{hex_string[:length]}..."
