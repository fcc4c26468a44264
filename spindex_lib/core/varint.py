"""
Bitcoin-style variable length integer codec.

Values below 0xfd are stored as a single byte; larger values are prefixed
with a marker byte (0xfd, 0xfe, 0xff) followed by a 2, 4 or 8 byte
little-endian integer.
"""

import struct
from typing import Tuple

from .constants import VARINT_MARKER_U16, VARINT_MARKER_U32, VARINT_MARKER_U64, MAX_U64
from .errors import MalformedInput

# marker -> (payload width, struct format)
_MARKER_FORMATS = {
    VARINT_MARKER_U16: (2, '<H'),
    VARINT_MARKER_U32: (4, '<I'),
    VARINT_MARKER_U64: (8, '<Q'),
}


def varint_size(value: int) -> int:
    """Return the number of bytes encode_varint() produces for value."""
    if value < VARINT_MARKER_U16:
        return 1
    elif value <= 0xFFFF:
        return 3
    elif value <= 0xFFFFFFFF:
        return 5
    return 9


def encode_varint(value: int) -> bytes:
    """
    Encode a non-negative integer using the smallest applicable tier.

    Args:
        value: Integer in the range [0, 2^64 - 1]

    Returns:
        Encoded bytes (1, 3, 5 or 9 bytes long)

    Raises:
        ValueError: If value is negative or does not fit in 64 bits
    """
    if value < 0 or value > MAX_U64:
        raise ValueError(f"VarInt value out of range: {value}")

    if value < VARINT_MARKER_U16:
        return bytes([value])
    elif value <= 0xFFFF:
        return bytes([VARINT_MARKER_U16]) + struct.pack('<H', value)
    elif value <= 0xFFFFFFFF:
        return bytes([VARINT_MARKER_U32]) + struct.pack('<I', value)
    return bytes([VARINT_MARKER_U64]) + struct.pack('<Q', value)


def decode_varint(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """
    Decode a varint starting at offset.

    Args:
        data: Buffer to read from
        offset: Position of the first varint byte

    Returns:
        Tuple of (value, offset just past the varint)

    Raises:
        MalformedInput: If the buffer ends before the varint does
    """
    if offset >= len(data):
        raise MalformedInput("Unexpected end of data while reading varint", offset)

    first = data[offset]
    if first not in _MARKER_FORMATS:
        return first, offset + 1

    width, fmt = _MARKER_FORMATS[first]
    start = offset + 1
    if start + width > len(data):
        raise MalformedInput(
            f"VarInt marker 0x{first:02x} needs {width} bytes, only {len(data) - start} remain",
            offset
        )
    value = struct.unpack_from(fmt, data, start)[0]
    return value, start + width
