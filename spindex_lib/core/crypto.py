"""
Cryptographic operations for BIP-352 scan tweak computation.

This module contains pure cryptographic functions for:
- Tagged hashing (BIP-340 style) and HASH160
- Computing the BIP-352 input hash scalar
- Elliptic curve point arithmetic behind a swappable backend interface

All functions are pure (no side effects) and use external libraries:
- coincurve for elliptic curve operations
- gmpy2 for fast modular arithmetic
- embit for HASH160 (pure-python RIPEMD-160 fallback)
- hashlib for hashing
"""

import hashlib
from abc import ABC, abstractmethod
from typing import Any, Sequence

import gmpy2
from coincurve import PublicKey
from embit.hashes import hash160 as _embit_hash160

from .constants import BIP352_INPUTS_TAG
from .errors import NoKeyMaterial


# secp256k1 curve order constant
SECP256K1_ORDER = gmpy2.mpz(0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141)


def tagged_hash(tag: bytes, data: bytes) -> bytes:
    """
    Compute SHA256(SHA256(tag) || SHA256(tag) || data).

    Args:
        tag: Domain separation tag (e.g. b"BIP0352/Inputs")
        data: Message bytes

    Returns:
        32-byte digest
    """
    tag_hash = hashlib.sha256(tag).digest()
    return hashlib.sha256(tag_hash + tag_hash + data).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))."""
    return _embit_hash160(data)


def compute_input_hash(smallest_outpoint: bytes, summed_pubkey: bytes) -> int:
    """
    Compute the BIP-352 input hash scalar.

    input_hash = hash_BIP0352/Inputs(outpoint_L || ser_P(A)) mod n

    Args:
        smallest_outpoint: Lexicographically smallest serialized outpoint (36 bytes)
        summed_pubkey: Sum of input public keys, compressed (33 bytes)

    Returns:
        Input hash as an integer scalar

    Raises:
        NoKeyMaterial: If the hash reduces to zero (not a usable scalar)
    """
    digest = tagged_hash(BIP352_INPUTS_TAG, smallest_outpoint + summed_pubkey)
    scalar = gmpy2.f_mod(gmpy2.mpz(int.from_bytes(digest, 'big')), SECP256K1_ORDER)
    if scalar == 0:
        raise NoKeyMaterial("Input hash is not a valid scalar")
    return int(scalar)


class CurveBackend(ABC):
    """
    Capability interface for the elliptic curve arithmetic the scan tweak needs.

    Points are opaque to callers: they are produced by parse_point() or by
    the arithmetic methods and only turned back into bytes via compress().
    """

    @abstractmethod
    def parse_point(self, data: bytes) -> Any:
        """
        Parse a serialized point (33-byte compressed or 65-byte uncompressed).

        Raises:
            ValueError: If the bytes are not a point on the curve
        """
        pass

    @abstractmethod
    def add_points(self, points: Sequence[Any]) -> Any:
        """
        Sum a non-empty sequence of points.

        Raises:
            ValueError: If the sum is the point at infinity
        """
        pass

    @abstractmethod
    def multiply(self, point: Any, scalar: int) -> Any:
        """
        Multiply a point by a scalar in [1, n-1].

        Raises:
            ValueError: If the scalar is out of range
        """
        pass

    @abstractmethod
    def compress(self, point: Any) -> bytes:
        """Serialize a point in 33-byte compressed form."""
        pass


class CoincurveBackend(CurveBackend):
    """CurveBackend backed by libsecp256k1 through coincurve."""

    def parse_point(self, data: bytes) -> PublicKey:
        return PublicKey(data)

    def add_points(self, points: Sequence[PublicKey]) -> PublicKey:
        if not points:
            raise ValueError("No points to add")
        if len(points) == 1:
            return points[0]
        return PublicKey.combine_keys(list(points))

    def multiply(self, point: PublicKey, scalar: int) -> PublicKey:
        if not 0 < scalar < SECP256K1_ORDER:
            raise ValueError("Scalar out of range")
        return point.multiply(int(scalar).to_bytes(32, 'big'))

    def compress(self, point: PublicKey) -> bytes:
        return point.format(compressed=True)


DEFAULT_BACKEND = CoincurveBackend()
