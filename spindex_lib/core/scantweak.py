"""
BIP-352 scan tweak computation.

The scan tweak of a transaction is input_hash * A, where A is the sum of the
public keys its inputs reveal and input_hash commits to A and to the
smallest outpoint spent. A recipient multiplies it by their scan private key
to obtain the ECDH shared secret for every output of the transaction.

The computation never performs lookups: every input must arrive with its
previous output script already resolved.
"""

import logging
from typing import List, Optional, Sequence

from .crypto import CurveBackend, DEFAULT_BACKEND, compute_input_hash
from .errors import NoKeyMaterial, UnsupportedScript
from .models import InputDescriptor, OutputDescriptor
from .scripts import ScriptType, classify_script, extract_input_pubkey

logger = logging.getLogger('spindex.scantweak')


def compute_scan_tweaks(
    txid: bytes,
    inputs: Sequence[InputDescriptor],
    outputs: Sequence[OutputDescriptor],
    backend: Optional[CurveBackend] = None
) -> List[bytes]:
    """
    Compute the scan tweaks of a transaction.

    The first element is the primary tweak, the one stored in silent
    blocks. Only one tweak per transaction is defined today, so the list
    always has exactly one element.

    Args:
        txid: Transaction id (32 bytes), used for diagnostics
        inputs: All inputs, in transaction order
        outputs: All outputs, in transaction order. Accepted so callers
            can pass the whole transaction; they do not affect the tweak,
            which commits to the smallest outpoint and A only.
        backend: Curve arithmetic backend (coincurve by default)

    Returns:
        List of 33-byte compressed scan tweak points

    Raises:
        NoKeyMaterial: If no input yields a usable key, the keys sum to the
            point at infinity, or an input spends a future witness version
    """
    backend = backend or DEFAULT_BACKEND

    if not inputs:
        raise NoKeyMaterial(f"Transaction {txid.hex()} has no inputs")

    for input_descriptor in inputs:
        if classify_script(input_descriptor.prevout_script) == ScriptType.WITNESS_FUTURE:
            raise NoKeyMaterial(
                f"Transaction {txid.hex()} spends a future witness version output ({input_descriptor.outpoint})"
            )

    points = []
    for index, input_descriptor in enumerate(inputs):
        try:
            pubkey = extract_input_pubkey(input_descriptor)
        except UnsupportedScript as e:
            logger.debug(f"Input {index} of {txid.hex()} skipped: {e}")
            continue

        if pubkey is None:
            logger.debug(f"Input {index} of {txid.hex()} carries no usable key")
            continue

        try:
            points.append(backend.parse_point(pubkey))
        except ValueError:
            logger.debug(f"Input {index} of {txid.hex()} key is not on the curve: {pubkey.hex()}")

    if not points:
        raise NoKeyMaterial(f"No input of transaction {txid.hex()} yields key material")

    try:
        summed = backend.add_points(points)
    except ValueError:
        raise NoKeyMaterial(f"Input keys of transaction {txid.hex()} sum to the point at infinity")

    summed_bytes = backend.compress(summed)
    smallest_outpoint = min(input_descriptor.outpoint.serialize() for input_descriptor in inputs)
    input_hash = compute_input_hash(smallest_outpoint, summed_bytes)

    scan_tweak = backend.compress(backend.multiply(summed, input_hash))
    return [scan_tweak]


def compute_scan_tweak(
    txid: bytes,
    inputs: Sequence[InputDescriptor],
    outputs: Sequence[OutputDescriptor],
    backend: Optional[CurveBackend] = None
) -> bytes:
    """Return the primary scan tweak of a transaction (see compute_scan_tweaks)."""
    return compute_scan_tweaks(txid, inputs, outputs, backend)[0]
