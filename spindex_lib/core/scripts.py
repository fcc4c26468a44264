"""
Script classification and key extraction.

This module contains pure functions for:
- Classifying a scriptPubKey into one of the standard templates
- Selecting eligible (taproot) outputs of a transaction
- Extracting the public key an input contributes to the BIP-352 key sum
"""

from enum import Enum
from typing import List, Optional, Sequence

from .constants import (
    OP_0, OP_1, OP_16, OP_DUP, OP_HASH160, OP_EQUAL, OP_EQUALVERIFY, OP_CHECKSIG,
    PUBKEY_SIZE, TAPROOT_ANNEX_TAG, NUMS_H,
)
from .crypto import hash160
from .errors import UnsupportedScript
from .models import EligibleOutput, InputDescriptor, OutputDescriptor


class ScriptType(Enum):
    """Standard scriptPubKey templates relevant to silent payments."""
    P2PKH = 'pubkeyhash'
    P2SH = 'scripthash'
    P2WPKH = 'witness_v0_keyhash'
    P2WSH = 'witness_v0_scripthash'
    P2TR = 'witness_v1_taproot'
    WITNESS_FUTURE = 'witness_unknown'  # witness version 2..16
    NONSTANDARD = 'nonstandard'


def witness_version(script: bytes) -> Optional[int]:
    """
    Return the witness version of a witness program script, or None.

    A witness program is a version opcode (OP_0, OP_1..OP_16) followed by a
    single 2..40 byte push.
    """
    if not 4 <= len(script) <= 42:
        return None
    if script[1] != len(script) - 2:
        return None
    if script[0] == OP_0:
        return 0
    if OP_1 <= script[0] <= OP_16:
        return script[0] - OP_1 + 1
    return None


def classify_script(script: bytes) -> ScriptType:
    """
    Classify a scriptPubKey.

    Args:
        script: Raw scriptPubKey bytes

    Returns:
        The matching ScriptType (NONSTANDARD when nothing matches)
    """
    if (len(script) == 25 and script[0] == OP_DUP and script[1] == OP_HASH160
            and script[2] == 0x14 and script[23] == OP_EQUALVERIFY and script[24] == OP_CHECKSIG):
        return ScriptType.P2PKH

    if len(script) == 23 and script[0] == OP_HASH160 and script[1] == 0x14 and script[22] == OP_EQUAL:
        return ScriptType.P2SH

    version = witness_version(script)
    if version == 0 and len(script) == 22:
        return ScriptType.P2WPKH
    if version == 0 and len(script) == 34:
        return ScriptType.P2WSH
    if version == 1 and len(script) == 34:
        return ScriptType.P2TR
    if version is not None and version > 1:
        return ScriptType.WITNESS_FUTURE

    return ScriptType.NONSTANDARD


def is_eligible_script(script: bytes) -> bool:
    """True if the script is OP_1 <32-byte key>, the only output shape silent payments use."""
    return len(script) == 2 + PUBKEY_SIZE and script[0] == OP_1 and script[1] == PUBKEY_SIZE


def extract_eligible_outputs(outputs: Sequence[OutputDescriptor]) -> List[EligibleOutput]:
    """
    Select the outputs whose script carries an x-only key.

    The key is taken verbatim from the script; it is not checked for being
    a valid curve point.

    Args:
        outputs: All outputs of a transaction, in order

    Returns:
        Eligible outputs in transaction order, each tagged with its real index
    """
    return [
        EligibleOutput(pubkey=output.script_pubkey[2:], value=output.value, vout=index)
        for index, output in enumerate(outputs)
        if is_eligible_script(output.script_pubkey)
    ]


def is_compressed_pubkey(data: bytes) -> bool:
    return len(data) == 33 and data[0] in (0x02, 0x03)


def _p2pkh_pubkey(script_pubkey: bytes, script_sig: Optional[bytes]) -> Optional[bytes]:
    # Walk backwards so a malleated scriptSig cannot shadow the real key.
    if not script_sig:
        return None
    key_hash = script_pubkey[3:23]
    for end in range(len(script_sig), 32, -1):
        candidate = script_sig[end - 33:end]
        if hash160(candidate) == key_hash:
            return candidate if is_compressed_pubkey(candidate) else None
    return None


def _p2sh_p2wpkh_pubkey(script_pubkey: bytes, witness: Optional[Sequence[bytes]]) -> Optional[bytes]:
    if not witness:
        return None
    pubkey = witness[-1]
    if not is_compressed_pubkey(pubkey):
        return None
    redeem_script = bytes([OP_0, 0x14]) + hash160(pubkey)
    if hash160(redeem_script) != script_pubkey[2:22]:
        return None
    return pubkey


def _p2wpkh_pubkey(witness: Optional[Sequence[bytes]]) -> Optional[bytes]:
    if not witness:
        return None
    pubkey = witness[-1]
    return pubkey if is_compressed_pubkey(pubkey) else None


def _p2tr_pubkey(script_pubkey: bytes, witness: Optional[Sequence[bytes]]) -> Optional[bytes]:
    if not witness:
        return None
    stack = list(witness)
    if len(stack) > 1 and stack[-1][:1] == bytes([TAPROOT_ANNEX_TAG]):
        stack.pop()
    if len(stack) > 1:
        control_block = stack[-1]
        if control_block[1:33] == NUMS_H:
            return None
    # x-only keys are lifted to the point with even Y
    return b'\x02' + script_pubkey[2:]


def extract_input_pubkey(input_descriptor: InputDescriptor) -> Optional[bytes]:
    """
    Extract the public key an input contributes to the BIP-352 key sum.

    Args:
        input_descriptor: Input with resolved previous output script

    Returns:
        33-byte compressed public key, or None when the input follows a
        known pattern but carries no usable key (uncompressed key, NUMS
        script path, missing witness)

    Raises:
        UnsupportedScript: If the previous output script is not a
            P2PKH, P2SH-P2WPKH, P2WPKH or P2TR template
    """
    script_pubkey = input_descriptor.prevout_script
    script_type = classify_script(script_pubkey)

    if script_type == ScriptType.P2PKH:
        return _p2pkh_pubkey(script_pubkey, input_descriptor.script_sig)
    elif script_type == ScriptType.P2SH:
        return _p2sh_p2wpkh_pubkey(script_pubkey, input_descriptor.witness)
    elif script_type == ScriptType.P2WPKH:
        return _p2wpkh_pubkey(input_descriptor.witness)
    elif script_type == ScriptType.P2TR:
        return _p2tr_pubkey(script_pubkey, input_descriptor.witness)

    raise UnsupportedScript(
        f"Input {input_descriptor.outpoint} spends a {script_type.value} output"
    )
