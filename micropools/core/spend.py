"""
Spend-path checks for pool scripts.

These mirror the two branches of the locking script so callers can validate
a spend before handing it to a transport layer. They are not a script
interpreter: signature verification is supplied by the caller, and only the
pool's own input/output pair is inspected.

    witness non-empty -> WITHDRAW: <sig> <pubkey>, hash160(pubkey) == owner_hash
    witness empty     -> TRADE:    same code portion out, K_in <= K_out
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, List

from ..errors import LayoutError
from .contract import code_portion, hash160, parse_script
from .cpmm import onchain_fee, verify_invariant
from .opcodes import iter_script, push_data

SignatureVerifier = Callable[[bytes, bytes], bool]


class SpendPath(Enum):
    WITHDRAW = "WITHDRAW"
    TRADE = "TRADE"


def _witness_items(unlock_script: bytes) -> List[bytes]:
    items: List[bytes] = []
    for op in iter_script(unlock_script):
        if op.data is None:
            raise ValueError(f"unlocking script must be push-only (opcode 0x{op.opcode:02x} at {op.offset})")
        items.append(op.data)
    return items


def spend_path(unlock_script: bytes) -> SpendPath:
    """``OP_DEPTH OP_IF``: any witness item selects the owner branch."""
    return SpendPath.WITHDRAW if _witness_items(unlock_script) else SpendPath.TRADE


def withdrawal_unlock(signature: bytes, public_key: bytes) -> bytes:
    """Owner unlocking script ``<signature> <public_key>``."""
    if not signature or not public_key:
        raise ValueError("signature and public key must be non-empty")
    return push_data(bytes(signature)) + push_data(bytes(public_key))


def verify_withdrawal(
    locking_script: bytes,
    unlock_script: bytes,
    verify_signature: SignatureVerifier,
) -> bool:
    """
    Owner path: exactly two witness items, the public key hashes to the
    script's owner hash, and ``verify_signature(signature, public_key)`` holds.

    Outputs are unconstrained on this path, so none are checked.
    """
    owner_hash = parse_script(locking_script).owner_hash
    try:
        items = _witness_items(unlock_script)
    except ValueError:
        return False
    if len(items) != 2:
        return False
    signature, public_key = items
    if hash160(public_key) != owner_hash:
        return False
    return bool(verify_signature(signature, public_key))


def verify_trade_spend(
    input_script: bytes,
    input_value: int,
    output_script: bytes,
    output_value: int,
) -> bool:
    """
    Trade path for one pool: the same-indexed output keeps the code portion
    and ``(rxd_out - fee) * token_out >= rxd_in * token_in``.

    Malformed scripts are a failed spend, not an error.
    """
    try:
        if code_portion(input_script) != code_portion(output_script):
            return False
        token_in = parse_script(input_script).token_reserve
        token_out = parse_script(output_script).token_reserve
    except LayoutError:
        return False
    if input_value < 0 or output_value < 0 or token_in < 0 or token_out < 0:
        return False
    fee = onchain_fee(input_value, output_value)
    return verify_invariant(input_value, token_in, output_value, token_out, fee)
