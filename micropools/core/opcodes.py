"""
Opcode table and canonical push encoding.

Everything the pool template emits goes through ``push_data`` / ``push_number``,
which always choose the smallest encoding the interpreter accepts. Validators
reject non-minimal pushes, so nothing here can produce one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, Optional

from ..errors import InvalidLayoutError, OverflowGuardError, StateTooShortError
from ..state.pools import MAX_INT64, STATE_SIZE


class Op(IntEnum):
    # Push
    OP_0 = 0x00
    OP_PUSHDATA1 = 0x4C
    OP_PUSHDATA2 = 0x4D
    OP_PUSHDATA4 = 0x4E
    OP_1NEGATE = 0x4F
    OP_1 = 0x51
    OP_16 = 0x60

    # Control
    OP_IF = 0x63
    OP_ELSE = 0x67
    OP_ENDIF = 0x68

    # Stack
    OP_DEPTH = 0x74
    OP_DROP = 0x75
    OP_DUP = 0x76
    OP_NIP = 0x77
    OP_ROT = 0x7B
    OP_SWAP = 0x7C
    OP_TUCK = 0x7D

    # Splice / conversion
    OP_SPLIT = 0x7F
    OP_NUM2BIN = 0x80
    OP_BIN2NUM = 0x81
    OP_SIZE = 0x82

    # Comparison
    OP_EQUAL = 0x87
    OP_EQUALVERIFY = 0x88

    # Arithmetic
    OP_ABS = 0x90
    OP_ADD = 0x93
    OP_SUB = 0x94
    OP_MUL = 0x95
    OP_DIV = 0x96
    OP_LESSTHANOREQUAL = 0xA1
    OP_GREATERTHANOREQUAL = 0xA2

    # Crypto
    OP_HASH160 = 0xA9
    OP_CHECKSIG = 0xAC

    # State
    OP_STATESEPARATOR = 0xBD

    # Introspection
    OP_INPUTINDEX = 0xC0
    OP_UTXOVALUE = 0xC5
    OP_OUTPUTVALUE = 0xC6
    OP_UTXOBYTECODE = 0xC7
    OP_OUTPUTBYTECODE = 0xC8


MAX_DIRECT_PUSH = 75
MAX_NUM_SIZE = 8


def small_int_opcode(n: int) -> int:
    """OP_1..OP_16 for n in [1, 16]."""
    if not (1 <= n <= 16):
        raise ValueError(f"no dedicated opcode for {n}")
    return Op.OP_1 + n - 1


def encode_num(n: int) -> bytes:
    """
    Canonical script number: little-endian magnitude, sign in the top bit of
    the last byte, no redundant trailing bytes. Zero is the empty string.
    """
    if not isinstance(n, int) or isinstance(n, bool):
        raise TypeError("n must be an int")
    if n == 0:
        return b""
    negative = n < 0
    magnitude = -n if negative else n
    out = bytearray()
    while magnitude:
        out.append(magnitude & 0xFF)
        magnitude >>= 8
    if out[-1] & 0x80:
        out.append(0x80 if negative else 0x00)
    elif negative:
        out[-1] |= 0x80
    return bytes(out)


def decode_num(data: bytes, *, max_size: int = MAX_NUM_SIZE) -> int:
    """Inverse of ``encode_num``; rejects oversize and non-minimal encodings."""
    if len(data) > max_size:
        raise InvalidLayoutError(f"script number too large: {len(data)} > {max_size} bytes", size=len(data))
    if not data:
        return 0
    if (data[-1] & 0x7F) == 0 and (len(data) == 1 or (data[-2] & 0x80) == 0):
        raise InvalidLayoutError(f"non-minimally encoded script number: {data.hex()}", data=data.hex())
    value = int.from_bytes(data, "little")
    sign_bit = 0x80 << (8 * (len(data) - 1))
    if value & sign_bit:
        return -(value & ~sign_bit)
    return value


def push_data(data: bytes) -> bytes:
    """Smallest push for ``data``."""
    size = len(data)
    if size == 0:
        return bytes([Op.OP_0])
    if size == 1 and 1 <= data[0] <= 16:
        return bytes([small_int_opcode(data[0])])
    if size == 1 and data[0] == 0x81:
        return bytes([Op.OP_1NEGATE])
    if size <= MAX_DIRECT_PUSH:
        return bytes([size]) + data
    if size <= 0xFF:
        return bytes([Op.OP_PUSHDATA1, size]) + data
    if size <= 0xFFFF:
        return bytes([Op.OP_PUSHDATA2]) + size.to_bytes(2, "little") + data
    raise InvalidLayoutError(f"data too large for push: {size} bytes", size=size)


def push_number(n: int) -> bytes:
    """Minimal push for a script number."""
    if n == 0:
        return bytes([Op.OP_0])
    if 1 <= n <= 16:
        return bytes([small_int_opcode(n)])
    if n == -1:
        return bytes([Op.OP_1NEGATE])
    return push_data(encode_num(n))


@dataclass(frozen=True)
class ScriptOp:
    """One tokenized operation. ``data`` is set for pushes (incl. OP_0, OP_1NEGATE, OP_1..OP_16)."""
    offset: int
    opcode: int
    raw: bytes
    data: Optional[bytes] = None

    @property
    def is_push(self) -> bool:
        return self.data is not None


def iter_script(script: bytes) -> Iterator[ScriptOp]:
    """
    Tokenize ``script`` into operations.

    Raises:
        InvalidLayoutError: if a push runs past the end of the script
    """
    i = 0
    end = len(script)
    while i < end:
        op = script[i]
        start = i
        i += 1
        size: Optional[int] = None
        if 1 <= op <= MAX_DIRECT_PUSH:
            size = op
        elif op == Op.OP_PUSHDATA1:
            width = 1
        elif op == Op.OP_PUSHDATA2:
            width = 2
        elif op == Op.OP_PUSHDATA4:
            width = 4
        else:
            if op == Op.OP_0:
                data: Optional[bytes] = b""
            elif op == Op.OP_1NEGATE:
                data = encode_num(-1)
            elif Op.OP_1 <= op <= Op.OP_16:
                data = encode_num(op - Op.OP_1 + 1)
            else:
                data = None
            yield ScriptOp(offset=start, opcode=op, raw=script[start:i], data=data)
            continue

        if size is None:
            if i + width > end:
                raise InvalidLayoutError(f"truncated push length at offset {start}", offset=start)
            size = int.from_bytes(script[i : i + width], "little")
            i += width
        if i + size > end:
            raise InvalidLayoutError(
                f"push of {size} bytes at offset {start} runs past end of script", offset=start, size=size
            )
        payload = script[i : i + size]
        i += size
        yield ScriptOp(offset=start, opcode=op, raw=script[start:i], data=payload)


def is_minimal_push(op: ScriptOp) -> bool:
    """True if ``op`` is not a push, or is pushed with its smallest encoding."""
    if op.data is None:
        return True
    return push_data(op.data) == op.raw


def encode_state_amount(amount: int) -> bytes:
    """Fixed 8-byte little-endian signed state field."""
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise TypeError("amount must be an int")
    if not (-MAX_INT64 - 1 <= amount <= MAX_INT64):
        raise OverflowGuardError("encode_state_amount", amount, MAX_INT64)
    return amount.to_bytes(STATE_SIZE, "little", signed=True)


def decode_state_amount(data: bytes) -> int:
    if len(data) < STATE_SIZE:
        raise StateTooShortError(available=len(data), required=STATE_SIZE)
    if len(data) > STATE_SIZE:
        raise InvalidLayoutError(
            f"state field must be exactly {STATE_SIZE} bytes, got {len(data)}", size=len(data)
        )
    return int.from_bytes(data, "little", signed=True)
