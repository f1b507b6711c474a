from __future__ import annotations

import pytest

from micropools.core.opcodes import (
    Op,
    decode_num,
    decode_state_amount,
    encode_num,
    encode_state_amount,
    is_minimal_push,
    iter_script,
    push_data,
    push_number,
)
from micropools.errors import ErrorKind, InvalidLayoutError, OverflowGuardError, StateTooShortError


@pytest.mark.parametrize(
    "n, encoded",
    [
        (0, ""),
        (1, "01"),
        (127, "7f"),
        (128, "8000"),
        (255, "ff00"),
        (1000, "e803"),
        (-1, "81"),
        (-127, "ff"),
        (-128, "8080"),
    ],
)
def test_encode_num_is_minimal_sign_magnitude(n: int, encoded: str) -> None:
    assert encode_num(n).hex() == encoded
    assert decode_num(bytes.fromhex(encoded)) == n


@pytest.mark.parametrize("data", ["00", "0100", "80", "ff0000"])
def test_decode_num_rejects_non_minimal(data: str) -> None:
    with pytest.raises(InvalidLayoutError):
        decode_num(bytes.fromhex(data))


def test_decode_num_rejects_oversize_operand() -> None:
    with pytest.raises(InvalidLayoutError):
        decode_num(b"\x01" * 9)


def test_push_number_small_ints_use_dedicated_opcodes() -> None:
    assert push_number(0) == bytes([Op.OP_0])
    assert push_number(1) == bytes([Op.OP_1])
    assert push_number(8) == bytes([0x58])
    assert push_number(16) == bytes([Op.OP_16])
    assert push_number(-1) == bytes([Op.OP_1NEGATE])
    assert push_number(17) == bytes([0x01, 0x11])
    assert push_number(1000) == bytes.fromhex("02e803")


def test_push_data_picks_smallest_encoding() -> None:
    assert push_data(b"") == bytes([Op.OP_0])
    assert push_data(b"\x05") == bytes([Op.OP_1 + 4])
    assert push_data(b"\x81") == bytes([Op.OP_1NEGATE])
    assert push_data(b"\x00") == b"\x01\x00"
    assert push_data(b"\xaa" * 20) == b"\x14" + b"\xaa" * 20
    assert push_data(b"\xaa" * 75)[:1] == b"\x4b"
    assert push_data(b"\xaa" * 76)[:2] == bytes([Op.OP_PUSHDATA1, 76])
    assert push_data(b"\xaa" * 256)[:3] == bytes([Op.OP_PUSHDATA2, 0x00, 0x01])


def test_push_data_rejects_oversize_payload() -> None:
    with pytest.raises(InvalidLayoutError) as exc:
        push_data(b"\x00" * 65536)
    assert exc.value.kind is ErrorKind.INVALID_LAYOUT


def test_iter_script_tokenizes_pushes_and_opcodes() -> None:
    script = bytes([Op.OP_DUP, Op.OP_HASH160]) + push_data(b"\x01" * 20) + bytes([Op.OP_EQUALVERIFY])
    ops = list(iter_script(script))
    assert [op.opcode for op in ops] == [Op.OP_DUP, Op.OP_HASH160, 20, Op.OP_EQUALVERIFY]
    assert ops[2].data == b"\x01" * 20
    assert ops[2].offset == 2
    assert not ops[0].is_push
    assert all(is_minimal_push(op) for op in ops)


def test_iter_script_rejects_truncated_push() -> None:
    with pytest.raises(InvalidLayoutError):
        list(iter_script(b"\x14" + b"\x00" * 19))
    with pytest.raises(InvalidLayoutError):
        list(iter_script(bytes([Op.OP_PUSHDATA2, 0x01])))


def test_is_minimal_push_flags_padded_encodings() -> None:
    (op,) = iter_script(bytes([Op.OP_PUSHDATA1, 1, 0x05]))
    assert op.data == b"\x05"
    assert not is_minimal_push(op)


def test_state_amount_is_fixed_width_little_endian() -> None:
    assert encode_state_amount(1000) == bytes.fromhex("e803000000000000")
    assert encode_state_amount(-1) == b"\xff" * 8
    assert decode_state_amount(bytes.fromhex("e803000000000000")) == 1000
    assert decode_state_amount(encode_state_amount(2**63 - 1)) == 2**63 - 1


def test_state_amount_bounds() -> None:
    with pytest.raises(OverflowGuardError):
        encode_state_amount(2**63)
    with pytest.raises(StateTooShortError) as exc:
        decode_state_amount(b"\x00" * 7)
    assert exc.value.context == {"available": 7, "required": 8}
    with pytest.raises(InvalidLayoutError):
        decode_state_amount(b"\x00" * 9)
