"""
64-bit-safe integer helpers.

The on-chain interpreter multiplies signed 64-bit script numbers. Off-chain we
use Python ints, so every product that the script would also compute is routed
through ``checked_mul``, which refuses operands that could leave the range
*before* multiplying.
"""

from __future__ import annotations

from ..errors import OverflowGuardError

# Operands above this are rejected; the gap to MAX_INT64 is fee headroom.
MAX_SAFE_VALUE = 2**62
MAX_INT64 = 2**63 - 1


def require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")


def checked_mul(a: int, b: int, *, operation: str) -> int:
    """
    Multiply ``a * b`` only if the product is provably inside int64.

    Rules:
    - a zero operand yields 0 (nothing to overflow)
    - |a| and |b| must both be <= 2^62
    - |b| must be <= floor((2^63 - 1) / |a|)

    Raises:
        OverflowGuardError: naming ``operation`` and both operands
    """
    require_int("a", a)
    require_int("b", b)
    if a == 0 or b == 0:
        return 0
    abs_a = -a if a < 0 else a
    abs_b = -b if b < 0 else b
    if abs_a > MAX_SAFE_VALUE or abs_b > MAX_SAFE_VALUE:
        raise OverflowGuardError(operation, a, b)
    if abs_b > MAX_INT64 // abs_a:
        raise OverflowGuardError(operation, a, b)
    return a * b


def calculate_k(rxd_reserve: int, token_reserve: int) -> int:
    """Constant product ``K = rxd_reserve * token_reserve`` (overflow-guarded)."""
    return checked_mul(rxd_reserve, token_reserve, operation="calculate_k")


def ceil_div(numerator: int, denominator: int) -> int:
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    if numerator < 0:
        raise ValueError("numerator must be non-negative")
    return (numerator + denominator - 1) // denominator
