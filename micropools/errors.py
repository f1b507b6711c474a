"""Exception types for the micro-pool codec, trade math and router.

Every failure carries an ``ErrorKind`` plus a ``context`` mapping with the
numbers involved, so callers can branch on the category without parsing text.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict


class ErrorKind(Enum):
    MISSING_SEPARATOR = "MissingSeparator"
    STATE_TOO_SHORT = "StateTooShort"
    OWNER_HASH_NOT_FOUND = "OwnerHashNotFound"
    INVALID_LAYOUT = "InvalidLayout"
    AMOUNT_TOO_SMALL = "AmountTooSmall"
    INSUFFICIENT_LIQUIDITY = "InsufficientLiquidity"
    SLIPPAGE_EXCEEDED = "SlippageExceeded"
    POOL_NOT_FOUND = "PoolNotFound"
    K_VIOLATION = "KViolation"
    OVERFLOW = "Overflow"


class MicroPoolError(Exception):
    """Base class. Subclasses pin ``kind``."""

    kind: ErrorKind

    def __init__(self, message: str, **context: Any) -> None:
        self.context: Dict[str, Any] = dict(context)
        super().__init__(message)


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


class LayoutError(MicroPoolError, ValueError):
    """Malformed or unparseable script bytes."""


class MissingSeparatorError(LayoutError):
    kind = ErrorKind.MISSING_SEPARATOR

    def __init__(self, script_size: int) -> None:
        super().__init__(f"no state separator found in {script_size}-byte script", script_size=script_size)


class StateTooShortError(LayoutError):
    kind = ErrorKind.STATE_TOO_SHORT

    def __init__(self, available: int, required: int) -> None:
        super().__init__(
            f"state too short: {available} bytes after separator, need {required}",
            available=available,
            required=required,
        )


class OwnerHashNotFoundError(LayoutError):
    kind = ErrorKind.OWNER_HASH_NOT_FOUND

    def __init__(self, message: str = "withdrawal branch with owner hash not found") -> None:
        super().__init__(message)


class InvalidLayoutError(LayoutError):
    kind = ErrorKind.INVALID_LAYOUT


# ---------------------------------------------------------------------------
# Amounts
# ---------------------------------------------------------------------------


class AmountError(MicroPoolError, ValueError):
    """Valid input that current reserves or caller bounds cannot satisfy."""


class AmountTooSmallError(AmountError):
    kind = ErrorKind.AMOUNT_TOO_SMALL

    def __init__(self, amount: int, minimum: int) -> None:
        super().__init__(f"amount {amount} below minimum {minimum}", amount=amount, minimum=minimum)


class InsufficientLiquidityError(AmountError):
    kind = ErrorKind.INSUFFICIENT_LIQUIDITY

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            f"insufficient liquidity: required {required}, available {available}",
            required=required,
            available=available,
        )


class SlippageExceededError(AmountError):
    kind = ErrorKind.SLIPPAGE_EXCEEDED

    def __init__(self, minimum: int, actual: int) -> None:
        shortfall = minimum - actual
        super().__init__(
            f"slippage exceeded: wanted at least {minimum}, route yields {actual} (short by {shortfall})",
            minimum=minimum,
            actual=actual,
            shortfall=shortfall,
        )

    @property
    def shortfall(self) -> int:
        return int(self.context["shortfall"])


# ---------------------------------------------------------------------------
# Routing / invariant / arithmetic
# ---------------------------------------------------------------------------


class PoolNotFoundError(MicroPoolError):
    kind = ErrorKind.POOL_NOT_FOUND

    def __init__(self, message: str = "no pools available for trading", **context: Any) -> None:
        super().__init__(message, **context)


class KViolationError(MicroPoolError):
    """A computed trade would fail the on-chain constant-product check."""

    kind = ErrorKind.K_VIOLATION

    def __init__(self, k_in: int, k_out: int, **context: Any) -> None:
        super().__init__(f"K violation: K_in={k_in}, K_out={k_out}", k_in=k_in, k_out=k_out, **context)


class OverflowGuardError(MicroPoolError):
    """An operation would leave the 64-bit-safe arithmetic domain."""

    kind = ErrorKind.OVERFLOW

    def __init__(self, operation: str, a: int, b: int) -> None:
        super().__init__(f"overflow in {operation}: {a} and {b}", operation=operation, a=a, b=b)
