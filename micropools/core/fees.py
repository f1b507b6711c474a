"""
Trade fee kernels (deterministic, integer-only).

The pool fee is 3/1000 of the RXD-side delta, truncated toward zero on the
absolute value. The same numerator and denominator are rendered into the
locking script, so changing them here changes the contract bytes.
"""

from __future__ import annotations

from dataclasses import dataclass

from .safe_math import ceil_div, checked_mul, require_int


FEE_NUMERATOR = 3
FEE_DENOMINATOR = 1000


@dataclass(frozen=True)
class FeeSchedule:
    numerator: int = FEE_NUMERATOR
    denominator: int = FEE_DENOMINATOR

    def __post_init__(self) -> None:
        for name, v in (("numerator", self.numerator), ("denominator", self.denominator)):
            require_int(name, v)
        if self.denominator <= 0:
            raise ValueError(f"denominator must be positive: {self.denominator}")
        if not (0 <= self.numerator < self.denominator):
            raise ValueError(f"numerator must be in [0, {self.denominator}): {self.numerator}")


DEFAULT_FEE_SCHEDULE = FeeSchedule()


def compute_fee(amount: int, schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE) -> int:
    """
    ``fee = floor(|amount| * numerator / denominator)``.

    Matches the script's ``OP_ABS <3> OP_MUL <1000> OP_DIV`` sequence.
    """
    require_int("amount", amount)
    magnitude = -amount if amount < 0 else amount
    return checked_mul(magnitude, schedule.numerator, operation="compute_fee") // schedule.denominator


def gross_up(net: int, schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE) -> int:
    """
    Smallest gross amount whose fee-reduced value still covers ``net``.

    ``gross = ceil(net * denominator / (denominator - numerator))``, i.e. the
    algebraic inverse of ``net = gross - fee`` rounded against the trader.
    Computed as ``net + ceil(net * numerator / (denominator - numerator))`` so
    only the small product is formed.
    """
    require_int("net", net)
    if net < 0:
        raise ValueError(f"net must be non-negative: {net}")
    scaled = checked_mul(net, schedule.numerator, operation="gross_up")
    return net + ceil_div(scaled, schedule.denominator - schedule.numerator)
