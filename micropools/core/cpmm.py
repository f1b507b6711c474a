"""
Constant Product Market Maker (CPMM) engine for micro-pools.

Integer-only trade math that is consistent with the pool script's check:

    K_in  = rxd_before * token_before
    fee   = floor(|rxd_after - rxd_before| * 3 / 1000)
    K_out = (rxd_after - fee) * token_after
    valid iff K_out >= K_in

Rounding rule:
- The reserve that stays in the pool is always rounded up
  (``ceil(K / other_reserve_after)``), so the trader's side is rounded down.
  For a buy this is ``tokens_out = floor(T * eff_in / (R + eff_in))``.
- Exact-output quotes solve for the input with ceiling division and gross up
  the fee (``gross = ceil(net * 1000 / 997)``), so the requested output is
  always reachable after the fee is taken.

Every quote re-checks K with the same fee the script derives from the RXD
delta and raises ``KViolationError`` rather than returning an unsafe trade.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from ..errors import AmountTooSmallError, InsufficientLiquidityError, KViolationError
from ..state.pools import PoolState
from .fees import DEFAULT_FEE_SCHEDULE, FeeSchedule, compute_fee, gross_up
from .safe_math import calculate_k, ceil_div, checked_mul, require_int


@dataclass(frozen=True)
class SwapResult:
    amount_in: int
    amount_out: int
    fee: int
    rxd_reserve_before: int
    token_reserve_before: int
    rxd_reserve_after: int
    token_reserve_after: int
    k_before: int
    k_after: int

    @property
    def state_after(self) -> PoolState:
        return PoolState(rxd_reserve=self.rxd_reserve_after, token_reserve=self.token_reserve_after)


def _validate_reserves(rxd_reserve: int, token_reserve: int) -> None:
    require_int("rxd_reserve", rxd_reserve)
    require_int("token_reserve", token_reserve)
    if rxd_reserve < 0 or token_reserve < 0:
        raise ValueError(f"Reserves must be non-negative: ({rxd_reserve}, {token_reserve})")
    if rxd_reserve == 0 or token_reserve == 0:
        # Withdraw-only pool.
        raise InsufficientLiquidityError(required=1, available=0)


def onchain_fee(rxd_before: int, rxd_after: int, schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE) -> int:
    """Fee exactly as the script derives it from the pool's RXD delta."""
    return compute_fee(rxd_after - rxd_before, schedule)


def _finish(
    *,
    amount_in: int,
    amount_out: int,
    fee: int,
    rxd_before: int,
    token_before: int,
    rxd_after: int,
    token_after: int,
    k_before: int,
    schedule: FeeSchedule,
) -> SwapResult:
    k_after = _k_out(rxd_before, rxd_after, token_after, schedule)
    if k_after < k_before:
        raise KViolationError(k_in=k_before, k_out=k_after)
    return SwapResult(
        amount_in=amount_in,
        amount_out=amount_out,
        fee=fee,
        rxd_reserve_before=rxd_before,
        token_reserve_before=token_before,
        rxd_reserve_after=rxd_after,
        token_reserve_after=token_after,
        k_before=k_before,
        k_after=k_after,
    )


def _k_out(rxd_before: int, rxd_after: int, token_after: int, schedule: FeeSchedule) -> int:
    effective = rxd_after - onchain_fee(rxd_before, rxd_after, schedule)
    return checked_mul(effective, token_after, operation="k_out")


# ---------------------------------------------------------------------------
# Exact-in
# ---------------------------------------------------------------------------


def swap_rxd_in(
    rxd_reserve: int,
    token_reserve: int,
    rxd_in: int,
    *,
    schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> SwapResult:
    """
    Buy tokens with exactly ``rxd_in``.

        fee = floor(rxd_in * 3 / 1000)
        new_token_reserve = ceil(K / (R + rxd_in - fee))
        tokens_out = T - new_token_reserve

    The whole ``rxd_in`` (fee included) stays in the pool.
    """
    require_int("rxd_in", rxd_in)
    if rxd_in <= 0:
        raise AmountTooSmallError(amount=rxd_in, minimum=1)
    _validate_reserves(rxd_reserve, token_reserve)

    k = calculate_k(rxd_reserve, token_reserve)
    fee = compute_fee(rxd_in, schedule)
    effective_in = rxd_in - fee
    new_token_reserve = ceil_div(k, rxd_reserve + effective_in)
    tokens_out = token_reserve - new_token_reserve
    if tokens_out <= 0:
        raise InsufficientLiquidityError(required=1, available=tokens_out)

    return _finish(
        amount_in=rxd_in,
        amount_out=tokens_out,
        fee=fee,
        rxd_before=rxd_reserve,
        token_before=token_reserve,
        rxd_after=rxd_reserve + rxd_in,
        token_after=new_token_reserve,
        k_before=k,
        schedule=schedule,
    )


def swap_tokens_in(
    rxd_reserve: int,
    token_reserve: int,
    tokens_in: int,
    *,
    schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> SwapResult:
    """
    Sell exactly ``tokens_in`` for RXD.

        gross_out = R - ceil(K / (T + tokens_in))
        fee = floor(gross_out * 3 / 1000)
        rxd_out = gross_out - fee

    The fee is taken from the gross amount, so the payout is strictly below
    the gross whenever the fee is non-zero.
    """
    require_int("tokens_in", tokens_in)
    if tokens_in <= 0:
        raise AmountTooSmallError(amount=tokens_in, minimum=1)
    _validate_reserves(rxd_reserve, token_reserve)

    k = calculate_k(rxd_reserve, token_reserve)
    new_token_reserve = token_reserve + tokens_in
    gross_out = rxd_reserve - ceil_div(k, new_token_reserve)
    fee = compute_fee(gross_out, schedule)
    rxd_out = gross_out - fee
    if rxd_out <= 0:
        raise InsufficientLiquidityError(required=1, available=rxd_out)

    return _finish(
        amount_in=tokens_in,
        amount_out=rxd_out,
        fee=fee,
        rxd_before=rxd_reserve,
        token_before=token_reserve,
        rxd_after=rxd_reserve - rxd_out,
        token_after=new_token_reserve,
        k_before=k,
        schedule=schedule,
    )


# ---------------------------------------------------------------------------
# Exact-out
# ---------------------------------------------------------------------------


def swap_for_exact_tokens(
    rxd_reserve: int,
    token_reserve: int,
    tokens_out: int,
    *,
    schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> SwapResult:
    """
    RXD required to receive exactly ``tokens_out``.

        new_rxd_curve = ceil(K / (T - tokens_out))
        net_in = new_rxd_curve - R
        rxd_in = ceil(net_in * 1000 / 997)

    Post-state reflects the requested ``tokens_out`` (not whatever an exact-in
    quote of ``rxd_in`` would over-deliver).
    """
    require_int("tokens_out", tokens_out)
    if tokens_out <= 0:
        raise AmountTooSmallError(amount=tokens_out, minimum=1)
    _validate_reserves(rxd_reserve, token_reserve)
    if tokens_out >= token_reserve:
        raise InsufficientLiquidityError(required=tokens_out, available=token_reserve - 1)

    k = calculate_k(rxd_reserve, token_reserve)
    new_token_reserve = token_reserve - tokens_out
    net_in = ceil_div(k, new_token_reserve) - rxd_reserve
    rxd_in = gross_up(net_in, schedule)
    fee = compute_fee(rxd_in, schedule)

    return _finish(
        amount_in=rxd_in,
        amount_out=tokens_out,
        fee=fee,
        rxd_before=rxd_reserve,
        token_before=token_reserve,
        rxd_after=rxd_reserve + rxd_in,
        token_after=new_token_reserve,
        k_before=k,
        schedule=schedule,
    )


def swap_for_exact_rxd(
    rxd_reserve: int,
    token_reserve: int,
    rxd_out: int,
    *,
    schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE,
) -> SwapResult:
    """
    Tokens required to receive exactly ``rxd_out`` (net of fee).

        gross_out = ceil(rxd_out * 1000 / 997)
        tokens_in = ceil(K / (R - gross_out)) - T
        fee = gross_out - rxd_out
    """
    require_int("rxd_out", rxd_out)
    if rxd_out <= 0:
        raise AmountTooSmallError(amount=rxd_out, minimum=1)
    _validate_reserves(rxd_reserve, token_reserve)

    gross_out = gross_up(rxd_out, schedule)
    if gross_out >= rxd_reserve:
        raise InsufficientLiquidityError(required=gross_out, available=rxd_reserve - 1)

    k = calculate_k(rxd_reserve, token_reserve)
    new_token_reserve = ceil_div(k, rxd_reserve - gross_out)
    tokens_in = new_token_reserve - token_reserve

    return _finish(
        amount_in=tokens_in,
        amount_out=rxd_out,
        fee=gross_out - rxd_out,
        rxd_before=rxd_reserve,
        token_before=token_reserve,
        rxd_after=rxd_reserve - rxd_out,
        token_after=new_token_reserve,
        k_before=k,
        schedule=schedule,
    )


# ---------------------------------------------------------------------------
# Public quote API
# ---------------------------------------------------------------------------


def quote_tokens_out(rxd_reserve: int, token_reserve: int, rxd_in: int) -> Tuple[int, int]:
    """Return ``(tokens_out, fee)`` for an exact RXD input."""
    res = swap_rxd_in(rxd_reserve, token_reserve, rxd_in)
    return res.amount_out, res.fee


def quote_rxd_out(rxd_reserve: int, token_reserve: int, tokens_in: int) -> Tuple[int, int]:
    """Return ``(rxd_out, fee)`` for an exact token input."""
    res = swap_tokens_in(rxd_reserve, token_reserve, tokens_in)
    return res.amount_out, res.fee


def quote_exact_tokens_out(rxd_reserve: int, token_reserve: int, tokens_out: int) -> Tuple[int, int]:
    """Return ``(rxd_in, fee)`` needed to receive exactly ``tokens_out``."""
    res = swap_for_exact_tokens(rxd_reserve, token_reserve, tokens_out)
    return res.amount_in, res.fee


def quote_exact_rxd_out(rxd_reserve: int, token_reserve: int, rxd_out: int) -> Tuple[int, int]:
    """Return ``(tokens_in, fee)`` needed to receive exactly ``rxd_out``."""
    res = swap_for_exact_rxd(rxd_reserve, token_reserve, rxd_out)
    return res.amount_in, res.fee


def verify_invariant(
    rxd_before: int,
    token_before: int,
    rxd_after: int,
    token_after: int,
    fee: int,
) -> bool:
    """
    Recompute the script's check: ``(rxd_after - fee) * token_after >= rxd_before * token_before``.

    Raises OverflowGuardError if either product leaves the safe domain.
    """
    k_in = calculate_k(rxd_before, token_before)
    effective = rxd_after - fee
    if effective < 0 or token_after < 0:
        return False
    k_out = checked_mul(effective, token_after, operation="verify_invariant")
    return k_out >= k_in


def require_invariant(before: PoolState, after: PoolState, schedule: FeeSchedule = DEFAULT_FEE_SCHEDULE) -> None:
    """Raise ``KViolationError`` unless ``before -> after`` passes the on-chain check."""
    fee = onchain_fee(before.rxd_reserve, after.rxd_reserve, schedule)
    if not verify_invariant(before.rxd_reserve, before.token_reserve, after.rxd_reserve, after.token_reserve, fee):
        k_in = calculate_k(before.rxd_reserve, before.token_reserve)
        k_out = checked_mul(max(0, after.rxd_reserve - fee), after.token_reserve, operation="require_invariant")
        raise KViolationError(k_in=k_in, k_out=k_out, fee=fee)


# ---------------------------------------------------------------------------
# PoolState helpers
# ---------------------------------------------------------------------------


def buy_tokens(state: PoolState, rxd_in: int) -> Tuple[int, int, PoolState]:
    """Return ``(tokens_out, fee, new_state)``; ``state`` is left untouched."""
    res = swap_rxd_in(state.rxd_reserve, state.token_reserve, rxd_in)
    return res.amount_out, res.fee, res.state_after


def sell_tokens(state: PoolState, tokens_in: int) -> Tuple[int, int, PoolState]:
    """Return ``(rxd_out, fee, new_state)``; ``state`` is left untouched."""
    res = swap_tokens_in(state.rxd_reserve, state.token_reserve, tokens_in)
    return res.amount_out, res.fee, res.state_after


def spot_price(rxd_reserve: int, token_reserve: int) -> float:
    """RXD per token. Display only; never used in the integer check."""
    if token_reserve == 0:
        return 0.0
    return rxd_reserve / token_reserve


def price_impact(before: PoolState, after: PoolState) -> float:
    """Absolute spot-price move in percent."""
    p0 = spot_price(before.rxd_reserve, before.token_reserve)
    if p0 == 0:
        return 0.0
    p1 = spot_price(after.rxd_reserve, after.token_reserve)
    return abs((p1 - p0) / p0) * 100
