"""
Multi-pool trade routing (greedy, deterministic).

A swap is spread over independent micro-pools, cheapest first:

1. no pools -> ``PoolNotFoundError``
2. pools below the dust floor are skipped
3. stable sort by exact spot price (ascending for BUY, descending for SELL);
   ties keep caller order
4. walk the sorted pools; each takes the whole remaining input, clipped to its
   capacity (the input that draws the output side down to the residual)
5. no steps -> ``InsufficientLiquidityError``
6. total output below ``min_amount_out`` -> ``SlippageExceededError``

Greedy allocation is not globally optimal: it never splits an amount that
one pool can absorb, even when splitting would lower total price impact.
Input that no pool can absorb is left unspent and shows up as
``total_amount_in < request.amount_in``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from typing import List, Optional, Sequence, Tuple

from ..errors import InsufficientLiquidityError, PoolNotFoundError, SlippageExceededError
from ..state.pools import DUST_LIMIT, Pool, PoolState, TxOutput
from .contract import update_state
from .cpmm import SwapResult, price_impact, require_invariant, spot_price, swap_rxd_in, swap_tokens_in
from .fees import DEFAULT_FEE_SCHEDULE, FeeSchedule, gross_up
from .liquidity import DEFAULT_MINER_FEE
from .safe_math import calculate_k, ceil_div, require_int

logger = logging.getLogger(__name__)


class Direction(Enum):
    BUY = "buy"  # RXD -> token
    SELL = "sell"  # token -> RXD


@dataclass(frozen=True)
class SwapRequest:
    direction: Direction
    amount_in: int
    min_amount_out: int
    recipient: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.direction, Direction):
            raise TypeError("direction must be a Direction")
        require_int("amount_in", self.amount_in)
        require_int("min_amount_out", self.min_amount_out)
        if self.amount_in <= 0:
            raise ValueError(f"amount_in must be positive: {self.amount_in}")
        if self.min_amount_out < 0:
            raise ValueError(f"min_amount_out must be non-negative: {self.min_amount_out}")
        if not isinstance(self.recipient, bytes):
            raise TypeError("recipient must be bytes (a locking script)")


@dataclass(frozen=True)
class RouterConfig:
    """
    Attributes:
        token_residual: Token units a BUY must leave in each pool's curve
        rxd_residual: RXD units a SELL must leave in each pool's curve
        skip_dust_pools: Skip pools below the dust floor instead of quoting them
        fee: Fee schedule the pools were built with
    """
    token_residual: int = 1
    rxd_residual: int = 1
    skip_dust_pools: bool = True
    fee: FeeSchedule = DEFAULT_FEE_SCHEDULE

    def __post_init__(self) -> None:
        for name, v in (("token_residual", self.token_residual), ("rxd_residual", self.rxd_residual)):
            require_int(name, v)
            if v < 1:
                raise ValueError(f"{name} must be >= 1: {v}")


@dataclass(frozen=True)
class TradeStep:
    pool: Pool
    amount_in: int
    amount_out: int
    fee: int
    new_state: PoolState

    @property
    def price_impact(self) -> float:
        return price_impact(self.pool.state, self.new_state)


@dataclass(frozen=True)
class TradeRoute:
    direction: Direction
    steps: Tuple[TradeStep, ...]
    total_amount_in: int
    total_amount_out: int
    total_fee: int
    # RXD per token in both directions.
    average_price: float


@dataclass(frozen=True)
class SwapQuote:
    amount_out: int
    fee: int
    price_impact: float
    # Execution price against the first pool's spot price, in percent.
    slippage: float
    route: TradeRoute


@dataclass(frozen=True)
class PriceQuote:
    """
    Market price across a pool set. Display only.

    Attributes:
        spot_price: RXD per token, weighted by each pool's RXD reserve
        pool_count: Number of pools given
        total_liquidity: Sum of their RXD reserves
    """
    spot_price: float
    pool_count: int
    total_liquidity: int


def _price(pool: Pool) -> Fraction:
    return Fraction(pool.rxd_reserve, pool.token_reserve)


def aggregate_price(pools: Sequence[Pool]) -> PriceQuote:
    """
    RXD-weighted spot price: ``sum(R_i * R_i / T_i) / sum(R_i)``.

    Pools with an empty side count toward ``pool_count`` and ``total_liquidity``
    but carry no price. No priced pools gives a price of 0.0.
    """
    total_liquidity = sum(p.rxd_reserve for p in pools)
    priced = [p for p in pools if p.rxd_reserve > 0 and p.token_reserve > 0]
    weight = sum(p.rxd_reserve for p in priced)
    if weight == 0:
        price = 0.0
    else:
        price = float(sum(_price(p) * p.rxd_reserve for p in priced) / weight)
    return PriceQuote(spot_price=price, pool_count=len(pools), total_liquidity=total_liquidity)


def sort_pools(pools: Sequence[Pool], direction: Direction) -> List[Pool]:
    """
    Best price first; ``sorted`` is stable, so equal prices keep input order.

    Pools with an empty reserve on either side have no price and are dropped.
    """
    priced = [p for p in pools if p.rxd_reserve > 0 and p.token_reserve > 0]
    return sorted(priced, key=_price, reverse=direction is Direction.SELL)


def pool_capacity(state: PoolState, direction: Direction, config: RouterConfig = RouterConfig()) -> int:
    """
    Input amount at which ``state``'s output side reaches the residual.

    BUY:  smallest rxd_in with ceil(K / (R + rxd_in - fee)) <= token_residual
    SELL: smallest tokens_in with ceil(K / (T + tokens_in)) <= rxd_residual

    Returns 0 when the pool is already at or below the residual.
    """
    k = calculate_k(state.rxd_reserve, state.token_reserve)
    if direction is Direction.BUY:
        if state.token_reserve <= config.token_residual:
            return 0
        net = ceil_div(k, config.token_residual) - state.rxd_reserve
        return gross_up(max(net, 0), config.fee)
    if state.rxd_reserve <= config.rxd_residual:
        return 0
    return max(ceil_div(k, config.rxd_residual) - state.token_reserve, 0)


def _swap(state: PoolState, direction: Direction, amount: int, config: RouterConfig) -> SwapResult:
    if direction is Direction.BUY:
        return swap_rxd_in(state.rxd_reserve, state.token_reserve, amount, schedule=config.fee)
    return swap_tokens_in(state.rxd_reserve, state.token_reserve, amount, schedule=config.fee)


def _at_residual(result: SwapResult, direction: Direction, config: RouterConfig) -> bool:
    if direction is Direction.BUY:
        return result.token_reserve_after <= config.token_residual
    # Curve reserve before the fee is retained.
    curve = result.rxd_reserve_before - result.amount_out - result.fee
    return curve <= config.rxd_residual


def route_swap(
    pools: Sequence[Pool],
    request: SwapRequest,
    *,
    config: RouterConfig = RouterConfig(),
) -> TradeRoute:
    """
    Split ``request`` across ``pools`` and return the full route.

    Raises:
        PoolNotFoundError: ``pools`` is empty
        InsufficientLiquidityError: no pool produced a step
        SlippageExceededError: total output below ``request.min_amount_out``
        KViolationError: a step would fail the on-chain check
        OverflowGuardError: reserves or amounts leave the 64-bit-safe domain
    """
    if not pools:
        raise PoolNotFoundError()

    direction = request.direction
    remaining = request.amount_in
    steps: List[TradeStep] = []
    total_out = 0
    total_fee = 0

    for pool in sort_pools(pools, direction):
        if remaining <= 0:
            break
        state = pool.state
        if config.skip_dust_pools and not state.is_tradable:
            logger.debug("skip %s: below dust floor %r", pool.pool_id, state)
            continue

        allocation = remaining
        try:
            result = _swap(state, direction, allocation, config)
            if _at_residual(result, direction, config):
                capacity = pool_capacity(state, direction, config)
                if capacity <= 0:
                    logger.debug("skip %s: at residual", pool.pool_id)
                    continue
                if capacity < allocation:
                    logger.debug("clip %s: %d -> %d", pool.pool_id, allocation, capacity)
                    allocation = capacity
                    result = _swap(state, direction, allocation, config)
        except InsufficientLiquidityError:
            logger.debug("skip %s: %d yields no output", pool.pool_id, allocation)
            continue

        new_state = result.state_after
        require_invariant(state, new_state, config.fee)
        steps.append(
            TradeStep(
                pool=pool,
                amount_in=allocation,
                amount_out=result.amount_out,
                fee=result.fee,
                new_state=new_state,
            )
        )
        remaining -= allocation
        total_out += result.amount_out
        total_fee += result.fee

    if not steps:
        raise InsufficientLiquidityError(required=request.amount_in, available=0)

    if total_out < request.min_amount_out:
        raise SlippageExceededError(minimum=request.min_amount_out, actual=total_out)

    total_in = request.amount_in - remaining
    if direction is Direction.BUY:
        average_price = total_in / total_out
    else:
        average_price = total_out / total_in

    return TradeRoute(
        direction=direction,
        steps=tuple(steps),
        total_amount_in=total_in,
        total_amount_out=total_out,
        total_fee=total_fee,
        average_price=average_price,
    )


def materialize_outputs(route: TradeRoute) -> List[TxOutput]:
    """
    Next pool outputs in step order; output ``i`` replaces the input of ``route.steps[i].pool``.

    Scripts come from ``update_state`` only, so the code portion carries over unchanged.
    """
    return [
        TxOutput(
            value=step.new_state.rxd_reserve,
            script=update_state(step.pool.script, step.new_state.token_reserve),
        )
        for step in route.steps
    ]


def build_trade_outputs(
    route: TradeRoute,
    request: SwapRequest,
    funding_value: int,
    *,
    miner_fee: int = DEFAULT_MINER_FEE,
    change_script: Optional[bytes] = None,
) -> List[TxOutput]:
    """
    All outputs of the trade transaction, in order:

    1. the next pool outputs (``materialize_outputs``), one per step
    2. the receiver output to ``request.recipient``: the RXD proceeds for a
       SELL, a dust carrier for the bought tokens on a BUY
    3. change to ``change_script`` (default ``request.recipient``), only when
       it reaches the dust floor

    ``funding_value`` is the RXD total of the trader's funding inputs. Change
    balances the transaction:
    ``funding - spent_into_pools + taken_from_pools - receiver - miner_fee``.

    Raises:
        ValueError: route and request directions differ, or a negative miner fee
        InsufficientLiquidityError: funding does not cover the trade
    """
    if route.direction is not request.direction:
        raise ValueError(f"route is {route.direction.value}, request is {request.direction.value}")
    require_int("funding_value", funding_value)
    require_int("miner_fee", miner_fee)
    if miner_fee < 0:
        raise ValueError(f"miner_fee must be non-negative: {miner_fee}")

    if request.direction is Direction.BUY:
        pool_delta = -route.total_amount_in
        receiver_value = DUST_LIMIT
    else:
        pool_delta = route.total_amount_out
        receiver_value = route.total_amount_out

    change = funding_value + pool_delta - receiver_value - miner_fee
    if change < 0:
        raise InsufficientLiquidityError(required=funding_value - change, available=funding_value)

    outputs = materialize_outputs(route)
    outputs.append(TxOutput(value=receiver_value, script=request.recipient))
    if change >= DUST_LIMIT:
        outputs.append(TxOutput(value=change, script=request.recipient if change_script is None else change_script))
    else:
        logger.debug("change %d below dust, left to the miner", change)
    return outputs


def quote_swap(
    pools: Sequence[Pool],
    request: SwapRequest,
    *,
    config: RouterConfig = RouterConfig(),
) -> SwapQuote:
    """
    Route without building outputs.

    ``price_impact`` is the largest per-pool move; ``slippage`` compares the
    route's average price with the spot price of the first pool it trades in.
    """
    route = route_swap(pools, request, config=config)
    first = route.steps[0].pool
    spot = spot_price(first.rxd_reserve, first.token_reserve)
    slippage = abs(route.average_price - spot) / spot * 100 if spot else 0.0
    return SwapQuote(
        amount_out=route.total_amount_out,
        fee=route.total_fee,
        price_impact=max(step.price_impact for step in route.steps),
        slippage=slippage,
        route=route,
    )
